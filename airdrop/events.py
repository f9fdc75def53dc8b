"""
Airdrop Prover - Progress Events

The redemption engine never prints. It reports progress as structured
events which a presentation layer subscribes to.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List


class RedemptionEventType(Enum):
    """Types of redemption progress events."""
    ARTIFACT_LOADED = "artifact_loaded"
    NONCE_SCAN_STARTED = "nonce_scan_started"
    NONCE_FOUND = "nonce_found"
    TREE_REBUILT = "tree_rebuilt"
    LEAF_LOCATED = "leaf_located"
    SUBTREE_DIFFED = "subtree_diffed"
    PROOF_SIGNED = "proof_signed"
    PROOF_CREATED = "proof_created"


@dataclass
class RedemptionEvent:
    """Represents a redemption progress event."""
    event_type: RedemptionEventType
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


EventCallback = Callable[[RedemptionEvent], None]


class EventEmitter:
    """Fans redemption events out to subscribed callbacks."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._callbacks: List[EventCallback] = []

    def add_callback(self, callback: EventCallback):
        """Add callback for redemption events."""
        self._callbacks.append(callback)

    def remove_callback(self, callback: EventCallback):
        """Remove a previously added callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def emit(self, event_type: RedemptionEventType, **details: Any) -> RedemptionEvent:
        """
        Build and dispatch an event.

        Args:
            event_type: Kind of event
            **details: Event payload

        Returns:
            The dispatched event
        """
        event = RedemptionEvent(event_type=event_type, details=details)
        self.logger.debug(f"{event_type.value}: {details}")

        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as e:
                self.logger.error(f"Event callback error: {e}")

        return event
