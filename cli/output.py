#!/usr/bin/env python3
"""
Output Formatting Module for the Airdrop Prover CLI

Renders finished proofs as JSON, YAML or a summary table, and turns
redemption progress events into human readable lines.
"""

import json
import sys
from typing import Any, Callable, Dict, List, Optional

import yaml
from tabulate import tabulate

from airdrop.amounts import format_amount
from airdrop.events import RedemptionEvent, RedemptionEventType
from airdrop.params import NetworkParams
from airdrop.proof import RedemptionProof


OUTPUT_FORMATS = ['base64', 'json', 'yaml', 'table']


class OutputFormatter:
    """Formatter for finished redemption proofs."""

    def __init__(self, format_type: str = 'base64', color_output: bool = True):
        """
        Initialize output formatter.

        Args:
            format_type: Output format (base64, json, yaml, table)
            color_output: Enable colored table headers
        """
        if format_type not in OUTPUT_FORMATS:
            raise ValueError(f"Unknown output format: {format_type}")

        self.format_type = format_type
        self.color_output = color_output and sys.stdout.isatty()

    def format(self, data: Any, headers: Optional[List[str]] = None) -> str:
        """
        Format data according to the configured format type.

        Args:
            data: Data to format
            headers: Optional headers for table format

        Returns:
            Formatted string output
        """
        if self.format_type == 'json':
            return self.format_json(data)
        elif self.format_type == 'yaml':
            return self.format_yaml(data)
        elif self.format_type == 'table':
            return self.format_table(data, headers)
        return str(data)

    def format_json(self, data: Any) -> str:
        """Format data as JSON."""
        return json.dumps(data, indent=2, default=self._json_encoder)

    def format_yaml(self, data: Any) -> str:
        """Format data as YAML."""
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)

    def format_table(self, data: Any, headers: Optional[List[str]] = None) -> str:
        """Format a list of dictionaries as a grid table."""
        if isinstance(data, dict):
            data = [data]

        if not data:
            return "No data available"

        if headers is None:
            headers = list(data[0].keys())

        rows = [[self._format_value(item.get(h, '')) for h in headers] for item in data]
        colored_headers = [self._colorize(h, 'header') for h in headers]
        return tabulate(rows, headers=colored_headers, tablefmt='grid')

    def format_proofs(self, proofs: List[RedemptionProof], params: NetworkParams) -> str:
        """Render proofs in the configured format."""
        if self.format_type == 'base64':
            return '\n'.join(proof.to_base64() for proof in proofs)
        if self.format_type == 'table':
            return self.format_table([proof_summary(proof, params) for proof in proofs])
        return self.format([proof.to_json() for proof in proofs])

    def _format_value(self, value: Any) -> str:
        if value is None:
            return ''
        if isinstance(value, bool):
            return 'yes' if value else 'no'
        return str(value)

    def _colorize(self, text: str, color_type: str) -> str:
        """Add color to text if color output is enabled."""
        if not self.color_output:
            return text

        colors = {
            'header': '\033[1;34m',  # Bold blue
        }

        color = colors.get(color_type, '')
        return f"{color}{text}\033[0m" if color else text

    def _json_encoder(self, obj):
        """Custom JSON encoder for special types."""
        if isinstance(obj, bytes):
            return obj.hex()
        return str(obj)


def proof_summary(proof: RedemptionProof, params: NetworkParams) -> Dict[str, Any]:
    """Flatten a proof into one table row."""
    key = proof.get_key()
    return {
        'index': proof.index,
        'subindex': proof.subindex,
        'origin': key.origin.name.lower() if key else 'invalid',
        'value': format_amount(proof.get_value(params)),
        'fee': format_amount(proof.fee),
        'signed': bool(proof.signature),
    }


class EventRenderer:
    """
    Turns redemption events into progress lines.

    Instances are callables suitable for EventEmitter.add_callback.
    """

    def __init__(self, write: Callable[[str], None]):
        """
        Args:
            write: Sink for one rendered line
        """
        self.write = write

    def __call__(self, event: RedemptionEvent):
        for line in render_event(event):
            self.write(line)


def render_event(event: RedemptionEvent) -> List[str]:
    """
    Render one event.

    Returns:
        Zero or more lines of text
    """
    d = event.details
    kind = event.event_type

    if kind == RedemptionEventType.ARTIFACT_LOADED:
        return [f"Loaded {d['artifact']} ({d['size']} bytes)."]

    if kind == RedemptionEventType.NONCE_SCAN_STARTED:
        return [f"Decrypting nonce (bucket {d['bucket']}, {d['records']} records)..."]

    if kind == RedemptionEventType.NONCE_FOUND:
        return ["Found nonce!" if d['count'] == 1 else f"Found {d['count']} nonces!"]

    if kind == RedemptionEventType.TREE_REBUILT:
        return [f"Rebuilt {d['tree']} tree over {d['leaves']} leaves."]

    if kind == RedemptionEventType.LEAF_LOCATED:
        if 'subindex' in d:
            return [f"Creating proof from leaf {d['index']}:{d['subindex']}..."]
        return [f"Creating proof from leaf {d['index']}..."]

    if kind == RedemptionEventType.SUBTREE_DIFFED:
        lines = ['', f"{len(d['genuine'])} keys found in your subtree:"]
        for i, leaf in enumerate(d['genuine']):
            suffix = ' (current)' if i == d['current'] else ''
            lines.append(f"  {leaf}{suffix}")
        lines.append('')
        return lines

    if kind == RedemptionEventType.PROOF_SIGNED:
        return [f"Signing proof {d['index']}:{d['subindex']}..."]

    if kind == RedemptionEventType.PROOF_CREATED:
        return [f"Proof created (fee {format_amount(d['fee'])})."]

    return []


__all__ = [
    'OUTPUT_FORMATS',
    'OutputFormatter',
    'EventRenderer',
    'proof_summary',
    'render_event',
]
