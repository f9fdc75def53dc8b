"""
Airdrop Prover - Subtree Differ

Subtrees are padded to a constant size with filler hashes derived from the
key's seed. Rederiving the filler lets a key holder confirm that every
other slot is either filler or a genuine registration.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from crypto.hashing import hkdf_sha256, HASH_SIZE

from .events import EventEmitter, RedemptionEventType


def derive_subleaves(seed: bytes, count: int) -> List[bytes]:
    """
    Derive the synthetic filler hashes for a subtree.

    Args:
        seed: 32-byte seed from the nonce record
        count: Subtree size

    Returns:
        `count` 32-byte hashes
    """
    raw = hkdf_sha256(seed, count * HASH_SIZE)
    return [raw[i:i + HASH_SIZE] for i in range(0, len(raw), HASH_SIZE)]


@dataclass(frozen=True)
class SubtreeReport:
    """Genuine entries of a subtree, with the caller's own entry marked."""
    genuine: List[bytes]
    synthetic_count: int
    current: Optional[int] = None

    def lines(self) -> List[str]:
        """Render the genuine hashes, flagging the current key."""
        return [
            f"{leaf.hex()} (current)" if i == self.current else leaf.hex()
            for i, leaf in enumerate(self.genuine)
        ]


def diff_subtree(subtree: Sequence[bytes], seed: bytes,
                 key_hash: Optional[bytes] = None) -> SubtreeReport:
    """
    Split a subtree into genuine and synthetic leaves.

    Args:
        subtree: Published subtree hashes
        seed: Seed from the matched nonce record
        key_hash: Hash of the caller's transformed key, to mark in the report

    Returns:
        SubtreeReport with genuine hashes in subtree order
    """
    synthetic = set(derive_subleaves(seed, len(subtree)))

    genuine = [leaf for leaf in subtree if leaf not in synthetic]

    current = None
    if key_hash is not None and key_hash in genuine:
        current = genuine.index(key_hash)

    return SubtreeReport(
        genuine=genuine,
        synthetic_count=len(subtree) - len(genuine),
        current=current,
    )


class SubtreeDiffer:
    """Runs diff_subtree and reports the outcome as an event."""

    def __init__(self, events: Optional[EventEmitter] = None):
        self.events = events or EventEmitter()

    def diff(self, subtree: Sequence[bytes], seed: bytes,
             key_hash: Optional[bytes] = None, index: Optional[int] = None) -> SubtreeReport:
        report = diff_subtree(subtree, seed, key_hash)
        self.events.emit(
            RedemptionEventType.SUBTREE_DIFFED,
            index=index,
            genuine=[leaf.hex() for leaf in report.genuine],
            current=report.current,
            synthetic=report.synthetic_count,
        )
        return report
