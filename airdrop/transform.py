"""
Airdrop Prover - Key Transform

Applies a discovered nonce to a registered key. The result is the key
whose hash was committed to the main tree.
"""

from enum import Enum

from .key import AllocationKey


class TransformMode(Enum):
    """How a nonce is applied to a key."""
    # Nonce published verbatim; the key stays linkable
    BARE = "bare"
    # Point blinded by nonce * G
    TWEAKED = "tweaked"


def transform_key(key: AllocationKey, nonce: bytes,
                  mode: TransformMode = TransformMode.TWEAKED) -> AllocationKey:
    """
    Produce the redemption key for one nonce.

    Args:
        key: Original registered key (left unchanged)
        nonce: 32-byte nonce from the bucket
        mode: Bare or tweaked

    Returns:
        New transformed key
    """
    if mode == TransformMode.BARE:
        return key.apply_nonce(nonce)
    return key.apply_tweak(nonce)
