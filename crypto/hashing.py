"""
Digest and Key Derivation Primitives for the Airdrop Prover

BLAKE2b-256 is the tree hash, SHA-256 pins artifact checksums and
HKDF-SHA256 expands seeds into synthetic subtree leaves.
"""

import hashlib

from Crypto.Hash import SHA256
from Crypto.Protocol.KDF import HKDF

from .exceptions import DerivationError


HASH_SIZE = 32

# RFC 5869 limits the output of HKDF to 255 blocks
HKDF_MAX_LENGTH = 255 * HASH_SIZE


def blake2b256(data: bytes) -> bytes:
    """Compute a 32-byte BLAKE2b digest."""
    return hashlib.blake2b(data, digest_size=HASH_SIZE).digest()


def sha256(data: bytes) -> bytes:
    """Compute a SHA-256 digest."""
    return hashlib.sha256(data).digest()


def hkdf_sha256(ikm: bytes, length: int, salt: bytes = None, info: bytes = None) -> bytes:
    """
    Run HKDF-SHA256 extract-then-expand.

    An absent salt is the all-zero block and an absent info is the empty
    string, as RFC 5869 specifies.

    Args:
        ikm: Input keying material
        length: Number of output bytes
        salt: Optional extraction salt
        info: Optional expansion context

    Returns:
        `length` bytes of output keying material
    """
    if length <= 0 or length > HKDF_MAX_LENGTH:
        raise DerivationError(f"HKDF output length must be 1-{HKDF_MAX_LENGTH} bytes")

    return HKDF(ikm, length, salt, SHA256, num_keys=1, context=info)
