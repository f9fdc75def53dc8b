"""
Airdrop Prover - Cryptographic Operations Module

This module provides cryptographic utilities for the prover including:
- BLAKE2b/SHA-256 digests and HKDF-SHA256 derivation
- Domain separated Merkle trees and branches
- secp256k1 keys, signatures and additive tweaks
- ECIES envelopes for nonce records
- Bech32 address decoding

Dependencies:
- coincurve: Fast secp256k1 operations
- pycryptodome: HKDF and AES-GCM
- bech32: Address checksum and conversion
"""

from .exceptions import (
    CryptoError,
    InvalidKeyError,
    DerivationError,
    DecryptionError,
    AddressError,
)
from .hashing import blake2b256, sha256, hkdf_sha256
from .keys import PrivateKey, PublicKey
from .merkle import MerkleHasher, MerkleTree, create_root, create_branch, derive_root
from .address import parse_address, encode_address, is_address

__version__ = "0.1.0"
__all__ = [
    # Exceptions
    "CryptoError",
    "InvalidKeyError",
    "DerivationError",
    "DecryptionError",
    "AddressError",

    # Digests
    "blake2b256",
    "sha256",
    "hkdf_sha256",

    # Keys
    "PrivateKey",
    "PublicKey",

    # Merkle
    "MerkleHasher",
    "MerkleTree",
    "create_root",
    "create_branch",
    "derive_root",

    # Addresses
    "parse_address",
    "encode_address",
    "is_address",
]
