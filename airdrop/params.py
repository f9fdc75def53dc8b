"""
Airdrop Prover - Network Parameters

Tree sizes and artifact checksums differ between the production and
development data sets. They are gathered in one immutable value that every
component receives at construction.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from .exceptions import AirdropError


BUCKET_COUNT = 256

# Fixed point, 6 decimal places
REWARD_VALUE = 100_000_000
SPONSOR_VALUE = 500_000_000

PRODUCTION = 'production'
DEVELOPMENT = 'development'

TREE_DESCRIPTOR = 'tree.json'
FAUCET_DESCRIPTOR = 'faucet.json'


class ParamsError(AirdropError):
    """Network parameters are missing or malformed."""
    pass


def _hash_from_hex(value: Any, field_name: str) -> bytes:
    try:
        raw = bytes.fromhex(value)
    except (TypeError, ValueError):
        raise ParamsError(f"{field_name} must be a hex string")
    if len(raw) != 32:
        raise ParamsError(f"{field_name} must be 32 bytes")
    return raw


@dataclass(frozen=True)
class NetworkParams:
    """
    Immutable description of one published allocation data set.

    Attributes:
        name: Environment name (production, development)
        tree_leaves: Number of subtrees in the main tree (N)
        subtree_leaves: Number of hashes per subtree (M)
        tree_checksum: SHA-256 of tree.bin
        bucket_checksums: SHA-256 of each nonce bucket file
        faucet_leaves: Number of hashes in the faucet list
        faucet_checksum: SHA-256 of faucet.bin
        proof_checksum: SHA-256 of proof.json
        tree_root: Optional pinned root of the main tree
        faucet_root: Optional pinned root of the faucet list
        reward_value: Value of an ordinary entry
        sponsor_value: Value of a sponsor entry
    """
    name: str
    tree_leaves: int
    subtree_leaves: int
    tree_checksum: bytes
    bucket_checksums: Tuple[bytes, ...]
    faucet_leaves: int
    faucet_checksum: bytes
    proof_checksum: bytes
    tree_root: Optional[bytes] = None
    faucet_root: Optional[bytes] = None
    reward_value: int = REWARD_VALUE
    sponsor_value: int = SPONSOR_VALUE

    def __post_init__(self):
        """Validate parameter ranges."""
        if self.tree_leaves < 0 or self.faucet_leaves < 0:
            raise ParamsError("Leaf counts cannot be negative")

        # Subtree indexes are encoded in one byte
        if not 1 <= self.subtree_leaves <= 255:
            raise ParamsError("Subtree size must be 1-255")

        if len(self.bucket_checksums) != BUCKET_COUNT:
            raise ParamsError(f"Expected {BUCKET_COUNT} bucket checksums, got {len(self.bucket_checksums)}")

        for checksum in (self.tree_checksum, self.faucet_checksum, self.proof_checksum,
                         *self.bucket_checksums):
            if len(checksum) != 32:
                raise ParamsError("Checksums must be 32 bytes")

        for root in (self.tree_root, self.faucet_root):
            if root is not None and len(root) != 32:
                raise ParamsError("Roots must be 32 bytes")

    def value_for(self, sponsor: bool) -> int:
        """Get the fixed value of an ordinary or sponsor entry."""
        return self.sponsor_value if sponsor else self.reward_value

    @classmethod
    def from_descriptors(cls, name: str, tree: Dict[str, Any],
                         faucet: Dict[str, Any]) -> 'NetworkParams':
        """
        Build parameters from the published descriptor documents.

        Args:
            name: Environment name
            tree: {"checksum", "leaves", "subleaves", "checksums", optional "root"}
            faucet: {"checksum", "leaves", "proofChecksum", optional "root"}

        Returns:
            NetworkParams instance
        """
        try:
            return cls(
                name=name,
                tree_leaves=int(tree['leaves']),
                subtree_leaves=int(tree['subleaves']),
                tree_checksum=_hash_from_hex(tree['checksum'], 'tree checksum'),
                bucket_checksums=tuple(
                    _hash_from_hex(value, f'bucket checksum {i}')
                    for i, value in enumerate(tree['checksums'])
                ),
                faucet_leaves=int(faucet['leaves']),
                faucet_checksum=_hash_from_hex(faucet['checksum'], 'faucet checksum'),
                proof_checksum=_hash_from_hex(faucet['proofChecksum'], 'proof checksum'),
                tree_root=_hash_from_hex(tree['root'], 'tree root') if tree.get('root') else None,
                faucet_root=_hash_from_hex(faucet['root'], 'faucet root') if faucet.get('root') else None,
            )
        except KeyError as e:
            raise ParamsError(f"Missing descriptor field: {e}")

    @classmethod
    def from_directory(cls, name: str, directory: Union[str, Path]) -> 'NetworkParams':
        """
        Load parameters from a directory holding tree.json and faucet.json.
        """
        directory = Path(directory)
        descriptors = []

        for filename in (TREE_DESCRIPTOR, FAUCET_DESCRIPTOR):
            path = directory / filename
            try:
                with open(path, 'r') as f:
                    descriptors.append(json.load(f))
            except FileNotFoundError:
                raise ParamsError(f"Descriptor not found: {path}")
            except json.JSONDecodeError as e:
                raise ParamsError(f"Invalid JSON in {path}: {e}")

        return cls.from_descriptors(name, *descriptors)
