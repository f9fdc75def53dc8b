"""
Airdrop Prover - Merkle Tree Implementation

This module provides the hash tree used by the allocation data: domain
separated leaf and internal hashing, root computation, branch generation
and root derivation from a branch.

Layout rules:
- Leaves are hashed as H(0x00 || data), internal nodes as H(0x01 || left || right)
- An odd node at the end of a level is paired with the sentinel H("")
- An empty tree has the sentinel as its root
"""

import logging
from typing import Callable, List, Optional

from .hashing import blake2b256, HASH_SIZE


LEAF_PREFIX = b'\x00'
INTERNAL_PREFIX = b'\x01'


class MerkleHasher:
    """
    Handles all hashing operations for the Merkle tree.

    Implements domain separation to prevent second-preimage attacks.
    """

    def __init__(self, digest: Callable[[bytes], bytes] = blake2b256):
        """
        Initialize hasher.

        Args:
            digest: Function mapping bytes to a 32-byte digest
        """
        self.digest = digest
        self.sentinel = digest(b'')

    def hash_leaf(self, data: bytes) -> bytes:
        """
        Hash leaf data with domain separation.

        Format: H(0x00 || data)
        """
        return self.digest(LEAF_PREFIX + data)

    def hash_internal(self, left_hash: bytes, right_hash: bytes) -> bytes:
        """
        Hash internal node from children.

        Format: H(0x01 || left_hash || right_hash)
        """
        if len(left_hash) != HASH_SIZE or len(right_hash) != HASH_SIZE:
            raise ValueError("Child hashes must be 32 bytes")

        return self.digest(INTERNAL_PREFIX + left_hash + right_hash)


class MerkleTree:
    """
    Merkle tree over an ordered list of leaves.

    All levels are kept in memory so that branches for any index can be
    produced without rehashing. Leaf order is preserved as given.
    """

    def __init__(self, leaves: List[bytes], hasher: Optional[MerkleHasher] = None):
        """
        Build the tree.

        Args:
            leaves: Ordered leaf data (hashed with the leaf prefix)
            hasher: Custom hasher instance (optional)
        """
        self.hasher = hasher or MerkleHasher()
        self.logger = logging.getLogger(__name__)
        self.levels: List[List[bytes]] = []
        self.leaf_count = len(leaves)

        self._build([self.hasher.hash_leaf(leaf) for leaf in leaves])

    def _build(self, nodes: List[bytes]) -> None:
        if not nodes:
            self.levels.append([self.hasher.sentinel])
            return

        self.levels.append(nodes)

        while len(nodes) > 1:
            next_level = []

            for i in range(0, len(nodes), 2):
                left = nodes[i]
                right = nodes[i + 1] if i + 1 < len(nodes) else self.hasher.sentinel
                next_level.append(self.hasher.hash_internal(left, right))

            self.levels.append(next_level)
            nodes = next_level

        self.logger.debug(f"Tree built: leaves={len(self.levels[0])}, height={len(self.levels)}")

    @property
    def root(self) -> bytes:
        """Root hash of the tree."""
        return self.levels[-1][0]

    def branch(self, index: int) -> List[bytes]:
        """
        Generate the sibling path for a leaf.

        Args:
            index: Index of the leaf

        Returns:
            Sibling hashes ordered from the leaf level upward
        """
        if index < 0 or index >= self.leaf_count:
            raise IndexError(f"Leaf index {index} out of range for {self.leaf_count} leaves")

        branch = []

        for level in self.levels[:-1]:
            sibling = index ^ 1
            if sibling < len(level):
                branch.append(level[sibling])
            else:
                branch.append(self.hasher.sentinel)
            index >>= 1

        return branch


# Convenience functions

def create_root(leaves: List[bytes], hasher: Optional[MerkleHasher] = None) -> bytes:
    """Compute the root of an ordered list of leaves."""
    return MerkleTree(leaves, hasher).root


def create_branch(index: int, leaves: List[bytes],
                  hasher: Optional[MerkleHasher] = None) -> List[bytes]:
    """Compute the branch proving the leaf at `index`."""
    return MerkleTree(leaves, hasher).branch(index)


def derive_root(leaf: bytes, branch: List[bytes], index: int,
                hasher: Optional[MerkleHasher] = None) -> bytes:
    """
    Hash a leaf up its branch.

    Args:
        leaf: Leaf data (hashed with the leaf prefix)
        branch: Sibling hashes from the leaf level upward
        index: Index of the leaf

    Returns:
        Root the branch commits to
    """
    hasher = hasher or MerkleHasher()
    node = hasher.hash_leaf(leaf)

    for sibling in branch:
        if index & 1:
            node = hasher.hash_internal(sibling, node)
        else:
            node = hasher.hash_internal(node, sibling)
        index >>= 1

    return node
