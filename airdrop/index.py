"""
Airdrop Prover - Leaf Index

In-memory views over the parsed allocation data: the list of subtree roots
committed to by the main tree, the main tree itself and the faucet list,
plus exact-match lookups.

Leaf order is whatever the published files contain. Nothing here assumes
the leaves are sorted, so lookups are linear scans.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from crypto.merkle import MerkleTree

from .exceptions import RootMismatchError
from .store import FaucetList, MainTree


logger = logging.getLogger(__name__)


def build_main_index(tree: MainTree) -> List[bytes]:
    """
    Compute the merkle root of every subtree.

    Args:
        tree: Parsed main tree

    Returns:
        Subtree roots in main-tree order
    """
    return [MerkleTree(list(subtree)).root for subtree in tree]


def find_in_main(tree: Sequence[Sequence[bytes]], target: bytes) -> Optional[Tuple[int, int]]:
    """
    Locate a hash inside the main tree.

    Returns:
        (subtree index, position within subtree) of the first match, or None
    """
    for i, hashes in enumerate(tree):
        for j, leaf in enumerate(hashes):
            if leaf == target:
                return i, j

    return None


def find_in_faucet(leaves: Sequence[bytes], target: bytes) -> Optional[int]:
    """
    Locate a hash inside the faucet list.

    Returns:
        Index of the first match, or None
    """
    for i, leaf in enumerate(leaves):
        if leaf == target:
            return i

    return None


class MainIndex:
    """Main tree plus its top-level merkle tree over subtree roots."""

    def __init__(self, tree: MainTree, pinned_root: Optional[bytes] = None):
        """
        Build the index.

        Args:
            tree: Parsed main tree
            pinned_root: Expected root; a different computed root is fatal

        Raises:
            RootMismatchError: If pinned_root is given and does not match
        """
        self.tree = tree
        self.roots = build_main_index(tree)
        self.top = MerkleTree(self.roots)

        if pinned_root is not None and self.top.root != pinned_root:
            raise RootMismatchError(
                f"Main tree root {self.top.root.hex()} does not match pinned root {pinned_root.hex()}"
            )

        logger.debug(f"Main index built over {len(self.roots)} subtrees")

    @property
    def root(self) -> bytes:
        return self.top.root

    def find(self, target: bytes) -> Optional[Tuple[int, int]]:
        return find_in_main(self.tree, target)

    def subtree(self, index: int) -> Tuple[bytes, ...]:
        return self.tree[index]

    def branch(self, index: int) -> List[bytes]:
        """Branch proving subtree `index` under the main root."""
        return self.top.branch(index)

    def subbranch(self, index: int, subindex: int) -> List[bytes]:
        """Branch proving leaf `subindex` under subtree `index`'s root."""
        return MerkleTree(list(self.tree[index])).branch(subindex)


class FaucetIndex:
    """Faucet list plus its merkle tree."""

    def __init__(self, leaves: FaucetList, pinned_root: Optional[bytes] = None):
        self.leaves = leaves
        self.tree = MerkleTree(list(leaves))

        if pinned_root is not None and self.tree.root != pinned_root:
            raise RootMismatchError(
                f"Faucet root {self.tree.root.hex()} does not match pinned root {pinned_root.hex()}"
            )

    @property
    def root(self) -> bytes:
        return self.tree.root

    def find(self, target: bytes) -> Optional[int]:
        return find_in_faucet(self.leaves, target)

    def branch(self, index: int) -> List[bytes]:
        return self.tree.branch(index)
