"""
Tests for Crypto Merkle Module

Tests leaf/internal hashing, roots for even, odd and empty trees,
branch generation and root derivation.
"""

import pytest

from crypto.hashing import blake2b256
from crypto.merkle import (
    MerkleHasher,
    MerkleTree,
    create_root,
    create_branch,
    derive_root,
)


def leaves(count):
    return [f"leaf-{i}".encode() for i in range(count)]


class TestMerkleHasher:
    """Test MerkleHasher domain separation."""

    def test_sentinel_is_hash_of_empty_string(self):
        hasher = MerkleHasher()
        assert hasher.sentinel == blake2b256(b'')

    def test_leaf_and_internal_prefixes(self):
        hasher = MerkleHasher()
        left = b'\xaa' * 32
        right = b'\xbb' * 32

        assert hasher.hash_leaf(b'data') == blake2b256(b'\x00data')
        assert hasher.hash_internal(left, right) == blake2b256(b'\x01' + left + right)

    def test_leaf_and_internal_differ(self):
        """Same bytes hashed as leaf and as node give different results."""
        hasher = MerkleHasher()
        data = b'\xcc' * 64
        assert hasher.hash_leaf(data) != hasher.hash_internal(data[:32], data[32:])

    def test_internal_rejects_bad_child_size(self):
        hasher = MerkleHasher()
        with pytest.raises(ValueError):
            hasher.hash_internal(b'\x00' * 31, b'\x00' * 32)


class TestMerkleRoot:
    """Test root computation."""

    def test_empty_tree(self):
        assert create_root([]) == blake2b256(b'')

    def test_single_leaf(self):
        hasher = MerkleHasher()
        assert create_root([b'only']) == hasher.hash_leaf(b'only')

    def test_two_leaves(self):
        hasher = MerkleHasher()
        a, b = leaves(2)
        expected = hasher.hash_internal(hasher.hash_leaf(a), hasher.hash_leaf(b))
        assert create_root([a, b]) == expected

    def test_odd_leaf_pairs_with_sentinel(self):
        hasher = MerkleHasher()
        a, b, c = leaves(3)

        left = hasher.hash_internal(hasher.hash_leaf(a), hasher.hash_leaf(b))
        right = hasher.hash_internal(hasher.hash_leaf(c), hasher.sentinel)

        assert create_root([a, b, c]) == hasher.hash_internal(left, right)

    def test_order_matters(self):
        a, b = leaves(2)
        assert create_root([a, b]) != create_root([b, a])

    def test_custom_digest(self):
        import hashlib

        def sha(data):
            return hashlib.sha256(data).digest()

        tree = MerkleTree(leaves(3), MerkleHasher(sha))
        assert tree.root == create_root(leaves(3), MerkleHasher(sha))
        assert tree.root != create_root(leaves(3))


class TestMerkleBranch:
    """Test branch generation and root derivation."""

    @pytest.mark.parametrize("count", [1, 2, 3, 4, 5, 7, 8, 13])
    def test_every_branch_derives_root(self, count):
        data = leaves(count)
        tree = MerkleTree(data)

        for i, leaf in enumerate(data):
            assert derive_root(leaf, tree.branch(i), i) == tree.root

    def test_branch_length_is_tree_height(self):
        tree = MerkleTree(leaves(5))
        # 5 -> 3 -> 2 -> 1
        assert len(tree.branch(0)) == 3
        assert len(tree.branch(4)) == 3

    def test_single_leaf_branch_is_empty(self):
        assert create_branch(0, [b'only']) == []

    def test_last_odd_leaf_uses_sentinel(self):
        tree = MerkleTree(leaves(3))
        assert tree.branch(2)[0] == MerkleHasher().sentinel

    def test_wrong_index_does_not_derive_root(self):
        data = leaves(4)
        tree = MerkleTree(data)
        assert derive_root(data[1], tree.branch(1), 0) != tree.root

    def test_wrong_leaf_does_not_derive_root(self):
        data = leaves(4)
        tree = MerkleTree(data)
        assert derive_root(b'intruder', tree.branch(2), 2) != tree.root

    def test_index_out_of_range(self):
        tree = MerkleTree(leaves(3))

        with pytest.raises(IndexError):
            tree.branch(3)

        with pytest.raises(IndexError):
            tree.branch(-1)

    def test_empty_tree_has_no_branches(self):
        with pytest.raises(IndexError):
            MerkleTree([]).branch(0)
