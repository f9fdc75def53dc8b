"""
Pytest configuration and fixtures for Airdrop Prover tests.

The fixtures build a small but complete allocation data set in memory:
a main tree of PGP/SSH redemption keys padded with seed-derived filler,
the matching nonce buckets, a faucet list and its proof mapping, plus the
network parameters pinning all of it.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from airdrop.differ import derive_subleaves
from airdrop.index import FaucetIndex, MainIndex
from airdrop.key import AllocationKey, CandidateSecret, KeyOrigin
from airdrop.nonces import NonceSeedPair
from airdrop.params import BUCKET_COUNT, NetworkParams
from airdrop.store import (
    encode_hash_records,
    encode_nonce_bucket,
    parse_faucet_list,
    parse_main_tree,
)
from airdrop.transform import TransformMode, transform_key
from crypto import ecies
from crypto.address import encode_address
from crypto.hashing import blake2b256, sha256
from crypto.keys import PrivateKey
from network.client import FetchError


ALICE_SECRET = bytes.fromhex('11' * 32)
BOB_SECRET = bytes.fromhex('22' * 32)
STRANGER_SECRET = bytes.fromhex('33' * 32)

ADDR_A = encode_address('hs', 0, bytes(range(1, 21)))
ADDR_B = encode_address('hs', 0, bytes(range(101, 121)))
ADDR_C = encode_address('ts', 0, bytes(range(201, 233)))
ADDR_UNLISTED = encode_address('hs', 0, b'\xee' * 20)

# Payout target for key redemptions
TARGET = encode_address('rs', 0, b'\x07' * 20)


class MemorySource:
    """Artifact source backed by a dictionary."""

    def __init__(self, files: Dict[str, bytes]):
        self.files = dict(files)
        self.requests: List[str] = []

    def get(self, path: str, checksum: Optional[bytes] = None) -> bytes:
        self.requests.append(path)
        if path not in self.files:
            raise FetchError(path, "Not found")
        return self.files[path]


class AllocationData:
    """
    Synthetic allocation data set.

    Alice (PGP) holds two nonces placed at (2, 1) and (0, 0); Bob (SSH)
    holds one at (3, 0). Alice's bucket also carries a record sealed to a
    stranger. The faucet list holds four of the five proof mapping rows;
    ADDR_C is in the mapping but missing from the list, and the last ADDR_B
    entry is a sponsor entry worth less than the sponsor fee ceiling.
    """

    def __init__(self, mode: TransformMode = TransformMode.TWEAKED,
                 tree_leaves: int = 4, subtree_leaves: int = 2,
                 pin_roots: bool = False):
        self.mode = mode
        self.target = TARGET
        self.addr_a = ADDR_A
        self.addr_b = ADDR_B
        self.addr_c = ADDR_C
        self.addr_unlisted = ADDR_UNLISTED
        self.tree_leaves = tree_leaves
        self.subtree_leaves = subtree_leaves

        self.alice_secret = CandidateSecret(PrivateKey(ALICE_SECRET))
        self.bob_secret = CandidateSecret(PrivateKey(BOB_SECRET))
        self.stranger_secret = CandidateSecret(PrivateKey(STRANGER_SECRET))

        self.alice = AllocationKey.from_public_key(
            KeyOrigin.PGP, self.alice_secret.private_key.public_key())
        self.bob = AllocationKey.from_public_key(
            KeyOrigin.SSH, self.bob_secret.private_key.public_key())
        self.stranger = AllocationKey.from_public_key(
            KeyOrigin.SSH, self.stranger_secret.private_key.public_key())

        self.alice_pairs = [
            NonceSeedPair(nonce=b'\x31' * 32, seed=b'\x41' * 32),
            NonceSeedPair(nonce=b'\x32' * 32, seed=b'\x42' * 32),
        ]
        self.bob_pair = NonceSeedPair(nonce=b'\x34' * 32, seed=b'\x44' * 32)
        self.stranger_pair = NonceSeedPair(nonce=b'\x35' * 32, seed=b'\x45' * 32)

        self.placements = [
            (self.alice, self.alice_pairs[0], (2, 1)),
            (self.alice, self.alice_pairs[1], (0, 0)),
            (self.bob, self.bob_pair, (3, 0)),
        ]

        self.subtrees = self._build_subtrees()
        self.buckets = self._build_buckets()

        self.faucet_entries = [
            AllocationKey.from_address(ADDR_A, 1_000_000_000, False),
            AllocationKey.from_address(ADDR_B, 600_000_000, True),
            AllocationKey.from_address(ADDR_A, 750_000_000, True),
            AllocationKey.from_address(ADDR_B, 400_000_000, True),
        ]
        self.missing_entry = AllocationKey.from_address(ADDR_C, 100_000_000, False)

        self.faucet_leaves = (
            [blake2b256(b'faucet-filler-0')]
            + [entry.hash() for entry in self.faucet_entries]
            + [blake2b256(b'faucet-filler-1')]
        )
        self.mapping = [
            [ADDR_A, 1_000_000_000, False],
            [ADDR_B, 600_000_000, True],
            [ADDR_A, 750_000_000, True],
            [ADDR_B, 400_000_000, True],
            [ADDR_C, 100_000_000, False],
        ]

        self.files = self._encode_files()
        self.params = self._build_params(pin_roots)

    def _build_subtrees(self) -> List[List[bytes]]:
        subtrees = [
            derive_subleaves(bytes([0x50 + i]) * 32, self.subtree_leaves)
            for i in range(self.tree_leaves)
        ]

        for key, pair, (i, j) in self.placements:
            subtree = derive_subleaves(pair.seed, self.subtree_leaves)
            subtree[j] = self.redeem_key(key, pair).hash()
            subtrees[i] = subtree

        return subtrees

    def _build_buckets(self) -> List[List[bytes]]:
        buckets = [[] for _ in range(BUCKET_COUNT)]

        buckets[self.alice.bucket()].append(
            ecies.encrypt(self.stranger.public_key, self.stranger_pair.encode()))

        for key, pair, _ in self.placements:
            buckets[key.bucket()].append(ecies.encrypt(key.public_key, pair.encode()))

        return buckets

    def _encode_files(self) -> Dict[str, bytes]:
        files = {
            'tree.bin': encode_hash_records([b''.join(subtree) for subtree in self.subtrees]),
            'faucet.bin': encode_hash_records(self.faucet_leaves),
            'proof.json': json.dumps(self.mapping).encode('utf-8'),
        }
        for i, bucket in enumerate(self.buckets):
            files[f'nonces/{i:03d}.bin'] = encode_nonce_bucket(bucket)
        return files

    def descriptors(self, tree_root: Optional[bytes] = None,
                    faucet_root: Optional[bytes] = None):
        """Published tree.json and faucet.json documents."""
        tree = {
            'checksum': sha256(self.files['tree.bin']).hex(),
            'leaves': self.tree_leaves,
            'subleaves': self.subtree_leaves,
            'checksums': [
                sha256(self.files[f'nonces/{i:03d}.bin']).hex() for i in range(BUCKET_COUNT)
            ],
        }
        faucet = {
            'checksum': sha256(self.files['faucet.bin']).hex(),
            'leaves': len(self.faucet_leaves),
            'proofChecksum': sha256(self.files['proof.json']).hex(),
        }
        if tree_root is not None:
            tree['root'] = tree_root.hex()
        if faucet_root is not None:
            faucet['root'] = faucet_root.hex()
        return tree, faucet

    def _build_params(self, pin_roots: bool) -> NetworkParams:
        params = NetworkParams.from_descriptors('development', *self.descriptors())
        if not pin_roots:
            return params

        tree_root = MainIndex(parse_main_tree(self.files['tree.bin'], params)).root
        faucet_root = FaucetIndex(parse_faucet_list(self.files['faucet.bin'], params)).root
        return NetworkParams.from_descriptors(
            'development', *self.descriptors(tree_root, faucet_root))

    def redeem_key(self, key: AllocationKey, pair: NonceSeedPair) -> AllocationKey:
        return transform_key(key, pair.nonce, self.mode)

    def source(self) -> MemorySource:
        return MemorySource(self.files)

    def write_to(self, directory) -> None:
        """Lay the artifacts and descriptors out on disk."""
        root = Path(directory)
        (root / 'nonces').mkdir(parents=True, exist_ok=True)

        for path, data in self.files.items():
            (root / path).write_bytes(data)

        tree, faucet = self.descriptors()
        (root / 'tree.json').write_text(json.dumps(tree))
        (root / 'faucet.json').write_text(json.dumps(faucet))


@pytest.fixture(scope="session")
def allocation():
    """Shared tweaked-mode data set (read-only)."""
    return AllocationData()


@pytest.fixture(scope="session")
def bare_allocation():
    """Data set committed with bare (untweaked) redemption keys."""
    return AllocationData(mode=TransformMode.BARE)


@pytest.fixture
def make_allocation():
    """Factory for data sets with custom sizes or pinned roots."""
    return AllocationData


@pytest.fixture
def memory_source(allocation):
    """Fresh in-memory source over the shared data set."""
    return allocation.source()


@pytest.fixture
def network_params(allocation):
    """Network parameters of the shared data set."""
    return allocation.params


# Test markers for different test categories
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# Pytest collection hooks
def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test paths and names."""
    for item in items:
        if "unit" in str(item.path):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.path):
            item.add_marker(pytest.mark.integration)

        if "slow" in item.name or "large" in item.name:
            item.add_marker(pytest.mark.slow)
