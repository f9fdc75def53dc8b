"""
Airdrop Prover - Allocation Tree Store

Loads the published artifacts through a retrieval source, checks each
against its pinned SHA-256 digest and parses the binary layouts:

    tree.bin       u32 count | count * (M * 32 bytes)
    faucet.bin     u32 count | count * 32 bytes
    nonces/NNN.bin { u16 length | length bytes }*
    proof.json     [[address, value, sponsor], ...]

All integers are big-endian. Parsed data is cached and never mutated.
"""

import json
import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple

from crypto.hashing import sha256, HASH_SIZE

from .events import EventEmitter, RedemptionEventType
from .exceptions import ChecksumError, FormatError, LeafCountError
from .params import BUCKET_COUNT, NetworkParams


Subtree = Tuple[bytes, ...]
MainTree = Tuple[Subtree, ...]
FaucetList = Tuple[bytes, ...]


class ArtifactKind(Enum):
    """Published artifact types."""
    MAIN_TREE = "main_tree"
    FAUCET_LIST = "faucet_list"
    NONCE_BUCKET = "nonce_bucket"
    PROOF_MAPPING = "proof_mapping"


@dataclass(frozen=True)
class Artifact:
    """One published file."""
    kind: ArtifactKind
    bucket: Optional[int] = None

    def __post_init__(self):
        if self.kind == ArtifactKind.NONCE_BUCKET:
            if self.bucket is None or not 0 <= self.bucket < BUCKET_COUNT:
                raise ValueError(f"Invalid bucket index: {self.bucket}")
        elif self.bucket is not None:
            raise ValueError(f"{self.kind.value} takes no bucket index")

    @property
    def path(self) -> str:
        """Path of the file relative to the data root."""
        if self.kind == ArtifactKind.MAIN_TREE:
            return 'tree.bin'
        if self.kind == ArtifactKind.FAUCET_LIST:
            return 'faucet.bin'
        if self.kind == ArtifactKind.PROOF_MAPPING:
            return 'proof.json'
        return f'nonces/{self.bucket:03d}.bin'

    def checksum(self, params: NetworkParams) -> bytes:
        """Pinned digest of the file for the given network."""
        if self.kind == ArtifactKind.MAIN_TREE:
            return params.tree_checksum
        if self.kind == ArtifactKind.FAUCET_LIST:
            return params.faucet_checksum
        if self.kind == ArtifactKind.PROOF_MAPPING:
            return params.proof_checksum
        return params.bucket_checksums[self.bucket]

    @classmethod
    def main_tree(cls) -> 'Artifact':
        return cls(ArtifactKind.MAIN_TREE)

    @classmethod
    def faucet_list(cls) -> 'Artifact':
        return cls(ArtifactKind.FAUCET_LIST)

    @classmethod
    def nonce_bucket(cls, index: int) -> 'Artifact':
        return cls(ArtifactKind.NONCE_BUCKET, index)

    @classmethod
    def proof_mapping(cls) -> 'Artifact':
        return cls(ArtifactKind.PROOF_MAPPING)


class ArtifactSource(Protocol):
    """Retrieves raw artifact bytes by relative path."""

    def get(self, path: str, checksum: Optional[bytes] = None) -> bytes:
        ...


# Parsers

def _read_count(data: bytes, name: str) -> int:
    if len(data) < 4:
        raise FormatError(f"Truncated header in {name}")
    return struct.unpack_from('>I', data, 0)[0]


def parse_hash_records(data: bytes, record_size: int, name: str) -> Tuple[int, List[bytes]]:
    """
    Split a count-prefixed file into fixed-size records.

    Returns:
        Tuple of (count, records)

    Raises:
        FormatError: If the body is shorter or longer than count records
    """
    count = _read_count(data, name)
    body = memoryview(data)[4:]

    if len(body) != count * record_size:
        raise FormatError(
            f"Invalid length for {name}: {count} records need {count * record_size} bytes, "
            f"found {len(body)}"
        )

    return count, [bytes(body[i:i + record_size]) for i in range(0, len(body), record_size)]


def parse_main_tree(data: bytes, params: NetworkParams) -> MainTree:
    """Parse tree.bin into subtrees of `subtree_leaves` hashes."""
    size = params.subtree_leaves
    count, records = parse_hash_records(data, size * HASH_SIZE, 'tree.bin')

    if count != params.tree_leaves:
        raise LeafCountError('tree.bin', params.tree_leaves, count)

    return tuple(
        tuple(record[j:j + HASH_SIZE] for j in range(0, len(record), HASH_SIZE))
        for record in records
    )


def parse_faucet_list(data: bytes, params: NetworkParams) -> FaucetList:
    """Parse faucet.bin into a flat list of hashes."""
    count, records = parse_hash_records(data, HASH_SIZE, 'faucet.bin')

    if count != params.faucet_leaves:
        raise LeafCountError('faucet.bin', params.faucet_leaves, count)

    return tuple(records)


def parse_nonce_bucket(data: bytes, name: str = 'nonce bucket') -> List[bytes]:
    """Split a bucket file into its length-prefixed ciphertexts."""
    out = []
    offset = 0

    while offset < len(data):
        if offset + 2 > len(data):
            raise FormatError(f"Truncated record length in {name}")

        size = struct.unpack_from('>H', data, offset)[0]
        offset += 2

        if offset + size > len(data):
            raise FormatError(f"Truncated record in {name}")

        out.append(bytes(data[offset:offset + size]))
        offset += size

    return out


def parse_proof_mapping(data: bytes) -> List[Tuple[str, int, bool]]:
    """Parse proof.json into (address, value, sponsor) rows."""
    try:
        items = json.loads(data.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise FormatError(f"Invalid proof.json: {e}")

    if not isinstance(items, list):
        raise FormatError("proof.json must be an array")

    rows = []
    for item in items:
        if not isinstance(item, list) or len(item) != 3:
            raise FormatError(f"Invalid proof.json row: {item!r}")
        address, value, sponsor = item
        if not isinstance(address, str) or not isinstance(value, int) or not isinstance(sponsor, bool):
            raise FormatError(f"Invalid proof.json row: {item!r}")
        rows.append((address, value, sponsor))

    return rows


def encode_hash_records(records: List[bytes]) -> bytes:
    """Serialize records in the count-prefixed layout."""
    return struct.pack('>I', len(records)) + b''.join(records)


def encode_nonce_bucket(ciphertexts: List[bytes]) -> bytes:
    """Serialize ciphertexts as length-prefixed records."""
    out = bytearray()
    for ct in ciphertexts:
        if len(ct) > 0xffff:
            raise FormatError("Ciphertext too large")
        out += struct.pack('>H', len(ct)) + ct
    return bytes(out)


class AllocationTreeStore:
    """
    Checksum-pinned access to the published allocation data.
    """

    def __init__(self, params: NetworkParams, source: ArtifactSource,
                 events: Optional[EventEmitter] = None):
        """
        Initialize store.

        Args:
            params: Network parameters holding the pinned checksums
            source: Retrieval source for raw artifact bytes
            events: Event emitter for progress reporting
        """
        self.params = params
        self.source = source
        self.events = events or EventEmitter()
        self.logger = logging.getLogger(__name__)

        self._cache: Dict[Artifact, Any] = {}

    def load(self, artifact: Artifact) -> bytes:
        """
        Retrieve an artifact and verify its checksum.

        Raises:
            ChecksumError: If the digest differs from the pinned value
        """
        expected = artifact.checksum(self.params)
        raw = self.source.get(artifact.path, expected)

        if sha256(raw) != expected:
            self.logger.error(f"Checksum mismatch for {artifact.path}")
            raise ChecksumError(artifact.path)

        self.events.emit(RedemptionEventType.ARTIFACT_LOADED, artifact=artifact.path, size=len(raw))
        return raw

    def _cached(self, artifact: Artifact, parse):
        if artifact not in self._cache:
            self._cache[artifact] = parse(self.load(artifact))
        return self._cache[artifact]

    def read_main_tree(self) -> MainTree:
        """Load and parse the main tree."""
        return self._cached(Artifact.main_tree(), lambda raw: parse_main_tree(raw, self.params))

    def read_faucet_list(self) -> FaucetList:
        """Load and parse the faucet list."""
        return self._cached(Artifact.faucet_list(), lambda raw: parse_faucet_list(raw, self.params))

    def read_nonce_bucket(self, index: int) -> List[bytes]:
        """Load and parse one nonce bucket."""
        artifact = Artifact.nonce_bucket(index)
        return parse_nonce_bucket(self.load(artifact), artifact.path)

    def read_proof_mapping(self) -> List[Tuple[str, int, bool]]:
        """Load and parse the address proof mapping."""
        return self._cached(Artifact.proof_mapping(), parse_proof_mapping)
