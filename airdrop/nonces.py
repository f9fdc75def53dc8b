"""
Airdrop Prover - Nonce Resolver

Each registered key has its (nonce, seed) pairs sealed into one of 256
bucket files. Resolving means trying every record of the key's bucket and
keeping those that open; records sealed to other keys are expected and
skipped.
"""

import logging
from dataclasses import dataclass
from typing import List

from .events import EventEmitter, RedemptionEventType
from .exceptions import FormatError, NonceNotFoundError
from .key import CandidateSecret, NONCE_SIZE
from .store import AllocationTreeStore


SEED_SIZE = 32


@dataclass(frozen=True)
class NonceSeedPair:
    """A decrypted bucket record."""
    nonce: bytes
    seed: bytes

    def __post_init__(self):
        if len(self.nonce) != NONCE_SIZE or len(self.seed) != SEED_SIZE:
            raise FormatError("Nonce and seed must be 32 bytes each")

    def encode(self) -> bytes:
        return self.nonce + self.seed

    @classmethod
    def decode(cls, data: bytes) -> 'NonceSeedPair':
        if len(data) != NONCE_SIZE + SEED_SIZE:
            raise FormatError(f"Invalid nonce record size: {len(data)}")
        return cls(nonce=data[:NONCE_SIZE], seed=data[NONCE_SIZE:])


def scan_bucket(ciphertexts: List[bytes], secret: CandidateSecret) -> List[NonceSeedPair]:
    """
    Try every ciphertext and collect the ones that open.

    Args:
        ciphertexts: Bucket records in file order
        secret: Candidate private key

    Returns:
        Decrypted pairs in file order (possibly empty)
    """
    results = []

    for ct in ciphertexts:
        plaintext = secret.try_decrypt(ct)
        if plaintext is None:
            continue
        results.append(NonceSeedPair.decode(plaintext))

    return results


class NonceResolver:
    """Finds the nonces sealed to a key in its bucket."""

    def __init__(self, store: AllocationTreeStore, events: EventEmitter = None):
        self.store = store
        self.events = events or store.events
        self.logger = logging.getLogger(__name__)

    def resolve(self, bucket: int, secret: CandidateSecret) -> List[NonceSeedPair]:
        """
        Scan a bucket with a candidate secret.

        Args:
            bucket: Bucket index of the original (untransformed) key
            secret: Candidate private key

        Returns:
            All decrypted pairs, in file order

        Raises:
            NonceNotFoundError: If no record in the bucket opens
        """
        ciphertexts = self.store.read_nonce_bucket(bucket)
        self.events.emit(RedemptionEventType.NONCE_SCAN_STARTED, bucket=bucket, records=len(ciphertexts))

        pairs = scan_bucket(ciphertexts, secret)

        if not pairs:
            self.logger.info(f"No nonce in bucket {bucket} ({len(ciphertexts)} records)")
            raise NonceNotFoundError(bucket)

        self.events.emit(RedemptionEventType.NONCE_FOUND, bucket=bucket, count=len(pairs))
        return pairs
