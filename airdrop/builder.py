"""
Airdrop Prover - Proof Assembler

Builds redemption proofs along two paths:

- Key path (PGP/SSH): resolve nonces, transform the key per nonce, locate
  it in the main tree, diff its subtree, build both branches, sign and
  self-verify.
- Address path: locate the address key in the faucet list and build a
  single unsigned branch.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from crypto.address import parse_address

from .differ import SubtreeDiffer
from .events import EventEmitter, RedemptionEventType
from .exceptions import (
    AirdropError,
    FeeExceedsValueError,
    LeafNotFoundError,
    NotFoundError,
    PolicyError,
    ProofVerificationError,
)
from .index import FaucetIndex, MainIndex
from .key import AllocationKey, CandidateSecret
from .nonces import NonceResolver
from .proof import ProofVerifier, RedemptionProof
from .store import AllocationTreeStore
from .transform import TransformMode, transform_key


@dataclass(frozen=True)
class RedemptionTarget:
    """Address and fee a key-origin redemption pays out to."""
    version: int
    address_hash: bytes
    fee: int

    @classmethod
    def from_address(cls, address: str, fee: int) -> 'RedemptionTarget':
        """
        Validate a bech32 target address.

        Raises:
            AddressError: If the address is not an acceptable target
        """
        version, address_hash = parse_address(address)
        return cls(version=version, address_hash=address_hash, fee=fee)


class ProofAssembler:
    """
    Builds and self-verifies redemption proofs.
    """

    def __init__(self, store: AllocationTreeStore,
                 mode: TransformMode = TransformMode.TWEAKED,
                 events: Optional[EventEmitter] = None):
        """
        Initialize assembler.

        Args:
            store: Checksum-pinned allocation data
            mode: Key transform mode for the whole run
            events: Event emitter (defaults to the store's)
        """
        self.store = store
        self.params = store.params
        self.mode = mode
        self.events = events or store.events
        self.logger = logging.getLogger(__name__)

        self.resolver = NonceResolver(store, self.events)
        self.differ = SubtreeDiffer(self.events)

        self._main_index: Optional[MainIndex] = None
        self._faucet_index: Optional[FaucetIndex] = None

    @property
    def main_index(self) -> MainIndex:
        if self._main_index is None:
            tree = self.store.read_main_tree()
            self._main_index = MainIndex(tree, self.params.tree_root)
            self.events.emit(RedemptionEventType.TREE_REBUILT, tree='main',
                             leaves=len(tree), root=self._main_index.root.hex())
        return self._main_index

    @property
    def faucet_index(self) -> FaucetIndex:
        if self._faucet_index is None:
            leaves = self.store.read_faucet_list()
            self._faucet_index = FaucetIndex(leaves, self.params.faucet_root)
            self.events.emit(RedemptionEventType.TREE_REBUILT, tree='faucet',
                             leaves=len(leaves), root=self._faucet_index.root.hex())
        return self._faucet_index

    def verifier(self, need_main: bool = False, need_faucet: bool = False) -> ProofVerifier:
        """Verifier bound to the roots rebuilt from the loaded data."""
        return ProofVerifier(
            self.params,
            tree_root=self.main_index.root if need_main else None,
            faucet_root=self.faucet_index.root if need_faucet else None,
        )

    def create_key_proofs(self, key: AllocationKey, secret: CandidateSecret,
                          target: RedemptionTarget) -> List[RedemptionProof]:
        """
        Build one signed proof per nonce sealed to a PGP/SSH key.

        Args:
            key: Original registered key
            secret: Matching private key
            target: Payout address and fee

        Returns:
            Proofs in bucket order

        Raises:
            NonceNotFoundError: If the key's bucket holds nothing for the secret
            LeafNotFoundError: If a transformed key is absent from the main tree
            FeeExceedsValueError: If the fee is larger than the entry value
            ProofVerificationError: If a built proof fails verification
        """
        if key.is_address:
            raise AirdropError("Address keys redeem through the faucet path")

        pairs = self.resolver.resolve(key.bucket(), secret)
        index = self.main_index
        verifier = self.verifier(need_main=True)
        proofs = []

        for reward, pair in enumerate(pairs):
            redeem_key = transform_key(key, pair.nonce, self.mode)
            key_hash = redeem_key.hash()

            location = index.find(key_hash)
            if location is None:
                raise LeafNotFoundError('main tree', key_hash)

            i, j = location
            self.events.emit(RedemptionEventType.LEAF_LOCATED, reward=reward, index=i, subindex=j)

            self.differ.diff(index.subtree(i), pair.seed, key_hash, index=i)

            proof = RedemptionProof(
                index=i,
                branch=index.branch(i),
                subindex=j,
                subbranch=index.subbranch(i, j),
                key=redeem_key.encode(),
                version=target.version,
                address=target.address_hash,
                fee=target.fee,
            )

            value = proof.get_value(self.params)
            if proof.fee > value:
                raise FeeExceedsValueError(proof.fee, value)

            proof.sign(redeem_key, secret)
            self.events.emit(RedemptionEventType.PROOF_SIGNED, index=i, subindex=j)

            if not verifier.verify(proof):
                raise ProofVerificationError(f"Proof {i}:{j} failed verification.")

            self.events.emit(RedemptionEventType.PROOF_CREATED, index=i, subindex=j, fee=proof.fee)
            proofs.append(proof)

        return proofs

    def create_addr_proof(self, entry: AllocationKey, fee: Optional[int] = None) -> RedemptionProof:
        """
        Build the proof for one address entry.

        Args:
            entry: Address key from the proof mapping
            fee: Requested fee; defaults to the sponsor/ordinary ceiling

        Raises:
            LeafNotFoundError: If the entry is absent from the faucet list
            FeeExceedsValueError: If the fee is above the ceiling or the entry value
            ProofVerificationError: If the built proof fails verification
        """
        if not entry.is_address:
            raise AirdropError("Only address keys redeem through the faucet path")

        index = self.faucet_index
        key_hash = entry.hash()

        position = index.find(key_hash)
        if position is None:
            raise LeafNotFoundError('faucet list', key_hash)

        self.events.emit(RedemptionEventType.LEAF_LOCATED, index=position)

        ceiling = self.params.value_for(entry.sponsor)
        if fee is None:
            fee = ceiling
        elif fee > ceiling:
            raise FeeExceedsValueError(fee, ceiling)

        proof = RedemptionProof(
            index=position,
            branch=index.branch(position),
            key=entry.encode(),
            version=entry.address_version,
            address=entry.address_hash,
            fee=fee,
        )

        value = proof.get_value(self.params)
        if proof.fee > value:
            raise FeeExceedsValueError(proof.fee, value)

        if not self.verifier(need_faucet=True).verify(proof):
            raise ProofVerificationError(f"Proof {position} failed verification.")

        self.events.emit(RedemptionEventType.PROOF_CREATED, index=position, fee=proof.fee)
        return proof

    def create_addr_proofs(self, entries: Sequence[AllocationKey],
                           fee: Optional[int] = None) -> List[RedemptionProof]:
        """Build proofs for every entry, stopping at the first failure."""
        return [self.create_addr_proof(entry, fee) for entry in entries]

    def collect_addr_proofs(self, entries: Sequence[AllocationKey], fee: Optional[int] = None
                            ) -> Tuple[List[RedemptionProof], List[Tuple[AllocationKey, AirdropError]]]:
        """
        Build proofs for every entry, keeping going past failures.

        Returns:
            Tuple of (proofs, [(entry, error), ...])
        """
        proofs = []
        failures = []

        # Integrity failures abort the whole batch
        self.faucet_index

        for entry in entries:
            try:
                proofs.append(self.create_addr_proof(entry, fee))
            except (NotFoundError, PolicyError) as e:
                self.logger.warning(f"Entry {entry.address_hash.hex()} failed: {e}")
                failures.append((entry, e))

        return proofs, failures
