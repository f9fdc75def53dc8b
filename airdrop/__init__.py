"""
Airdrop Prover - Allocation Tree Engine

Builds and verifies redemption proofs against a published two-level
allocation tree:
- Checksum-pinned loading of the tree, faucet list, nonce buckets and proof mapping
- Nonce discovery by trial decryption of a key's bucket
- Bare or tweaked key transforms
- Subtree filler detection
- Proof assembly, signing and verification
"""

from .exceptions import (
    AirdropError,
    IntegrityError,
    ChecksumError,
    FormatError,
    LeafCountError,
    RootMismatchError,
    NotFoundError,
    LeafNotFoundError,
    NonceNotFoundError,
    AddressNotFoundError,
    PolicyError,
    FeeExceedsValueError,
    InconsistencyError,
    ProofVerificationError,
)
from .params import NetworkParams, PRODUCTION, DEVELOPMENT
from .events import EventEmitter, RedemptionEvent, RedemptionEventType
from .key import AllocationKey, CandidateSecret, KeyOrigin, load_key_material, read_entries
from .store import AllocationTreeStore, Artifact, ArtifactKind
from .index import MainIndex, FaucetIndex, build_main_index, find_in_main, find_in_faucet
from .nonces import NonceResolver, NonceSeedPair
from .transform import TransformMode, transform_key
from .differ import SubtreeDiffer, SubtreeReport, derive_subleaves, diff_subtree
from .proof import RedemptionProof, ProofVerifier
from .builder import ProofAssembler, RedemptionTarget
from .amounts import parse_amount, format_amount

__version__ = "0.1.0"
__all__ = [
    # Exceptions
    "AirdropError",
    "IntegrityError",
    "ChecksumError",
    "FormatError",
    "LeafCountError",
    "RootMismatchError",
    "NotFoundError",
    "LeafNotFoundError",
    "NonceNotFoundError",
    "AddressNotFoundError",
    "PolicyError",
    "FeeExceedsValueError",
    "InconsistencyError",
    "ProofVerificationError",

    # Configuration and events
    "NetworkParams",
    "PRODUCTION",
    "DEVELOPMENT",
    "EventEmitter",
    "RedemptionEvent",
    "RedemptionEventType",

    # Keys
    "AllocationKey",
    "CandidateSecret",
    "KeyOrigin",
    "load_key_material",
    "read_entries",

    # Engine
    "AllocationTreeStore",
    "Artifact",
    "ArtifactKind",
    "MainIndex",
    "FaucetIndex",
    "build_main_index",
    "find_in_main",
    "find_in_faucet",
    "NonceResolver",
    "NonceSeedPair",
    "TransformMode",
    "transform_key",
    "SubtreeDiffer",
    "SubtreeReport",
    "derive_subleaves",
    "diff_subtree",
    "RedemptionProof",
    "ProofVerifier",
    "ProofAssembler",
    "RedemptionTarget",

    # Amounts
    "parse_amount",
    "format_amount",
]
