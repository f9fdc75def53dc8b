"""
Airdrop Prover - Redemption Proof

A redemption proof carries the inclusion branch(es) for one allocation
entry, the redemption key, the target address, the fee and, for PGP/SSH
keys, a signature by the redemption key.

Binary encoding (big-endian):
    u32 index
    u8 n, n * 32 branch
    u8 subindex
    u8 m, m * 32 subbranch
    u16 keylen, key
    u8 version
    u8 addrlen, address
    u64 fee
    u8 siglen, signature

The signature covers BLAKE2b-256 of the encoding with an empty signature.
"""

import base64
import binascii
import logging
import struct
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from crypto.exceptions import InvalidKeyError
from crypto.hashing import blake2b256, HASH_SIZE
from crypto.merkle import derive_root

from .exceptions import FormatError
from .key import AllocationKey, CandidateSecret
from .params import NetworkParams


logger = logging.getLogger(__name__)

MAX_BRANCH = 0xff
MAX_KEY_SIZE = 0xffff
MAX_SIGNATURE_SIZE = 0xff


@dataclass
class RedemptionProof:
    """
    Proof of eligibility for one allocation entry.

    Built field by field by the assembler, then signed and verified.
    """
    index: int = 0
    branch: List[bytes] = field(default_factory=list)
    subindex: int = 0
    subbranch: List[bytes] = field(default_factory=list)
    key: bytes = b''
    version: int = 0
    address: bytes = b''
    fee: int = 0
    signature: bytes = b''

    def get_key(self) -> Optional[AllocationKey]:
        """Decode the redemption key, or None if it is malformed."""
        try:
            return AllocationKey.decode(self.key)
        except InvalidKeyError:
            return None

    def is_address(self) -> bool:
        key = self.get_key()
        return key is not None and key.is_address

    def get_value(self, params: NetworkParams) -> int:
        """
        Value of the entry this proof redeems.

        Address entries carry their own value; PGP/SSH entries are worth the
        fixed reward.
        """
        key = self.get_key()
        if key is None:
            return 0
        if key.is_address:
            return key.value
        return params.value_for(key.sponsor)

    def encode(self, include_signature: bool = True) -> bytes:
        """
        Serialize the proof.

        Raises:
            FormatError: If a field does not fit its encoding
        """
        if not 0 <= self.index <= 0xffffffff:
            raise FormatError("Proof index out of range")
        if not 0 <= self.subindex <= 0xff:
            raise FormatError("Proof subindex out of range")
        if len(self.branch) > MAX_BRANCH or len(self.subbranch) > MAX_BRANCH:
            raise FormatError("Branch too long")
        if any(len(h) != HASH_SIZE for h in self.branch + self.subbranch):
            raise FormatError("Branch hashes must be 32 bytes")
        if len(self.key) > MAX_KEY_SIZE:
            raise FormatError("Key too large")
        if not 0 <= self.version <= 31:
            raise FormatError("Invalid address version")
        if not 2 <= len(self.address) <= 40:
            raise FormatError("Invalid address size")
        if not 0 <= self.fee <= 0xffffffffffffffff:
            raise FormatError("Fee out of range")

        signature = self.signature if include_signature else b''
        if len(signature) > MAX_SIGNATURE_SIZE:
            raise FormatError("Signature too large")

        out = bytearray()
        out += struct.pack('>IB', self.index, len(self.branch))
        out += b''.join(self.branch)
        out += struct.pack('>BB', self.subindex, len(self.subbranch))
        out += b''.join(self.subbranch)
        out += struct.pack('>H', len(self.key)) + self.key
        out += struct.pack('>BB', self.version, len(self.address)) + self.address
        out += struct.pack('>QB', self.fee, len(signature)) + signature

        return bytes(out)

    @classmethod
    def decode(cls, data: bytes) -> 'RedemptionProof':
        """
        Parse an encoded proof.

        Raises:
            FormatError: If the data is truncated or has trailing bytes
        """
        offset = 0

        def take(size: int) -> bytes:
            nonlocal offset
            if offset + size > len(data):
                raise FormatError("Truncated proof")
            chunk = data[offset:offset + size]
            offset += size
            return chunk

        def take_hashes(count: int) -> List[bytes]:
            return [take(HASH_SIZE) for _ in range(count)]

        index, count = struct.unpack('>IB', take(5))
        branch = take_hashes(count)
        subindex, count = struct.unpack('>BB', take(2))
        subbranch = take_hashes(count)
        key = take(struct.unpack('>H', take(2))[0])
        version, size = struct.unpack('>BB', take(2))
        address = take(size)
        fee, size = struct.unpack('>QB', take(9))
        signature = take(size)

        if offset != len(data):
            raise FormatError("Trailing bytes after proof")

        return cls(
            index=index,
            branch=branch,
            subindex=subindex,
            subbranch=subbranch,
            key=key,
            version=version,
            address=address,
            fee=fee,
            signature=signature,
        )

    def signing_hash(self) -> bytes:
        """Digest covered by the signature."""
        return blake2b256(self.encode(include_signature=False))

    def sign(self, key: AllocationKey, secret: CandidateSecret) -> None:
        """
        Sign the proof with the redemption key.

        Args:
            key: Transformed redemption key (must match self.key)
            secret: Private key of the original registration
        """
        if key.encode() != self.key:
            raise InvalidKeyError("Signing key does not match proof key")

        private_key = key.signing_key(secret)
        self.signature = private_key.sign(self.signing_hash())

    def to_base64(self) -> str:
        return base64.b64encode(self.encode()).decode('ascii')

    @classmethod
    def from_base64(cls, value: str) -> 'RedemptionProof':
        try:
            raw = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise FormatError(f"Invalid base64 proof: {e}")
        return cls.decode(raw)

    def to_json(self) -> Dict[str, Any]:
        key = self.get_key()
        return {
            'index': self.index,
            'proof': [h.hex() for h in self.branch],
            'subindex': self.subindex,
            'subproof': [h.hex() for h in self.subbranch],
            'key': key.to_json() if key else self.key.hex(),
            'version': self.version,
            'address': self.address.hex(),
            'fee': self.fee,
            'signature': self.signature.hex(),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'RedemptionProof':
        key = data['key']
        if isinstance(key, dict):
            key_bytes = AllocationKey.from_json(key).encode()
        else:
            key_bytes = bytes.fromhex(key)

        return cls(
            index=int(data['index']),
            branch=[bytes.fromhex(h) for h in data['proof']],
            subindex=int(data.get('subindex', 0)),
            subbranch=[bytes.fromhex(h) for h in data.get('subproof', [])],
            key=key_bytes,
            version=int(data['version']),
            address=bytes.fromhex(data['address']),
            fee=int(data['fee']),
            signature=bytes.fromhex(data.get('signature', '')),
        )


class ProofVerifier:
    """
    Checks proofs against the published roots.
    """

    def __init__(self, params: NetworkParams, tree_root: Optional[bytes] = None,
                 faucet_root: Optional[bytes] = None):
        """
        Initialize verifier.

        Args:
            params: Network parameters (entry values, pinned roots)
            tree_root: Main tree root; defaults to the pinned root
            faucet_root: Faucet root; defaults to the pinned root
        """
        self.params = params
        self.tree_root = tree_root or params.tree_root
        self.faucet_root = faucet_root or params.faucet_root

    def verify(self, proof: RedemptionProof) -> bool:
        """
        Verify inclusion, fee and signature.

        Returns:
            True if the proof is valid
        """
        key = proof.get_key()
        if key is None:
            logger.debug("Proof key does not decode")
            return False

        try:
            proof.encode()
        except FormatError as e:
            logger.debug(f"Proof does not encode: {e}")
            return False

        if proof.fee > proof.get_value(self.params):
            logger.debug("Proof fee exceeds value")
            return False

        if key.is_address:
            return self._verify_address(proof, key)

        return self._verify_key(proof, key)

    def _verify_address(self, proof: RedemptionProof, key: AllocationKey) -> bool:
        if self.faucet_root is None:
            return False

        if proof.subindex != 0 or proof.subbranch or proof.signature:
            return False

        root = derive_root(key.hash(), proof.branch, proof.index)
        return root == self.faucet_root

    def _verify_key(self, proof: RedemptionProof, key: AllocationKey) -> bool:
        if self.tree_root is None:
            return False

        subroot = derive_root(key.hash(), proof.subbranch, proof.subindex)
        root = derive_root(subroot, proof.branch, proof.index)

        if root != self.tree_root:
            logger.debug("Proof does not hash up to the main root")
            return False

        return key.verify(proof.signing_hash(), proof.signature)
