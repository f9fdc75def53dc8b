"""
Airdrop Prover - Allocation Keys

An allocation key is a tagged variant over its origin. PGP and SSH keys
carry a secp256k1 point and a published nonce field; address keys carry a
bech32 program with the value and sponsor flag from the proof mapping.
Every variant exposes the same surface: encode(), hash(), bucket() and the
redemption metadata.

Key encoding:
    pgp/ssh:  u8 origin | 33-byte compressed point | 32-byte nonce
    address:  u8 origin | u8 version | u8 length | hash | u64 value | u8 sponsor
"""

import struct
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from crypto import ecies
from crypto.address import parse_address
from crypto.exceptions import DecryptionError, InvalidKeyError
from crypto.hashing import blake2b256, sha256
from crypto.keys import PrivateKey, PublicKey

from .exceptions import AddressNotFoundError
from .params import BUCKET_COUNT


NONCE_SIZE = 32
ZERO_NONCE = b'\x00' * NONCE_SIZE


class KeyOrigin(IntEnum):
    """Where a registered key came from."""
    ADDRESS = 0
    PGP = 1
    SSH = 2

    @classmethod
    def from_name(cls, name: str) -> 'KeyOrigin':
        try:
            return cls[name.upper()]
        except KeyError:
            raise InvalidKeyError(f"Unknown key origin: {name}")


@dataclass(frozen=True)
class AllocationKey:
    """
    A registered key or address as it appears in the allocation data.

    Instances are immutable; applying a nonce or tweak returns a new key.
    """
    origin: KeyOrigin
    public_key: Optional[PublicKey] = None
    nonce: bytes = ZERO_NONCE
    address_version: int = 0
    address_hash: bytes = b''
    value: int = 0
    sponsor: bool = False
    # Scalar added to the point by apply_tweak; not part of the encoding
    tweak: Optional[bytes] = field(default=None, compare=False)

    def __post_init__(self):
        """Validate the variant's fields."""
        if self.is_address:
            if self.public_key is not None:
                raise InvalidKeyError("Address keys have no public key")
            if not 0 <= self.address_version <= 255:
                raise InvalidKeyError("Invalid address version")
            if not 2 <= len(self.address_hash) <= 40:
                raise InvalidKeyError("Invalid address hash size")
            if self.value < 0:
                raise InvalidKeyError("Address value cannot be negative")
        else:
            if not isinstance(self.public_key, PublicKey):
                raise InvalidKeyError(f"{self.origin.name} keys require a public key")
            if len(self.nonce) != NONCE_SIZE:
                raise InvalidKeyError("Nonce must be 32 bytes")

    @property
    def is_address(self) -> bool:
        return self.origin == KeyOrigin.ADDRESS

    def encode(self) -> bytes:
        """Serialize the key as committed in the allocation data."""
        if self.is_address:
            return (
                struct.pack('>BBB', self.origin, self.address_version, len(self.address_hash))
                + self.address_hash
                + struct.pack('>QB', self.value, 1 if self.sponsor else 0)
            )

        return struct.pack('>B', self.origin) + self.public_key.bytes + self.nonce

    @classmethod
    def decode(cls, data: bytes) -> 'AllocationKey':
        """
        Parse an encoded key.

        Raises:
            InvalidKeyError: If the encoding is malformed
        """
        if not data:
            raise InvalidKeyError("Empty key encoding")

        try:
            origin = KeyOrigin(data[0])
        except ValueError:
            raise InvalidKeyError(f"Unknown key origin byte: {data[0]}")

        if origin == KeyOrigin.ADDRESS:
            if len(data) < 3:
                raise InvalidKeyError("Truncated address key")
            version, size = data[1], data[2]
            if len(data) != 3 + size + 9:
                raise InvalidKeyError("Invalid address key length")
            address_hash = data[3:3 + size]
            value, sponsor = struct.unpack('>QB', data[3 + size:])
            if sponsor > 1:
                raise InvalidKeyError("Invalid sponsor flag")
            return cls(
                origin=origin,
                address_version=version,
                address_hash=address_hash,
                value=value,
                sponsor=bool(sponsor),
            )

        if len(data) != 1 + 33 + NONCE_SIZE:
            raise InvalidKeyError(f"Invalid {origin.name} key length")

        return cls(origin=origin, public_key=PublicKey(data[1:34]), nonce=data[34:])

    def hash(self) -> bytes:
        """Leaf hash of this key in the allocation data."""
        return blake2b256(self.encode())

    def bucket(self) -> int:
        """Nonce bucket holding this key's encrypted nonces."""
        return sha256(self.hash())[0] % BUCKET_COUNT

    def apply_nonce(self, nonce: bytes) -> 'AllocationKey':
        """Publish the nonce in the key's nonce field (bare mode)."""
        if self.is_address:
            raise InvalidKeyError("Cannot apply a nonce to an address key")
        if len(nonce) != NONCE_SIZE:
            raise InvalidKeyError("Nonce must be 32 bytes")
        return replace(self, nonce=nonce)

    def apply_tweak(self, nonce: bytes) -> 'AllocationKey':
        """Blind the public point by nonce * G."""
        if self.is_address:
            raise InvalidKeyError("Cannot tweak an address key")
        return replace(self, public_key=self.public_key.tweak_add(nonce), tweak=nonce)

    def signing_key(self, secret: 'CandidateSecret') -> PrivateKey:
        """
        Derive the private key matching this (possibly tweaked) key.

        Raises:
            InvalidKeyError: If the secret does not belong to this key
        """
        if self.is_address:
            raise InvalidKeyError("Address keys do not sign")

        private_key = secret.private_key
        if self.tweak is not None:
            private_key = private_key.tweak_add(self.tweak)

        if private_key.public_key() != self.public_key:
            raise InvalidKeyError("Secret does not match key")

        return private_key

    def verify(self, message_hash: bytes, signature: bytes) -> bool:
        """Verify a signature made by this key."""
        if self.is_address:
            return False
        return self.public_key.verify(signature, message_hash)

    def to_json(self) -> Dict[str, Any]:
        if self.is_address:
            return {
                'origin': self.origin.name.lower(),
                'version': self.address_version,
                'address': self.address_hash.hex(),
                'value': self.value,
                'sponsor': self.sponsor,
            }
        return {
            'origin': self.origin.name.lower(),
            'public_key': self.public_key.hex,
            'nonce': self.nonce.hex(),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'AllocationKey':
        origin = KeyOrigin.from_name(data['origin'])

        if origin == KeyOrigin.ADDRESS:
            return cls(
                origin=origin,
                address_version=int(data['version']),
                address_hash=bytes.fromhex(data['address']),
                value=int(data['value']),
                sponsor=bool(data['sponsor']),
            )

        return cls(
            origin=origin,
            public_key=PublicKey(bytes.fromhex(data['public_key'])),
            nonce=bytes.fromhex(data.get('nonce', ZERO_NONCE.hex())),
        )

    @classmethod
    def from_public_key(cls, origin: KeyOrigin, public_key: PublicKey) -> 'AllocationKey':
        return cls(origin=origin, public_key=public_key)

    @classmethod
    def from_address(cls, address: str, value: int, sponsor: bool) -> 'AllocationKey':
        version, address_hash = parse_address(address)
        return cls(
            origin=KeyOrigin.ADDRESS,
            address_version=version,
            address_hash=address_hash,
            value=value,
            sponsor=sponsor,
        )


@dataclass(frozen=True)
class CandidateSecret:
    """Private counterpart of a registered PGP or SSH key."""
    private_key: PrivateKey

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Open a nonce record, raising DecryptionError on failure."""
        return ecies.decrypt(self.private_key, ciphertext)

    def try_decrypt(self, ciphertext: bytes) -> Optional[bytes]:
        """Open a nonce record, returning None when it belongs to another key."""
        try:
            return self.decrypt(ciphertext)
        except DecryptionError:
            return None


def load_key_material(document: Dict[str, Any]) -> Tuple[AllocationKey, Optional[CandidateSecret]]:
    """
    Build a key and optional secret from normalized key material.

    Args:
        document: {"origin": "pgp"|"ssh", "public_key": hex, "private_key": hex|None}

    Returns:
        Tuple of (key, secret)
    """
    try:
        origin = KeyOrigin.from_name(document['origin'])
        public_hex = document.get('public_key')
        private_hex = document.get('private_key')
    except (KeyError, AttributeError) as e:
        raise InvalidKeyError(f"Malformed key material: {e}")

    if origin == KeyOrigin.ADDRESS:
        raise InvalidKeyError("Address keys are read from the proof mapping")

    try:
        secret = CandidateSecret(PrivateKey(bytes.fromhex(private_hex))) if private_hex else None
        if public_hex:
            public_key = PublicKey(bytes.fromhex(public_hex))
        elif secret is not None:
            public_key = secret.private_key.public_key()
        else:
            raise InvalidKeyError("Key material has neither public nor private key")
    except ValueError as e:
        raise InvalidKeyError(f"Malformed key material: {e}")

    if secret is not None and secret.private_key.public_key() != public_key:
        raise InvalidKeyError("Private key does not match public key")

    return AllocationKey.from_public_key(origin, public_key), secret


def read_entries(address: str, mapping: Iterable[Sequence[Any]]) -> List[AllocationKey]:
    """
    Collect the proof-mapping rows belonging to an address.

    Args:
        address: Target bech32 address
        mapping: Rows of [address, value, sponsor]

    Returns:
        One address key per matching row, in mapping order

    Raises:
        AddressNotFoundError: If no row matches
    """
    _, target = parse_address(address)
    entries = []

    for row_address, value, sponsor in mapping:
        _, row_hash = parse_address(row_address)

        if row_hash != target:
            continue

        entries.append(AllocationKey.from_address(address, int(value), bool(sponsor)))

    if not entries:
        raise AddressNotFoundError("Address is not a faucet or sponsor address.")

    return entries
