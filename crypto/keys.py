"""
secp256k1 Key Operations for the Airdrop Prover

This module wraps coincurve private/public keys with the operations the
redemption flow needs: signing, ECDH for nonce decryption and additive
tweaking for key blinding.
"""

import secrets
from typing import Optional, Union
from coincurve import PrivateKey as CoinCurvePrivateKey, PublicKey as CoinCurvePublicKey

from .exceptions import InvalidKeyError


CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def scalar_from_bytes(data: bytes) -> int:
    """
    Interpret 32 bytes as a non-zero scalar below the curve order.

    Args:
        data: 32-byte big-endian scalar

    Returns:
        Scalar as integer
    """
    if not isinstance(data, bytes) or len(data) != 32:
        raise InvalidKeyError("Scalar must be 32 bytes")

    value = int.from_bytes(data, 'big')
    if value == 0 or value >= CURVE_ORDER:
        raise InvalidKeyError("Scalar out of valid range")

    return value


class PrivateKey:
    """
    Wrapper for private key operations.
    """

    def __init__(self, key_bytes: Optional[bytes] = None):
        """
        Initialize private key.

        Args:
            key_bytes: 32-byte private key. If None, generates random key.
        """
        if key_bytes is None:
            key_bytes = secrets.randbits(256).to_bytes(32, 'big')
            while int.from_bytes(key_bytes, 'big') == 0 or \
                  int.from_bytes(key_bytes, 'big') >= CURVE_ORDER:
                key_bytes = secrets.randbits(256).to_bytes(32, 'big')

        if not isinstance(key_bytes, bytes) or len(key_bytes) != 32:
            raise InvalidKeyError("Private key must be 32 bytes")

        key_int = int.from_bytes(key_bytes, 'big')
        if key_int == 0 or key_int >= CURVE_ORDER:
            raise InvalidKeyError("Private key out of valid range")

        try:
            self._key = CoinCurvePrivateKey(key_bytes)
        except ValueError as e:
            raise InvalidKeyError(f"Failed to create private key: {e}")

    @property
    def bytes(self) -> bytes:
        """Get private key as bytes."""
        return self._key.secret

    @property
    def hex(self) -> str:
        """Get private key as hex string."""
        return self._key.secret.hex()

    def public_key(self) -> 'PublicKey':
        """Get corresponding public key."""
        return PublicKey(self._key.public_key)

    def sign(self, message_hash: bytes) -> bytes:
        """
        Sign a message hash.

        Args:
            message_hash: 32-byte message hash to sign

        Returns:
            DER-encoded signature
        """
        if len(message_hash) != 32:
            raise InvalidKeyError("Message hash must be 32 bytes")
        return self._key.sign(message_hash, hasher=None)

    def ecdh(self, public_key: 'PublicKey') -> bytes:
        """
        Compute the ECDH shared secret with another party's public key.

        Returns:
            32-byte SHA-256 digest of the compressed shared point
        """
        return self._key.ecdh(public_key.bytes)

    def tweak_add(self, tweak: bytes) -> 'PrivateKey':
        """
        Add tweak to private key.

        Args:
            tweak: 32-byte tweak value

        Returns:
            Tweaked private key
        """
        tweak_int = scalar_from_bytes(tweak)

        # (priv + tweak) mod n
        priv_int = int.from_bytes(self.bytes, 'big')
        tweaked_int = (priv_int + tweak_int) % CURVE_ORDER

        if tweaked_int == 0:
            raise InvalidKeyError("Tweaked key is zero")

        return PrivateKey(tweaked_int.to_bytes(32, 'big'))

    def __eq__(self, other) -> bool:
        return isinstance(other, PrivateKey) and self.bytes == other.bytes

    def __repr__(self) -> str:
        return f"PrivateKey(public={self.public_key().hex})"


class PublicKey:
    """
    Wrapper for public key operations.
    """

    def __init__(self, key_data: Union[bytes, CoinCurvePublicKey]):
        """
        Initialize public key.

        Args:
            key_data: Public key bytes (33 or 65 bytes) or CoinCurvePublicKey
        """
        if isinstance(key_data, CoinCurvePublicKey):
            self._key = key_data
            return

        if not isinstance(key_data, bytes):
            raise InvalidKeyError("Public key data must be bytes")
        if len(key_data) not in [33, 65]:
            raise InvalidKeyError("Public key must be 33 or 65 bytes")

        try:
            self._key = CoinCurvePublicKey(key_data)
        except ValueError as e:
            raise InvalidKeyError(f"Failed to create public key: {e}")

    @property
    def bytes(self) -> bytes:
        """Get compressed public key as bytes."""
        return self._key.format(compressed=True)

    @property
    def hex(self) -> str:
        """Get compressed public key as hex string."""
        return self.bytes.hex()

    def verify(self, signature: bytes, message_hash: bytes) -> bool:
        """
        Verify signature against message hash.

        Args:
            signature: DER-encoded signature
            message_hash: 32-byte message hash

        Returns:
            True if signature is valid
        """
        if len(message_hash) != 32 or not signature:
            return False
        try:
            return self._key.verify(signature, message_hash, hasher=None)
        except ValueError:
            # Unparseable DER
            return False

    def tweak_add(self, tweak: bytes) -> 'PublicKey':
        """
        Add tweak * G to the public point.

        Args:
            tweak: 32-byte tweak value

        Returns:
            Tweaked public key
        """
        scalar_from_bytes(tweak)

        try:
            tweak_public = CoinCurvePrivateKey(tweak).public_key
            tweaked_point = CoinCurvePublicKey.combine_keys([self._key, tweak_public])
        except ValueError as e:
            raise InvalidKeyError(f"Failed to tweak public key: {e}")

        return PublicKey(tweaked_point)

    def __eq__(self, other) -> bool:
        return isinstance(other, PublicKey) and self.bytes == other.bytes

    def __hash__(self) -> int:
        return hash(self.bytes)

    def __repr__(self) -> str:
        return f"PublicKey({self.hex})"
