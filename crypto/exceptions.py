"""
Cryptographic Exceptions for the Airdrop Prover

Errors raised by the key, digest, envelope and address primitives. The
redemption engine maps some of them onto its own error kinds.
"""


class CryptoError(Exception):
    """Base exception for all cryptographic errors."""
    pass


class InvalidKeyError(CryptoError):
    """Raised when a key, scalar or key material document is malformed."""
    pass


class DerivationError(CryptoError):
    """Raised when HKDF is asked for an impossible output length."""
    pass


class DecryptionError(CryptoError):
    """Raised when a nonce envelope cannot be opened with the given key."""
    pass


class AddressError(CryptoError):
    """Raised when an address fails to decode or is not an acceptable target."""
    pass
