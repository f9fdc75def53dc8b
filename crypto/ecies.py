"""
ECIES Envelopes for Nonce Records

Each nonce bucket record is sealed to one registered public key:

    ephemeral_pubkey (33) || ciphertext || tag (16)

The AES-256-GCM key and IV come from HKDF-SHA256 over the ECDH secret,
salted with the ephemeral public key. Opening a record with the wrong
private key fails tag verification.
"""

from typing import Optional

from Crypto.Cipher import AES

from .exceptions import DecryptionError, InvalidKeyError
from .hashing import hkdf_sha256
from .keys import PrivateKey, PublicKey


EPHEMERAL_SIZE = 33
TAG_SIZE = 16
IV_SIZE = 12
AES_KEY_SIZE = 32
ENVELOPE_INFO = b'airdrop-nonce'


def _derive_cipher(shared: bytes, ephemeral: bytes):
    material = hkdf_sha256(shared, AES_KEY_SIZE + IV_SIZE, salt=ephemeral, info=ENVELOPE_INFO)
    return AES.new(material[:AES_KEY_SIZE], AES.MODE_GCM, nonce=material[AES_KEY_SIZE:])


def encrypt(public_key: PublicKey, plaintext: bytes,
            ephemeral: Optional[PrivateKey] = None) -> bytes:
    """
    Seal plaintext to a public key.

    Args:
        public_key: Recipient key
        plaintext: Data to seal
        ephemeral: Ephemeral key (random when omitted)

    Returns:
        Envelope bytes
    """
    ephemeral = ephemeral or PrivateKey()
    ephemeral_bytes = ephemeral.public_key().bytes

    cipher = _derive_cipher(ephemeral.ecdh(public_key), ephemeral_bytes)
    ciphertext, tag = cipher.encrypt_and_digest(plaintext)

    return ephemeral_bytes + ciphertext + tag


def decrypt(private_key: PrivateKey, envelope: bytes) -> bytes:
    """
    Open an envelope.

    Args:
        private_key: Recipient private key
        envelope: Envelope bytes

    Returns:
        Plaintext

    Raises:
        DecryptionError: If the envelope is malformed or not addressed to this key
    """
    if len(envelope) < EPHEMERAL_SIZE + TAG_SIZE:
        raise DecryptionError("Envelope too short")

    ephemeral_bytes = envelope[:EPHEMERAL_SIZE]
    ciphertext = envelope[EPHEMERAL_SIZE:-TAG_SIZE]
    tag = envelope[-TAG_SIZE:]

    try:
        ephemeral = PublicKey(ephemeral_bytes)
    except InvalidKeyError as e:
        raise DecryptionError(f"Invalid ephemeral key: {e}")

    cipher = _derive_cipher(private_key.ecdh(ephemeral), ephemeral_bytes)

    try:
        return cipher.decrypt_and_verify(ciphertext, tag)
    except ValueError:
        raise DecryptionError("MAC check failed")
