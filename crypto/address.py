"""
Bech32 Address Handling

Redemption targets are version 0 bech32 addresses on one of the
Handshake networks.
"""

from typing import Tuple

import bech32

from .exceptions import AddressError


# main, testnet, regtest
ALLOWED_HRPS = ('hs', 'ts', 'rs')
ALLOWED_HASH_SIZES = (20, 32)


def decode_address(addr: str) -> Tuple[str, int, bytes]:
    """
    Decode a bech32 address without policy checks.

    Returns:
        Tuple of (hrp, version, hash)
    """
    if not isinstance(addr, str):
        raise AddressError("Address must be a string")

    hrp, data = bech32.bech32_decode(addr)
    if hrp is None or not data:
        raise AddressError(f"Invalid bech32 string: {addr}")

    program = bech32.convertbits(data[1:], 5, 8, False)
    if program is None:
        raise AddressError(f"Invalid bech32 padding: {addr}")

    return hrp, data[0], bytes(program)


def parse_address(addr: str) -> Tuple[int, bytes]:
    """
    Decode and validate a redemption address.

    Args:
        addr: Bech32 address string

    Returns:
        Tuple of (version, hash)

    Raises:
        AddressError: On a bad checksum, HRP, version or hash size
    """
    hrp, version, hash_ = decode_address(addr)

    if hrp not in ALLOWED_HRPS:
        raise AddressError("Invalid address HRP.")

    if version != 0:
        raise AddressError("Invalid address version.")

    if len(hash_) not in ALLOWED_HASH_SIZES:
        raise AddressError("Invalid address.")

    return version, hash_


def encode_address(hrp: str, version: int, hash_: bytes) -> str:
    """Encode a witness program as a bech32 address."""
    data = bech32.convertbits(list(hash_), 8, 5, True)
    if data is None:
        raise AddressError("Cannot convert address hash")
    return bech32.bech32_encode(hrp, [version] + data)


def is_address(value: str) -> bool:
    """Check whether a string decodes as bech32."""
    try:
        decode_address(value)
    except AddressError:
        return False
    return True
