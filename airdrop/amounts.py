"""
Fixed-point amount parsing.

Amounts are integers of the smallest unit, six decimal places below one
coin.
"""

from decimal import Decimal, InvalidOperation

from .exceptions import AirdropError


DECIMALS = 6
UNIT = 10 ** DECIMALS

# u64 fee field
MAX_AMOUNT = 2 ** 64 - 1


class AmountError(AirdropError):
    """Raised when an amount string cannot be represented."""
    pass


def parse_amount(value: str, decimals: int = DECIMALS) -> int:
    """
    Parse a decimal string into base units.

    Args:
        value: Amount such as "0.1" or "25"
        decimals: Number of fractional digits

    Returns:
        Amount in base units

    Raises:
        AmountError: On negative, over-precise, non-numeric or oversized input
    """
    if not isinstance(value, str):
        value = str(value)

    try:
        amount = Decimal(value.strip())
    except InvalidOperation:
        raise AmountError(f"Invalid amount: {value!r}")

    if not amount.is_finite() or amount < 0:
        raise AmountError(f"Invalid amount: {value!r}")

    scaled = amount.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise AmountError(f"Amount has more than {decimals} decimal places: {value!r}")

    result = int(scaled)
    if result > MAX_AMOUNT:
        raise AmountError(f"Amount too large: {value!r}")

    return result


def format_amount(units: int, decimals: int = DECIMALS) -> str:
    """Render base units as a decimal string."""
    if units < 0:
        raise AmountError("Amount cannot be negative")

    whole, fraction = divmod(units, 10 ** decimals)
    if not fraction:
        return str(whole)
    return f"{whole}.{fraction:0{decimals}d}".rstrip('0')
