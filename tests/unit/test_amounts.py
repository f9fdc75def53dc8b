"""
Tests for fixed-point amount parsing.
"""

import pytest

from airdrop.amounts import MAX_AMOUNT, AmountError, format_amount, parse_amount


class TestParseAmount:
    """Test decimal string parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("0", 0),
        ("0.1", 100_000),
        ("1", 1_000_000),
        ("25", 25_000_000),
        ("0.000001", 1),
        (" 2.5 ", 2_500_000),
        ("1e2", 100_000_000),
    ])
    def test_valid(self, value, expected):
        assert parse_amount(value) == expected

    def test_non_string_input(self):
        assert parse_amount(3) == 3_000_000

    @pytest.mark.parametrize("value", ["", "abc", "-1", "NaN", "inf", "0.0000001"])
    def test_invalid(self, value):
        with pytest.raises(AmountError):
            parse_amount(value)

    def test_precision_message(self):
        with pytest.raises(AmountError, match="more than 6 decimal places"):
            parse_amount("1.1234567")

    def test_upper_bound(self):
        assert parse_amount(str(MAX_AMOUNT), decimals=0) == MAX_AMOUNT

        with pytest.raises(AmountError, match="too large"):
            parse_amount(str(MAX_AMOUNT + 1), decimals=0)

    def test_custom_decimals(self):
        assert parse_amount("1.5", decimals=2) == 150


class TestFormatAmount:
    """Test base unit rendering."""

    @pytest.mark.parametrize("units,expected", [
        (0, "0"),
        (100_000, "0.1"),
        (1_000_000, "1"),
        (500_000_000, "500"),
        (1, "0.000001"),
        (1_234_500, "1.2345"),
    ])
    def test_format(self, units, expected):
        assert format_amount(units) == expected
        assert parse_amount(expected) == units

    def test_negative(self):
        with pytest.raises(AmountError):
            format_amount(-1)
