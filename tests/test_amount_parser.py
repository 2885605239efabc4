"""Tests for price parsing."""

import pytest
from decimal import Decimal

from subtrack.utils.amount_parser import parse_price


@pytest.mark.parametrize(
    "text,expected",
    [
        ("9.99", Decimal("9.99")),
        ("$9.99", Decimal("9.99")),
        ("1,234.56", Decimal("1234.56")),
        ("12 EUR", Decimal("12")),
        ("€4.50", Decimal("4.50")),
        ("0", Decimal("0")),
    ],
)
def test_parse_price(text, expected):
    """Test parsing supported price formats."""
    assert parse_price(text) == expected


def test_parse_price_keeps_precision():
    """Test that the parsed value is exactly what was written."""
    assert str(parse_price("0.10")) == "0.10"


@pytest.mark.parametrize("text", ["", "   ", "abc", "-1.00", "NaN", "Infinity"])
def test_parse_invalid_price(text):
    """Test that invalid or negative prices raise ValueError."""
    with pytest.raises(ValueError):
        parse_price(text)
