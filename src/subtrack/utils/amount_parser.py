"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re


def parse_price(amount_str: str) -> Decimal:
    """Parse a price string into a non-negative Decimal.

    Handles various formats:
    - "9.99"
    - "$9.99"
    - "1,234.56"
    - "12 EUR"

    Args:
        amount_str: Price string

    Returns:
        Decimal price, exactly as written

    Raises:
        ValueError: If the string cannot be parsed or is negative
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty price string")

    # Remove currency symbols and codes
    cleaned = re.sub(r"[$€£¥]", "", amount_str.strip())
    cleaned = re.sub(r"\s*[A-Za-z]{3}$", "", cleaned)

    # Remove thousands separators
    cleaned = cleaned.replace(",", "").strip()

    try:
        price = Decimal(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse price '{amount_str}': {e}")

    if not price.is_finite():
        raise ValueError(f"Price must be a finite amount (got '{amount_str}')")
    if price < 0:
        raise ValueError(f"Price must not be negative (got '{amount_str}')")
    return price
