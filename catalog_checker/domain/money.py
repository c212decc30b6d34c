"""Price parsing and formatting shared by the domain services."""
from __future__ import annotations

from decimal import Decimal, InvalidOperation

CURRENCY_MARKS = (",", "₹", "$", "€", "£", " ")


def clean_number(value: object) -> str:
    s = str(value).strip()
    for ch in CURRENCY_MARKS:
        s = s.replace(ch, "")
    return s


def parse_price(value: object) -> Decimal:
    """Parse a product price; missing means 0, garbage raises ``ValueError``."""
    if value is None:
        return Decimal("0")
    if isinstance(value, bool):
        raise ValueError(f"Unreadable price: {value!r}")
    s = clean_number(value)
    if not s:
        return Decimal("0")
    try:
        price = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"Unreadable price: {value!r}") from exc
    if not price.is_finite():
        raise ValueError(f"Unreadable price: {value!r}")
    if price < 0:
        raise ValueError(f"Negative price: {price}")
    return price


def format_decimal(value: Decimal) -> int | float:
    """JSON-friendly number: integral decimals become ints."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)
