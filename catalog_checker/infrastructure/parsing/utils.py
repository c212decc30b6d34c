"""Shared parsing utilities for catalog documents."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
import hashlib

from catalog_checker.domain.money import clean_number


def compute_file_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def parse_decimal(value: object, default: Decimal = Decimal("0")) -> Decimal:
    """Lenient decimal parsing; anything unreadable becomes ``default``."""
    if value is None or isinstance(value, bool):
        return default
    s = clean_number(value)
    if not s or s.upper() == "NAN":
        return default
    try:
        return Decimal(s)
    except InvalidOperation:
        return default


def parse_timestamp(value: object) -> datetime:
    """Accept datetimes, ISO strings, epoch seconds or exported ``{"seconds": n}`` maps."""
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        result = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, dict) and "seconds" in value:
        seconds = float(value["seconds"]) + float(value.get("nanoseconds", 0)) / 1e9
        result = datetime.fromtimestamp(seconds, tz=timezone.utc)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        result = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unreadable timestamp: {value!r}")
    if result.tzinfo is None:
        result = result.replace(tzinfo=timezone.utc)
    return result


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
