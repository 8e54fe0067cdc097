"""Conversions between domain values and JSON-friendly document fields."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from ..models.money import to_decimal


def dump_decimal(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def load_decimal(value: Any) -> Decimal:
    return to_decimal(value)


def load_optional_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    return to_decimal(value)


def dump_date(value: date | None) -> str | None:
    return value.isoformat() if value else None


def load_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    # tolerate timestamps stored in date columns
    return date.fromisoformat(text[:10])


def dump_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def load_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_code(value: str | None) -> str:
    """Codes, AWBs and document numbers are matched trimmed and upper-cased."""
    return (value or "").strip().upper()
