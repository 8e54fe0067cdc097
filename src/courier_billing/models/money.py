"""Decimal helpers for money and weight values."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

TWO_PLACES = Decimal("0.01")
THREE_PLACES = Decimal("0.001")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce stored values (str, int, float, Decimal, None) into a Decimal."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps floats like 0.1 from dragging binary noise along
        return Decimal(str(value).replace(",", "").strip())
    except InvalidOperation as exc:
        raise ValueError(f"Unable to parse decimal from value '{value}'") from exc


def money(value: Any) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def weight(value: Any) -> Decimal:
    return to_decimal(value).quantize(THREE_PLACES, rounding=ROUND_HALF_UP)
