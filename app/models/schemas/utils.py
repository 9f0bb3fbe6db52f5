"""Common utility functions for schemas."""
from __future__ import annotations

from decimal import Decimal
from typing import Any

UNLIMITED = "Unlimited"


def format_amount(value: Decimal | None) -> str | None:
    """Format Decimal values without trailing zeros for API responses."""
    if value is None:
        return None

    normalized = value.normalize()
    if normalized == normalized.to_integral():
        normalized = normalized.quantize(Decimal("1"))

    text = format(normalized, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def limit_to_wire(value: int | None) -> int | str:
    return UNLIMITED if value is None else value


def limit_from_wire(value: Any) -> int | None:
    """Accept an integer or the "Unlimited" sentinel (case-insensitive)."""
    if value is None:
        return None
    if isinstance(value, str):
        if value.strip().lower() == UNLIMITED.lower():
            return None
        value = int(value)
    if int(value) < 0:
        raise ValueError("Limits must be non-negative integers or 'Unlimited'")
    return int(value)
