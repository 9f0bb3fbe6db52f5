from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")


def quantize_amount(amount: Decimal | int | float | str) -> Decimal:
    return Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Rupees to paise, the unit Razorpay orders are denominated in."""
    return int((quantize_amount(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))
