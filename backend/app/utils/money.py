"""Rupee rounding.

Amounts are stored as floats; every derived figure goes through
``money()`` so half-paise round up (238.095 → 238.10) instead of
following binary float artefacts.
"""

from decimal import ROUND_HALF_UP, Decimal

_PAISE = Decimal("0.01")


def money(value: float | int | None) -> float:
    if not value:
        return 0.0
    return float(Decimal(str(value)).quantize(_PAISE, rounding=ROUND_HALF_UP))


def money_sum(values) -> float:
    return money(sum(Decimal(str(v or 0)) for v in values))
