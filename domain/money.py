"""
Domain: currency and quantity rounding (pure).

All ledger amounts are Decimal values quantized to cents with half-up rounding.
Floats never enter a money calculation; callers convert at the boundary.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

CENT = Decimal("0.01")
TENTH = Decimal("0.1")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, str]


def to_decimal(value: Number) -> Decimal:
    """Convert an int, str or Decimal into a Decimal (floats are rejected)."""

    if isinstance(value, float):
        raise TypeError("float amounts are not accepted; pass a Decimal or str")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(value: Number) -> Decimal:
    """Round to 2 decimal places using standard (half-up) rounding."""

    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_tenth(value: Number) -> Decimal:
    return to_decimal(value).quantize(TENTH, rounding=ROUND_HALF_UP)


def sum_currency(values: Iterable[Decimal]) -> Decimal:
    return round_currency(sum(values, ZERO))


__all__ = [
    "CENT",
    "TENTH",
    "ZERO",
    "to_decimal",
    "round_currency",
    "round_tenth",
    "sum_currency",
]
