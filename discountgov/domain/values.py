"""
Numeric helpers shared by the domain, scoring and guardrail layers.

Percentages, prices and scores are Decimal everywhere so weighted sums
(0.25 / 0.35 / 0.15 / 0.25) come out exact.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

Numeric = Union[Decimal, int, float, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWO_PLACES = Decimal("0.01")


def to_decimal(value: Numeric) -> Decimal:
    """Convert to Decimal through str() so binary floats keep their literal value."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a numeric value")
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def clamp(value: Decimal, low: Decimal = ZERO, high: Decimal = HUNDRED) -> Decimal:
    return max(low, min(high, value))


def round2(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def is_percentage(value: Decimal) -> bool:
    return ZERO <= value <= HUNDRED


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
