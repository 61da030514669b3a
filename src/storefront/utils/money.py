"""Rounding for monetary amounts held as floats on aggregates."""

from decimal import ROUND_HALF_UP, Decimal

_CENTS = Decimal("0.01")


def to_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def round_money(value) -> float:
    """Round half-up to two decimal places."""
    return float(to_decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP))


def round_whole(value) -> float:
    """Round half-up to a whole currency unit (tax is charged in whole rupees)."""
    return float(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
