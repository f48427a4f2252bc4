"""
Money conversions.

Documents hold integer minor units (cents). Decimal only
appears at the request/response boundary, so ledger math
never touches binary floating point.
"""

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_minor(amount) -> int:
    """Convert a decimal amount to integer minor units (half-up)."""
    if amount is None:
        return 0
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor(minor: int | None) -> Decimal:
    return (Decimal(int(minor or 0)) / 100).quantize(CENT)


def round2(amount) -> Decimal:
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
