from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Quantize ``value`` to whole cents, half up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
