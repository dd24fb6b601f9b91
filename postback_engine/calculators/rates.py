"""
Rate helpers shared by the commission calculators.

All use Decimal for precision with ROUND_HALF_UP rounding.
"""

from decimal import ROUND_HALF_UP, Decimal

HUNDRED = Decimal("100")


def quantize_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places using half-up rounding."""
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def resolve_rate(specific: Decimal | None, fallback: Decimal) -> Decimal:
    """
    Pick a Hybrid sub-model rate, falling back to the house's main value.

    Only a missing value falls back; a configured rate of 0 is kept.
    """
    if specific is None:
        return fallback
    return specific
