"""
RevShare Calculator

Revenue share: a percentage of the amount reported on money events.
"""

from decimal import Decimal

from ..models import CommissionLineItem, CommissionType, EventType, House, LineItemKind
from .rates import HUNDRED, resolve_rate


class RevShareCalculator:
    """Pays a percentage of deposits and profits."""

    EVENTS = frozenset({EventType.DEPOSIT, EventType.PROFIT})
    MODELS = frozenset({CommissionType.REVSHARE, CommissionType.HYBRID})

    def applies(self, house: House, event_type: EventType, amount: Decimal) -> bool:
        return (
            event_type in self.EVENTS
            and amount > 0
            and house.commission_type in self.MODELS
        )

    def percentage(self, house: House) -> Decimal:
        if house.commission_type is CommissionType.HYBRID:
            return resolve_rate(house.revshare_value, house.commission_value)
        return house.commission_value

    def calculate(self, house: House, event_type: EventType, amount: Decimal) -> CommissionLineItem | None:
        """
        Calculate the RevShare item.

        value = amount × percentage / 100, left unrounded so that totals
        across items do not accumulate rounding error.
        """
        if not self.applies(house, event_type, amount):
            return None
        percentage = self.percentage(house)
        return CommissionLineItem(
            kind=LineItemKind.REVSHARE,
            value=amount * percentage / HUNDRED,
            percentage=percentage,
        )
