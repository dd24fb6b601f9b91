"""
CPA Calculator

Flat Cost-Per-Acquisition commission for acquisition events.
"""

from decimal import Decimal

from ..models import CommissionLineItem, CommissionType, EventType, House, LineItemKind
from .rates import resolve_rate


class CPACalculator:
    """Pays a flat amount when a player is acquired."""

    EVENTS = frozenset({EventType.REGISTRATION, EventType.FIRST_DEPOSIT})
    MODELS = frozenset({CommissionType.CPA, CommissionType.HYBRID})

    def applies(self, house: House, event_type: EventType) -> bool:
        return event_type in self.EVENTS and house.commission_type in self.MODELS

    def rate(self, house: House) -> Decimal:
        """Hybrid houses carry their own CPA value; pure CPA houses use commission_value."""
        if house.commission_type is CommissionType.HYBRID:
            return resolve_rate(house.cpa_value, house.commission_value)
        return house.commission_value

    def calculate(self, house: House, event_type: EventType) -> CommissionLineItem | None:
        if not self.applies(house, event_type):
            return None
        # Flat amount, never scaled by the event amount
        return CommissionLineItem(kind=LineItemKind.CPA, value=self.rate(house))
