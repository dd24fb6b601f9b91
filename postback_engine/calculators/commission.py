"""
Commission Evaluator

Combines the CPA and RevShare rules for a single postback event.
"""

from decimal import Decimal

from ..models import CommissionLineItem, EventType, House
from .cpa import CPACalculator
from .revshare import RevShareCalculator


class CommissionEvaluator:
    """Evaluates every commission rule that applies to an event."""

    def __init__(self):
        self.cpa_calculator = CPACalculator()
        self.revshare_calculator = RevShareCalculator()

    def evaluate(self, house: House, event_type: EventType, amount: Decimal) -> list[CommissionLineItem]:
        """
        Produce the line items for an event, CPA first.

        The rules are independent. Unknown event types, unknown commission
        types and non-positive amounts on money events yield no items.
        Pure: no I/O and no state, so identical inputs give identical output.
        """
        items = []

        cpa = self.cpa_calculator.calculate(house, event_type)
        if cpa is not None:
            items.append(cpa)

        revshare = self.revshare_calculator.calculate(house, event_type, amount)
        if revshare is not None:
            items.append(revshare)

        return items
