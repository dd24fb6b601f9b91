"""
Output Builder

Constructs the API response from the processing context.
"""

from datetime import datetime, timezone
from decimal import Decimal

from .calculators.rates import quantize_money
from .models import CommissionLineItem, PostbackContext


def to_money(value: Decimal) -> float:
    """Convert Decimal to float with 2 decimal places."""
    return float(quantize_money(value))


def _fmt(value: Decimal) -> str:
    """Format a total as the two-decimal string partners reconcile against."""
    return f"{quantize_money(value):.2f}"


class OutputBuilder:
    """Builds the success response for a processed postback."""

    MESSAGE = "Postback processed successfully"

    def build(self, ctx: PostbackContext) -> dict:
        event = ctx.event
        output = {
            "success": True,
            "message": self.MESSAGE,
            "affiliate": ctx.affiliate.username,
            "house": ctx.house.name,
            "evento": event.event,
            "amount": to_money(event.amount),
            "totalCommission": _fmt(ctx.result.total_commission),
            "commissions": [self._build_item(item) for item in ctx.result.items],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if event.customer_id:
            output["customerId"] = event.customer_id
        if ctx.log_id is not None:
            output["logId"] = ctx.log_id
        return output

    def _build_item(self, item: CommissionLineItem) -> dict:
        entry = {"type": item.kind.value, "value": to_money(item.value)}
        if item.percentage is not None:
            entry["percentage"] = to_money(item.percentage)
        return entry
