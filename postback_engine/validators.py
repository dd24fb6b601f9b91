"""
Input Validation for the Postback Commission Engine

Validates the inbound postback before any lookup happens.
Raises ValidationError with clear messages for missing identifiers.
"""

from decimal import Decimal, InvalidOperation

from .errors import ValidationError
from .models import PostbackEvent

# Largest amount the ledger columns hold (Numeric(12, 2))
MAX_AMOUNT = Decimal("9999999999.99")


def parse_amount(value) -> Decimal:
    """
    Tolerant amount parsing for an always-acknowledge webhook receiver.

    Absent, blank, non-numeric, non-finite, negative and out-of-range
    values all become 0.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        amount = value
    else:
        text = str(value).strip()
        if not text:
            return Decimal("0")
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return Decimal("0")
    if not amount.is_finite() or amount < 0 or amount > MAX_AMOUNT:
        return Decimal("0")
    return amount


class InputValidator:
    """Validates a postback event according to business rules."""

    REQUIRED_FIELDS = (
        ("house_identifier", "house identifier"),
        ("event", "event type"),
        ("sub_id", "subid"),
    )

    def validate(self, event: PostbackEvent) -> None:
        """
        Run all validations. Raises ValidationError if any check fails.
        """
        for attr, label in self.REQUIRED_FIELDS:
            value = getattr(event, attr)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"{label} is required")

        if event.amount < 0:
            raise ValidationError(f"amount cannot be negative, got: {event.amount}")
