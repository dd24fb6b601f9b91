"""
Domain Models for the Postback Commission Engine

These dataclasses provide type-safe representations of all business entities.
All monetary values use Decimal for precision.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum

# =============================================================================
# ENUMS
# =============================================================================


class CommissionType(Enum):
    """Commission model configured on a house."""

    CPA = "CPA"
    REVSHARE = "RevShare"
    HYBRID = "Hybrid"
    UNKNOWN = "Unknown"  # Any stored value outside the three known models

    @classmethod
    def parse(cls, value) -> "CommissionType":
        for member in cls:
            if member is not cls.UNKNOWN and member.value == value:
                return member
        return cls.UNKNOWN


class EventType(Enum):
    """Player event reported by a house."""

    REGISTRATION = "registration"
    FIRST_DEPOSIT = "first_deposit"
    DEPOSIT = "deposit"
    PROFIT = "profit"
    UNKNOWN = "unknown"  # click, recurring_deposit, ... are acknowledged but never paid

    @classmethod
    def parse(cls, value) -> "EventType":
        for member in cls:
            if member is not cls.UNKNOWN and member.value == value:
                return member
        return cls.UNKNOWN


class LineItemKind(Enum):
    CPA = "CPA"
    REVSHARE = "RevShare"


def optional_decimal(value) -> Decimal | None:
    """Parse a stored rate. None and blank strings mean the field is absent."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid decimal value: {value!r}")


# =============================================================================
# DIRECTORY MODELS
# =============================================================================


@dataclass
class House:
    """A partner betting operator that originates postbacks."""

    identifier: str
    name: str
    commission_type: CommissionType
    commission_value: Decimal
    cpa_value: Decimal | None = None  # Hybrid only
    revshare_value: Decimal | None = None  # Hybrid only, a percentage
    id: int | None = None
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "House":
        commission_value = optional_decimal(data.get("commission_value"))
        return cls(
            identifier=data["identifier"],
            name=data.get("name") or data["identifier"],
            commission_type=CommissionType.parse(data.get("commission_type")),
            commission_value=commission_value if commission_value is not None else Decimal("0"),
            cpa_value=optional_decimal(data.get("cpa_value")),
            revshare_value=optional_decimal(data.get("revshare_value")),
            id=data.get("id"),
            is_active=data.get("is_active", True),
        )


@dataclass
class Affiliate:
    """A referring user, credited through the subid parameter."""

    username: str
    id: int | None = None
    full_name: str | None = None
    email: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Affiliate":
        return cls(
            username=data["username"],
            id=data.get("id"),
            full_name=data.get("full_name"),
            email=data.get("email"),
        )


# =============================================================================
# INPUT MODELS
# =============================================================================


@dataclass
class PostbackEvent:
    """The inbound notification. Not persisted beyond the records it produces."""

    house_identifier: str
    event: str  # Raw event name, echoed back as received
    sub_id: str
    amount: Decimal = Decimal("0")
    customer_id: str | None = None
    ip: str | None = None
    raw: str | None = None

    @property
    def event_type(self) -> EventType:
        return EventType.parse(self.event)


# =============================================================================
# OUTPUT / RESULT MODELS
# =============================================================================


@dataclass(frozen=True)
class CommissionLineItem:
    """One component of the commission for an event."""

    kind: LineItemKind
    value: Decimal
    percentage: Decimal | None = None  # RevShare only, the raw rate


@dataclass
class CommissionResult:
    """Ordered line items for one event and their total."""

    items: list[CommissionLineItem] = field(default_factory=list)

    @property
    def total_commission(self) -> Decimal:
        return sum((item.value for item in self.items), Decimal("0"))


@dataclass
class PostbackContext:
    """
    Holds all intermediate state while a postback is processed.
    This is the "bag" that flows through the pipeline.
    """

    event: PostbackEvent
    stage: str = "received"
    log_id: int | None = None

    # Step results (populated as we go)
    house: House | None = None
    affiliate: Affiliate | None = None
    result: CommissionResult = field(default_factory=CommissionResult)
    record_id: int | None = None
