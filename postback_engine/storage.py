"""
Storage collaborators for the postback pipeline.

The pipeline only depends on the protocols below. InMemoryStore backs tests
and local development; SqlStore (see db.py) backs production.
"""

import hashlib
import threading
from datetime import datetime, timezone
from typing import Protocol

from .models import Affiliate, CommissionResult, House, PostbackContext, PostbackEvent

# Postback log statuses
STATUS_PROCESSING = "PROCESSING"
STATUS_SUCCESS = "SUCCESS"


def idempotency_key(event: PostbackEvent) -> str:
    """Stable key for one physical event, used to trace retried deliveries."""
    parts = [event.house_identifier, event.event, event.customer_id or ""]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


class Directory(Protocol):
    def find_house_by_identifier(self, identifier: str) -> House | None: ...

    def find_affiliate_by_username(self, username: str) -> Affiliate | None: ...


class CommissionRecorder(Protocol):
    def record_commission(self, result: CommissionResult, ctx: PostbackContext) -> int: ...


class PostbackLogger(Protocol):
    def open_log(self, event: PostbackEvent) -> int: ...

    def close_log(self, log_id: int, status: str) -> None: ...


class InMemoryStore:
    """Directory, recorder and postback log held in process memory."""

    def __init__(self, houses=None, affiliates=None):
        self.houses: list[House] = list(houses or [])
        self.affiliates: list[Affiliate] = list(affiliates or [])
        self.commissions: list[dict] = []
        self.logs: list[dict] = []
        self._lock = threading.Lock()

    def add_house(self, house: House | dict) -> House:
        if isinstance(house, dict):
            house = House.from_dict(house)
        self.houses.append(house)
        return house

    def add_affiliate(self, affiliate: Affiliate | dict) -> Affiliate:
        if isinstance(affiliate, dict):
            affiliate = Affiliate.from_dict(affiliate)
        self.affiliates.append(affiliate)
        return affiliate

    def find_house_by_identifier(self, identifier: str) -> House | None:
        # First match in insertion order when duplicates exist
        return next((h for h in self.houses if h.identifier == identifier), None)

    def find_affiliate_by_username(self, username: str) -> Affiliate | None:
        return next((a for a in self.affiliates if a.username == username), None)

    def record_commission(self, result: CommissionResult, ctx: PostbackContext) -> int:
        event = ctx.event
        record = {
            "affiliate": ctx.affiliate.username,
            "house": ctx.house.identifier,
            "event": event.event,
            "amount": event.amount,
            "customer_id": event.customer_id,
            "idempotency_key": idempotency_key(event),
            "items": list(result.items),
            "total_commission": result.total_commission,
            "created_at": datetime.now(timezone.utc),
        }
        with self._lock:
            self.commissions.append(record)
            record["id"] = len(self.commissions)
        return record["id"]

    def open_log(self, event: PostbackEvent) -> int:
        entry = {
            "casa": event.house_identifier,
            "evento": event.event,
            "subid": event.sub_id or "unknown",
            "valor": event.amount,
            "ip": event.ip,
            "raw": event.raw,
            "status": STATUS_PROCESSING,
        }
        with self._lock:
            self.logs.append(entry)
            entry["id"] = len(self.logs)
        return entry["id"]

    def close_log(self, log_id: int, status: str) -> None:
        with self._lock:
            self.logs[log_id - 1]["status"] = status
