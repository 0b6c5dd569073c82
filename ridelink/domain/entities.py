"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Booking``: enforces valid lifecycle transitions
  (pending -> accepted -> in_progress -> completed | cancelled).
- ``PendingOffer.claim`` encapsulates the at-most-one-winner invariant:
  the status check and the status write happen in one synchronous call,
  so no other coroutine can interleave between them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from .enums import BOOKING_TRANSITIONS, ActorType, BookingStatus, OfferStatus
from .errors import InvalidTransition, OfferAlreadyResolved


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class ActorSession:
    session_id: str
    actor_type: ActorType
    actor_id: str


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Booking:
    id: Optional[str] = None
    company_id: str = ""
    vendor_id: Optional[str] = None
    pickup_location: str = ""
    dropoff_location: str = ""
    pickup_time: Optional[datetime] = None
    passenger_count: int = 1
    passenger_name: Optional[str] = None
    passenger_phone: Optional[str] = None
    vehicle_type: Optional[str] = None
    special_requirements: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING
    price: Optional[float] = None
    current_location: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Booking":
        known = {k: v for k, v in record.items() if k in cls.__dataclass_fields__}
        known["status"] = BookingStatus(known.get("status", BookingStatus.PENDING))
        return cls(**known)

    def to_payload(self) -> dict[str, Any]:
        payload = {name: getattr(self, name) for name in self.__dataclass_fields__}
        payload["status"] = self.status.value
        return payload

    @property
    def is_terminal(self) -> bool:
        return not BOOKING_TRANSITIONS.get(self.status)

    def can_transition_to(self, new_status: BookingStatus) -> bool:
        return new_status in BOOKING_TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status: BookingStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        if not self.can_transition_to(new_status):
            raise InvalidTransition(
                f"Cannot transition from {self.status.value} to {new_status.value}",
                booking_id=self.id,
                current_status=self.status.value,
                requested_status=new_status.value,
            )
        self.status = new_status


@dataclass
class PendingOffer:
    """An in-flight booking request broadcast to eligible vendors."""

    request_id: str
    booking_id: str
    company_id: str
    target_vendor_ids: frozenset[str] = frozenset()
    details: dict[str, Any] = field(default_factory=dict)
    status: OfferStatus = OfferStatus.PENDING
    resolved_by: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status is OfferStatus.PENDING

    def age(self, now: Optional[datetime] = None) -> timedelta:
        return (now or utcnow()) - self.created_at

    def is_expired(self, ttl_seconds: int, now: Optional[datetime] = None) -> bool:
        if ttl_seconds <= 0:
            return False
        return self.age(now) > timedelta(seconds=ttl_seconds)

    def claim(self, vendor_id: str) -> None:
        """Resolve the offer in favour of *vendor_id*, or raise if already taken."""
        if self.status is not OfferStatus.PENDING:
            raise OfferAlreadyResolved(
                "Booking request is no longer available",
                request_id=self.request_id,
                resolved_by=self.resolved_by,
            )
        self.status = OfferStatus.RESOLVED
        self.resolved_by = vendor_id
        self.resolved_at = utcnow()

    def release(self) -> None:
        """Undo a claim whose durable write failed."""
        self.status = OfferStatus.PENDING
        self.resolved_by = None
        self.resolved_at = None

    def withdraw(self) -> None:
        """Close the offer without a winner (booking left pending elsewhere)."""
        self.status = OfferStatus.RESOLVED
        self.resolved_by = None
        self.resolved_at = utcnow()

    def to_payload(self) -> dict[str, Any]:
        return {
            **self.details,
            "request_id": self.request_id,
            "booking_id": self.booking_id,
            "company_id": self.company_id,
            "status": self.status.value,
            "created_at": self.created_at,
        }
