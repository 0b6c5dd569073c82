"""
Pending offer store -- the in-memory map ``request_id -> PendingOffer``.

Owned jointly by the dispatcher (which adds offers once a booking is
persisted and its targets computed) and the acceptance resolver (which
claims them).  Resolved offers are kept for a while so that late accepts
are answered with ``OfferAlreadyResolved`` rather than ``OfferNotFound``;
the sweeper worker evicts them together with expired pending offers.
"""

from __future__ import annotations

import secrets
from datetime import datetime
from typing import Optional

from ridelink.domain.entities import PendingOffer, utcnow
from ridelink.domain.errors import OfferNotFound


def new_request_id() -> str:
    return f"req_{secrets.token_hex(8)}"


class OfferStore:
    def __init__(self, ttl_seconds: int = 0, retention_seconds: Optional[int] = None):
        self.ttl_seconds = ttl_seconds
        # how long settled offers answer late accepts; defaults to the TTL
        self.retention_seconds = ttl_seconds if retention_seconds is None else retention_seconds
        self._offers: dict[str, PendingOffer] = {}

    @property
    def sweeps(self) -> bool:
        return self.ttl_seconds > 0 or self.retention_seconds > 0

    def add(self, offer: PendingOffer) -> None:
        self._offers[offer.request_id] = offer

    def get(self, request_id: str) -> PendingOffer:
        """Return a live offer, or raise ``OfferNotFound``.

        A pending offer past its TTL counts as gone even before the
        sweeper has evicted it.
        """
        offer = self._offers.get(request_id)
        if offer is None:
            raise OfferNotFound("Booking request not found", request_id=request_id)
        if offer.is_pending and offer.is_expired(self.ttl_seconds):
            raise OfferNotFound("Booking request has expired", request_id=request_id)
        return offer

    def find_pending_for_booking(self, booking_id: str) -> Optional[PendingOffer]:
        for offer in self._offers.values():
            if offer.booking_id == booking_id and offer.is_pending:
                return offer
        return None

    def evict_expired(self, now: Optional[datetime] = None) -> tuple[list[PendingOffer], int]:
        """Drop stale offers.

        Pending offers older than the TTL expire; resolved ones are purged
        once older than the retention period.  Returns the expired pending
        offers (their targets should be told) and the number purged.
        """
        now = now or utcnow()
        expired: list[PendingOffer] = []
        purged = 0
        for request_id, offer in list(self._offers.items()):
            if offer.is_pending:
                if not offer.is_expired(self.ttl_seconds, now):
                    continue
                expired.append(offer)
            else:
                if not offer.is_expired(self.retention_seconds, now):
                    continue
                purged += 1
            del self._offers[request_id]
        return expired, purged

    def pending(self) -> list[PendingOffer]:
        return [offer for offer in self._offers.values() if offer.is_pending]

    def __len__(self) -> int:
        return len(self._offers)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._offers
