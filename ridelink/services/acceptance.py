"""
Acceptance Resolver
===================

Settles the race between vendors answering the same offer.

Concurrency safety
------------------
* ``PendingOffer.claim`` checks and sets the offer status in one
  synchronous call, so on a single event loop no other coroutine can slip
  in between the read and the write.
* Contenders for the same request id are additionally serialised with a
  per-request ``KeyedLock``.  If the winner's durable write fails, the
  offer is released back to ``pending`` *before* the next contender looks
  at it, so the next one can still win.  Different request ids never
  share a lock.
* The booking row is re-read under the per-booking lock used by the
  transition engine; a booking that left ``pending`` in the meantime
  (e.g. cancelled by the company) closes the offer instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .offers import OfferStore
from .partnerships import PartnershipResolver
from .transitions import StatusTransitionEngine, booking_lock_key
from ridelink.domain.entities import Booking, PendingOffer
from ridelink.domain.enums import ActorType, BookingStatus
from ridelink.domain.errors import (
    NotFound,
    OfferAlreadyResolved,
    PersistenceError,
    ValidationError,
)
from ridelink.infrastructure.gateway import PersistenceGateway
from ridelink.infrastructure.locks import KeyedLock
from ridelink.infrastructure.repositories import BookingRepository
from ridelink.realtime.events import OutboundEvent
from ridelink.realtime.hub import EventHub

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcceptResult:
    request_id: str
    booking_id: str
    booking: Booking


class AcceptanceResolver:
    def __init__(
        self,
        gateway: PersistenceGateway,
        resolver: PartnershipResolver,
        hub: EventHub,
        offers: OfferStore,
        locks: KeyedLock,
        transitions: StatusTransitionEngine,
    ):
        self.bookings = BookingRepository(gateway)
        self.resolver = resolver
        self.hub = hub
        self.offers = offers
        self.locks = locks
        self.transitions = transitions

    async def accept(self, request_id: str, vendor_id: str) -> AcceptResult:
        if not vendor_id:
            raise ValidationError("vendor_id is required", request_id=request_id)

        offer = self.offers.get(request_id)
        await self._check_eligible(offer, vendor_id)

        async with self.locks.hold(request_id):
            # the offer may have expired or been settled while we waited
            offer = self.offers.get(request_id)
            offer.claim(vendor_id)
            try:
                booking = await self._persist_acceptance(offer, vendor_id)
            except (PersistenceError, NotFound):
                offer.release()
                logger.warning(
                    "Acceptance of %s by vendor %s not persisted; offer reopened",
                    request_id,
                    vendor_id,
                )
                raise

        logger.info(
            "Booking request %s accepted by vendor %s, booking ID: %s",
            request_id,
            vendor_id,
            booking.id,
        )
        await self._announce(offer, booking, vendor_id)
        return AcceptResult(request_id, booking.id, booking)

    async def accept_booking(self, booking_id: str, vendor_id: str) -> Booking:
        """Accept by booking id, as status updates do.

        A booking with a live offer goes through ``accept`` so the usual
        winner and loser notices are sent; otherwise the transition
        engine assigns the vendor directly.
        """
        offer = self.offers.find_pending_for_booking(booking_id)
        if offer is not None and not offer.is_expired(self.offers.ttl_seconds):
            result = await self.accept(offer.request_id, vendor_id)
            return result.booking
        return await self.transitions.transition(
            booking_id, BookingStatus.ACCEPTED, actor_id=vendor_id
        )

    async def reject(self, request_id: str, vendor_id: str) -> None:
        """Acknowledge a refusal.  The offer stays open for other vendors."""
        if not vendor_id:
            raise ValidationError("vendor_id is required", request_id=request_id)
        offer = self.offers.get(request_id)
        logger.info("Vendor %s rejected booking request %s", vendor_id, request_id)
        await self.hub.to_actor(
            ActorType.VENDOR,
            vendor_id,
            OutboundEvent.BOOKING_REQUEST_REJECTED,
            {
                "request_id": request_id,
                "booking_id": offer.booking_id,
                "vendor_id": vendor_id,
            },
        )

    # ── Internals ─────────────────────────────────────────────────────

    async def _check_eligible(self, offer: PendingOffer, vendor_id: str) -> None:
        if vendor_id in offer.target_vendor_ids:
            return
        # not reached by the fan-out, but any active partner may pick it up
        if vendor_id not in await self.resolver.active_vendor_partners(offer.company_id):
            raise ValidationError(
                "Vendor is not an active partner of this company",
                request_id=offer.request_id,
                vendor_id=vendor_id,
            )

    async def _persist_acceptance(self, offer: PendingOffer, vendor_id: str) -> Booking:
        async with self.locks.hold(booking_lock_key(offer.booking_id)):
            record = await self.bookings.get_by_id(offer.booking_id)
            if record is None:
                raise NotFound("Booking not found", booking_id=offer.booking_id)
            booking = Booking.from_record(record)
            if booking.status is not BookingStatus.PENDING:
                offer.withdraw()
                raise OfferAlreadyResolved(
                    "Booking request is no longer available",
                    request_id=offer.request_id,
                    booking_status=booking.status.value,
                )
            record = await self.bookings.update(
                offer.booking_id,
                {"vendor_id": vendor_id, "status": BookingStatus.ACCEPTED},
            )
        return Booking.from_record(record)

    async def _announce(self, offer: PendingOffer, booking: Booking, vendor_id: str) -> None:
        await self.hub.to_actor(
            ActorType.COMPANY,
            offer.company_id,
            OutboundEvent.BOOKING_STATUS_UPDATE,
            {
                "request_id": offer.request_id,
                "status": booking.status.value,
                "vendor_id": vendor_id,
                "booking_id": booking.id,
                "booking": booking.to_payload(),
            },
        )
        await self.hub.to_actors(
            ActorType.VENDOR,
            offer.target_vendor_ids - {vendor_id},
            OutboundEvent.BOOKING_REQUEST_ACCEPTED,
            {
                "request_id": offer.request_id,
                "booking_id": booking.id,
                "accepted_by": vendor_id,
                "status": "no_longer_available",
            },
        )
        await self.hub.to_actor(
            ActorType.VENDOR,
            vendor_id,
            OutboundEvent.BOOKING_ACCEPTANCE_CONFIRMED,
            {
                "request_id": offer.request_id,
                "booking_id": booking.id,
                "booking": booking.to_payload(),
                "message": "Booking accepted successfully",
            },
        )
        await self.transitions.notify_list_changes(booking, BookingStatus.PENDING)
