"""
Status Transition Engine
========================

Validates and applies booking lifecycle transitions::

    pending      -> accepted | cancelled
    accepted     -> in_progress | cancelled
    in_progress  -> completed | cancelled
    completed, cancelled, rejected  -> (terminal)

After a successful write three kinds of notification are derived from
the (old, new) status pair:

* ``ride_status_updated`` -- always, to the requester and assigned vendor.
* ``pending_rides_updated`` -- when either side of the pair is ``pending``;
  also sent to the company's connected partner vendors, whose pending
  lists show the company's unassigned bookings.
* ``ongoing_rides_updated`` -- when either side is ongoing (accepted /
  in_progress), with action ``added``, ``removed`` or ``updated``.

Nothing is emitted when validation or persistence fails.  Transitions of
one booking are serialised with a per-booking lock.

Moving a booking to ``accepted`` assigns the acting vendor, who must be
an active partner of the company.  Leaving ``pending`` closes the
booking's open offer: it is claimed by that vendor on accept and
withdrawn otherwise, so a racing ``accept_booking_request`` loses.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from .offers import OfferStore
from .partnerships import PartnershipResolver
from ridelink.domain.entities import Booking, PendingOffer, utcnow
from ridelink.domain.enums import ONGOING_STATUSES, ActorType, BookingStatus
from ridelink.domain.errors import NotFound, PersistenceError, ValidationError
from ridelink.infrastructure.gateway import PersistenceGateway
from ridelink.infrastructure.locks import KeyedLock
from ridelink.infrastructure.repositories import BookingRepository
from ridelink.realtime.events import ListAction, OutboundEvent
from ridelink.realtime.hub import EventHub
from ridelink.realtime.registry import SessionRegistry

logger = logging.getLogger(__name__)


def booking_lock_key(booking_id: str) -> str:
    return f"booking:{booking_id}"


def ongoing_action(
    old_status: BookingStatus, new_status: BookingStatus
) -> Optional[ListAction]:
    """How the ongoing list changes for this transition, if at all."""
    was_ongoing = old_status in ONGOING_STATUSES
    is_ongoing = new_status in ONGOING_STATUSES
    if not (was_ongoing or is_ongoing):
        return None
    if is_ongoing and not was_ongoing:
        return ListAction.ADDED
    if was_ongoing and not is_ongoing:
        return ListAction.REMOVED
    return ListAction.UPDATED


def pending_action(
    old_status: BookingStatus, new_status: BookingStatus
) -> Optional[ListAction]:
    if BookingStatus.PENDING not in (old_status, new_status):
        return None
    return ListAction.ADDED if new_status is BookingStatus.PENDING else ListAction.REMOVED


class StatusTransitionEngine:
    def __init__(
        self,
        gateway: PersistenceGateway,
        resolver: PartnershipResolver,
        registry: SessionRegistry,
        hub: EventHub,
        offers: OfferStore,
        locks: KeyedLock,
    ):
        self.bookings = BookingRepository(gateway)
        self.resolver = resolver
        self.registry = registry
        self.hub = hub
        self.offers = offers
        self.locks = locks

    async def transition(
        self,
        booking_id: str,
        new_status: Union[BookingStatus, str],
        actor_id: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Booking:
        try:
            new_status = BookingStatus(new_status)
        except ValueError:
            raise ValidationError(
                f"Unknown booking status: {new_status!r}", booking_id=booking_id
            ) from None

        async with self.locks.hold(booking_lock_key(booking_id)):
            booking = await self._load(booking_id)
            old_status = booking.status
            booking.transition_to(new_status)

            patch = {"status": new_status}
            if new_status is BookingStatus.ACCEPTED:
                await self._require_partner(booking, actor_id)
                patch["vendor_id"] = actor_id
            if new_status is BookingStatus.IN_PROGRESS and location:
                patch["current_location"] = location

            offer = None
            if old_status is BookingStatus.PENDING:
                offer = self._settle_offer(booking_id, new_status, actor_id)
            try:
                record = await self.bookings.update(booking_id, patch)
            except (PersistenceError, NotFound):
                if offer is not None:
                    offer.release()
                raise
            updated = Booking.from_record(record)

        logger.info(
            "Booking %s: %s -> %s (by %s)",
            booking_id,
            old_status.value,
            new_status.value,
            actor_id or "unknown",
        )
        await self.notify_status_updated(updated, old_status, actor_id, location)
        await self.notify_list_changes(updated, old_status)
        return updated

    async def update_location(
        self, booking_id: str, location: str, actor_id: Optional[str] = None
    ) -> Booking:
        """Record the live position of a ride that is in progress."""
        async with self.locks.hold(booking_lock_key(booking_id)):
            booking = await self._load(booking_id)
            if booking.status is not BookingStatus.IN_PROGRESS:
                raise ValidationError(
                    "Location updates are only accepted for rides in progress",
                    booking_id=booking_id,
                    status=booking.status.value,
                )
            updated = Booking.from_record(
                await self.bookings.update(booking_id, {"current_location": location})
            )

        payload = {
            "booking_id": booking_id,
            "location": location,
            "vendor_id": updated.vendor_id,
            "updated_by": actor_id,
            "timestamp": utcnow(),
        }
        await self._to_parties(updated, OutboundEvent.RIDE_LOCATION_UPDATED, payload)
        return updated

    # ── Notifications ─────────────────────────────────────────────────

    async def notify_status_updated(
        self,
        booking: Booking,
        old_status: BookingStatus,
        actor_id: Optional[str] = None,
        location: Optional[str] = None,
    ) -> None:
        payload = {
            "booking_id": booking.id,
            "old_status": old_status.value,
            "new_status": booking.status.value,
            "vendor_id": booking.vendor_id,
            "updated_by": actor_id,
            "location": location,
            "booking": booking.to_payload(),
            "updated_at": booking.updated_at,
        }
        await self._to_parties(booking, OutboundEvent.RIDE_STATUS_UPDATED, payload)

    async def notify_list_changes(self, booking: Booking, old_status: BookingStatus) -> None:
        new_status = booking.status

        action = pending_action(old_status, new_status)
        if action is not None:
            payload = {
                "action": action.value,
                "booking_id": booking.id,
                "booking": booking.to_payload(),
            }
            await self.hub.to_actor(
                ActorType.COMPANY, booking.company_id, OutboundEvent.PENDING_RIDES_UPDATED, payload
            )
            await self.hub.to_actors(
                ActorType.VENDOR,
                await self._pending_list_vendors(booking),
                OutboundEvent.PENDING_RIDES_UPDATED,
                payload,
            )

        action = ongoing_action(old_status, new_status)
        if action is not None:
            payload = {
                "action": action.value,
                "booking_id": booking.id,
                "booking": booking.to_payload(),
                "old_status": old_status.value,
                "new_status": new_status.value,
            }
            await self._to_parties(booking, OutboundEvent.ONGOING_RIDES_UPDATED, payload)

    # ── Internals ─────────────────────────────────────────────────────

    async def _load(self, booking_id: str) -> Booking:
        record = await self.bookings.get_by_id(booking_id)
        if record is None:
            raise NotFound("Booking not found", booking_id=booking_id)
        return Booking.from_record(record)

    async def _require_partner(self, booking: Booking, vendor_id: Optional[str]) -> None:
        if not vendor_id:
            raise ValidationError("vendor_id is required to accept a booking", booking_id=booking.id)
        if vendor_id not in await self.resolver.active_vendor_partners(booking.company_id):
            raise ValidationError(
                "Vendor is not an active partner of this company",
                booking_id=booking.id,
                vendor_id=vendor_id,
            )

    def _settle_offer(
        self, booking_id: str, new_status: BookingStatus, vendor_id: Optional[str]
    ) -> Optional[PendingOffer]:
        """Close the booking's open offer before the write; released if the write fails."""
        offer = self.offers.find_pending_for_booking(booking_id)
        if offer is None:
            return None
        if new_status is BookingStatus.ACCEPTED:
            offer.claim(vendor_id)
            logger.info("Offer %s claimed by vendor %s via status change", offer.request_id, vendor_id)
        else:
            offer.withdraw()
            logger.info("Offer %s withdrawn: booking %s left pending", offer.request_id, booking_id)
        return offer

    async def _pending_list_vendors(self, booking: Booking) -> set[str]:
        connected = self.registry.connected_actor_ids(ActorType.VENDOR)
        try:
            partners = await self.resolver.active_vendor_partners(booking.company_id)
        except PersistenceError:
            # the transition is already durable; fall back to the assigned vendor
            logger.warning("Could not resolve partners of company %s", booking.company_id)
            partners = {booking.vendor_id} if booking.vendor_id else set()
        return partners & connected

    async def _to_parties(self, booking: Booking, event: OutboundEvent, payload: dict) -> None:
        await self.hub.to_actor(ActorType.COMPANY, booking.company_id, event, payload)
        if booking.vendor_id:
            await self.hub.to_actor(ActorType.VENDOR, booking.vendor_id, event, payload)
