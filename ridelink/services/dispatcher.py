"""
Booking Dispatcher
==================

Turns a company's booking intent into a persisted booking plus an
in-flight offer, and fans the offer out to eligible vendors.

Algorithm per request
---------------------
1. Validate the ride details and that the company exists.
2. Persist the booking (``pending``, no vendor).
3. Targets = active partner vendors  ∩  vendors with a live session.
4. Register the ``PendingOffer`` under a fresh request id.
5. Send ``new_booking_request`` to every session of every target.
6. Acknowledge to the requester with the number of vendors reached, or
   report ``no_partners_available`` when the target set is empty.

The offer only becomes visible to the acceptance resolver at step 4, so
no vendor can accept before the booking row exists.  An offer with no
targets is still registered: a partner that later sees the pending
booking can claim it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

from .offers import OfferStore, new_request_id
from .partnerships import PartnershipResolver
from ridelink.domain.entities import Booking, PendingOffer
from ridelink.domain.enums import ActorType, BookingStatus
from ridelink.domain.errors import NoPartnersAvailable, ValidationError
from ridelink.infrastructure.gateway import PersistenceGateway
from ridelink.infrastructure.repositories import BookingRepository, UserRepository
from ridelink.realtime.events import InboundEvent, OutboundEvent, RideDetails, parse_payload
from ridelink.realtime.hub import EventHub
from ridelink.realtime.registry import SessionRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    request_id: str
    booking_id: str
    sent_to_vendor_count: int
    total_partners: int
    booking: Booking


class BookingDispatcher:
    def __init__(
        self,
        gateway: PersistenceGateway,
        resolver: PartnershipResolver,
        registry: SessionRegistry,
        hub: EventHub,
        offers: OfferStore,
    ):
        self.users = UserRepository(gateway)
        self.bookings = BookingRepository(gateway)
        self.resolver = resolver
        self.registry = registry
        self.hub = hub
        self.offers = offers

    async def submit_booking_request(
        self, company_id: str, ride_details: Union[RideDetails, dict[str, Any]]
    ) -> DispatchResult:
        if not isinstance(ride_details, RideDetails):
            ride_details = parse_payload(InboundEvent.CREATE_BOOKING_REQUEST, ride_details)
        if not company_id:
            raise ValidationError("company_id is required")

        # 1. Requester must be a known company
        company = await self.users.get_actor(ActorType.COMPANY, company_id)
        if company is None:
            raise ValidationError("Unknown company", company_id=company_id)

        # 2. Persist before anyone can see the request
        record = await self.bookings.create(
            {
                **ride_details.booking_fields(),
                "company_id": company_id,
                "vendor_id": None,
                "status": BookingStatus.PENDING,
            }
        )
        booking = Booking.from_record(record)
        request_id = new_request_id()

        # 3. Partnership-filtered, connection-aware fan-out set
        partners = await self.resolver.active_vendor_partners(company_id)
        targets = partners & self.registry.connected_actor_ids(ActorType.VENDOR)

        # 4. Offer becomes claimable from here on
        offer = PendingOffer(
            request_id=request_id,
            booking_id=booking.id,
            company_id=company_id,
            target_vendor_ids=frozenset(targets),
            details={
                **booking.to_payload(),
                "company_name": company.get("company_name"),
            },
        )
        offer.details.pop("id", None)
        self.offers.add(offer)

        if not targets:
            return await self._report_no_partners(offer, booking, len(partners))

        # 5. Offer to every session of every target vendor
        reached = await self.hub.to_actors(
            ActorType.VENDOR, targets, OutboundEvent.NEW_BOOKING_REQUEST, offer.to_payload()
        )
        logger.info(
            "Booking request %s sent to %d partner vendors out of %d total partners",
            request_id,
            len(reached),
            len(partners),
        )

        # 6. Acknowledge to the requester
        await self.hub.to_actor(
            ActorType.COMPANY,
            company_id,
            OutboundEvent.BOOKING_REQUEST_CREATED,
            {
                **offer.to_payload(),
                "sent_to_vendor_count": len(reached),
                "total_partners": len(partners),
                "message": f"Booking request sent to {len(reached)} available vendors",
            },
        )
        return DispatchResult(request_id, booking.id, len(reached), len(partners), booking)

    async def _report_no_partners(
        self, offer: PendingOffer, booking: Booking, total_partners: int
    ) -> DispatchResult:
        if total_partners:
            message = "None of your partner vendors are currently connected"
        else:
            message = "No partner vendors available. Please establish partnerships first."
        notice = NoPartnersAvailable(
            message,
            request_id=offer.request_id,
            booking_id=offer.booking_id,
            total_partners=total_partners,
        )
        logger.info(
            "Booking request %s reached no vendors (%d partners)", offer.request_id, total_partners
        )
        await self.hub.to_actor(
            ActorType.COMPANY,
            offer.company_id,
            OutboundEvent.BOOKING_REQUEST_ERROR,
            notice.to_payload(),
        )
        return DispatchResult(offer.request_id, offer.booking_id, 0, total_partners, booking)
