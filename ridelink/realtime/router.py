"""
Inbound event router.

Maps each inbound event name to a handler on the coordination services
and converts any ``CoordinationError`` into a structured error event for
the sending session only.  A failure is terminal for the one message that
caused it; other in-flight requests are unaffected and nothing is
retried.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from .events import (
    InboundEvent,
    OfferResponse,
    OutboundEvent,
    PartnershipRequest,
    RideDetails,
    RideLocationChange,
    RideStatusChange,
    parse_envelope,
    parse_payload,
)
from ridelink.domain.entities import ActorSession
from ridelink.domain.enums import ActorType, BookingStatus
from ridelink.domain.errors import CoordinationError, ValidationError

if TYPE_CHECKING:
    from ridelink.services.container import Coordinator

logger = logging.getLogger(__name__)

ERROR_EVENTS: dict[InboundEvent, OutboundEvent] = {
    InboundEvent.CREATE_BOOKING_REQUEST: OutboundEvent.BOOKING_REQUEST_ERROR,
    InboundEvent.ACCEPT_BOOKING_REQUEST: OutboundEvent.BOOKING_ERROR,
    InboundEvent.REJECT_BOOKING_REQUEST: OutboundEvent.BOOKING_ERROR,
    InboundEvent.UPDATE_RIDE_STATUS: OutboundEvent.RIDE_STATUS_ERROR,
    InboundEvent.UPDATE_RIDE_LOCATION: OutboundEvent.RIDE_STATUS_ERROR,
    InboundEvent.CREATE_PARTNERSHIP: OutboundEvent.PARTNERSHIP_CREATION_ERROR,
    InboundEvent.GET_USER_ONGOING_RIDES: OutboundEvent.USER_ONGOING_RIDES_ERROR,
    InboundEvent.GET_USER_CURRENT_PARTNERS: OutboundEvent.USER_CURRENT_PARTNERS_ERROR,
    InboundEvent.GET_USER_AVAILABLE_PARTNERS: OutboundEvent.USER_AVAILABLE_PARTNERS_ERROR,
}

_ECHO_KEYS = {
    "request_id": ("request_id", "requestId"),
    "booking_id": ("booking_id", "bookingId"),
}


def _echo(data: dict[str, Any]) -> dict[str, Any]:
    """Identifiers from the inbound message, repeated on the error reply."""
    echoed = {}
    for key, aliases in _ECHO_KEYS.items():
        for alias in aliases:
            if data.get(alias):
                echoed[key] = data[alias]
                break
    return echoed


def _own_id(session: ActorSession, actor_type: ActorType, given: Optional[str]) -> Optional[str]:
    """An explicit id from the payload, else the session's own id if it has that role."""
    if given:
        return given
    return session.actor_id if session.actor_type is actor_type else None


Handler = Callable[[ActorSession, Any], Awaitable[None]]


class EventRouter:
    def __init__(self, coordinator: "Coordinator"):
        self.c = coordinator
        self._handlers: dict[InboundEvent, Handler] = {
            InboundEvent.CREATE_BOOKING_REQUEST: self._create_booking_request,
            InboundEvent.ACCEPT_BOOKING_REQUEST: self._accept_booking_request,
            InboundEvent.REJECT_BOOKING_REQUEST: self._reject_booking_request,
            InboundEvent.UPDATE_RIDE_STATUS: self._update_ride_status,
            InboundEvent.UPDATE_RIDE_LOCATION: self._update_ride_location,
            InboundEvent.CREATE_PARTNERSHIP: self._create_partnership,
            InboundEvent.GET_USER_ONGOING_RIDES: self._get_ongoing_rides,
            InboundEvent.GET_USER_CURRENT_PARTNERS: self._get_current_partners,
            InboundEvent.GET_USER_AVAILABLE_PARTNERS: self._get_available_partners,
        }

    async def handle(self, session: ActorSession, message: Any) -> None:
        try:
            event, data = parse_envelope(message)
        except ValidationError as exc:
            await self.c.hub.to_session(session.session_id, OutboundEvent.ERROR, exc.to_payload())
            return

        logger.debug("%s from session %s", event.value, session.session_id)
        try:
            payload = parse_payload(event, data)
            await self._handlers[event](session, payload)
        except CoordinationError as exc:
            logger.info("%s from %s failed: %s", event.value, session.actor_id, exc.message)
            await self.c.hub.to_session(
                session.session_id, ERROR_EVENTS[event], {**_echo(data), **exc.to_payload()}
            )
        except Exception:
            logger.exception("Unhandled error while processing %s", event.value)
            await self.c.hub.to_session(
                session.session_id,
                ERROR_EVENTS[event],
                {**_echo(data), "code": "internal_error", "error": f"Failed to process {event.value}"},
            )

    # ── Booking flow ──────────────────────────────────────────────────

    async def _create_booking_request(self, session: ActorSession, details: RideDetails) -> None:
        company_id = _own_id(session, ActorType.COMPANY, details.company_id)
        await self.c.dispatcher.submit_booking_request(company_id, details)

    async def _accept_booking_request(self, session: ActorSession, body: OfferResponse) -> None:
        vendor_id = _own_id(session, ActorType.VENDOR, body.vendor_id)
        await self.c.acceptance.accept(body.request_id, vendor_id)

    async def _reject_booking_request(self, session: ActorSession, body: OfferResponse) -> None:
        vendor_id = _own_id(session, ActorType.VENDOR, body.vendor_id)
        await self.c.acceptance.reject(body.request_id, vendor_id)

    async def _update_ride_status(self, session: ActorSession, body: RideStatusChange) -> None:
        actor_id = body.vendor_id or session.actor_id
        if body.new_status is BookingStatus.ACCEPTED:
            await self.c.acceptance.accept_booking(body.booking_id, actor_id)
            return
        await self.c.transitions.transition(
            body.booking_id, body.new_status, actor_id=actor_id, location=body.location
        )

    async def _update_ride_location(self, session: ActorSession, body: RideLocationChange) -> None:
        await self.c.transitions.update_location(
            body.booking_id, body.location, actor_id=body.vendor_id or session.actor_id
        )

    # ── Partnerships and dashboard queries ────────────────────────────

    async def _create_partnership(self, session: ActorSession, body: PartnershipRequest) -> None:
        partnership = await self.c.resolver.create_partnership(body.company_id, body.vendor_id)
        hub = self.c.hub
        await hub.to_actor(
            ActorType.COMPANY,
            body.company_id,
            OutboundEvent.PARTNERSHIP_CREATED,
            {"partnership": partnership, "message": "New vendor partnership established"},
        )
        await hub.to_actor(
            ActorType.VENDOR,
            body.vendor_id,
            OutboundEvent.PARTNERSHIP_CREATED,
            {"partnership": partnership, "message": "New company partnership established"},
        )
        await hub.to_session(
            session.session_id,
            OutboundEvent.PARTNERSHIP_CREATION_SUCCESS,
            {"partnership": partnership},
        )

    async def _get_ongoing_rides(self, session: ActorSession, _body: Any) -> None:
        rides = await self.c.bookings.ongoing_for_actor(session.actor_type, session.actor_id)
        await self.c.hub.to_session(
            session.session_id,
            OutboundEvent.USER_ONGOING_RIDES,
            {"user_id": session.actor_id, "ongoing_rides": rides, "count": len(rides)},
        )

    async def _get_current_partners(self, session: ActorSession, _body: Any) -> None:
        partnerships = await self.c.resolver.partner_details(session.actor_type, session.actor_id)
        await self.c.hub.to_session(
            session.session_id,
            OutboundEvent.USER_CURRENT_PARTNERS,
            {
                "user_id": session.actor_id,
                "partnerships": partnerships,
                "count": len(partnerships),
            },
        )

    async def _get_available_partners(self, session: ActorSession, _body: Any) -> None:
        available = await self.c.resolver.available_partner_details(
            session.actor_type, session.actor_id
        )
        partner_type = "vendors" if session.actor_type is ActorType.COMPANY else "companies"
        await self.c.hub.to_session(
            session.session_id,
            OutboundEvent.USER_AVAILABLE_PARTNERS,
            {
                "user_id": session.actor_id,
                "available_partners": available,
                "count": len(available),
                "partner_type": partner_type,
            },
        )
