"""
Booking endpoints
=================

GET   /api/v1/bookings?company_id=|vendor_id= -- recent bookings of one side
GET   /api/v1/bookings/{booking_id}           -- one booking
PATCH /api/v1/bookings/{booking_id}/status    -- lifecycle transition

Bookings are created over the realtime channel only, so that the offer
fan-out always runs; the PATCH goes through the same transition engine as
``update_ride_status`` and emits the same notifications.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from ridelink.api.dependencies import get_bookings, get_coordinator
from ridelink.api.middleware import limiter
from ridelink.api.schemas import BookingResponse, StatusUpdateRequest
from ridelink.config import settings
from ridelink.domain.enums import ActorType, BookingStatus
from ridelink.infrastructure.repositories import BookingRepository
from ridelink.services.container import Coordinator

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("", response_model=list[BookingResponse], summary="List bookings")
@limiter.limit(settings.rate_limit)
async def list_bookings(
    request: Request,
    company_id: Optional[str] = None,
    vendor_id: Optional[str] = None,
    bookings: BookingRepository = Depends(get_bookings),
):
    if bool(company_id) == bool(vendor_id):
        raise HTTPException(
            status_code=422, detail="Exactly one of company_id or vendor_id is required"
        )
    if company_id:
        return await bookings.list_for_actor(ActorType.COMPANY, company_id)
    return await bookings.list_for_actor(ActorType.VENDOR, vendor_id)


@router.get("/{booking_id}", response_model=BookingResponse, summary="Get a booking")
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_id: str,
    bookings: BookingRepository = Depends(get_bookings),
):
    booking = await bookings.get_by_id(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    summary="Change a booking's status",
    description=(
        "pending -> accepted | cancelled, accepted -> in_progress | cancelled, "
        "in_progress -> completed | cancelled.  Illegal moves return 409.  "
        "Accepting assigns `vendor_id`, which must be an active partner "
        "of the company."
    ),
)
@limiter.limit(settings.rate_limit)
async def update_booking_status(
    request: Request,
    booking_id: str,
    body: StatusUpdateRequest,
    coordinator: Coordinator = Depends(get_coordinator),
):
    if body.status is BookingStatus.ACCEPTED:
        booking = await coordinator.acceptance.accept_booking(booking_id, body.vendor_id)
    else:
        booking = await coordinator.transitions.transition(
            booking_id, body.status, actor_id=body.vendor_id, location=body.location
        )
    return booking.to_payload()
