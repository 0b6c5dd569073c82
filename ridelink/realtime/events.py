"""
Event names and payload schemas for the realtime channel.

Every message on the wire is an envelope ``{"event": <name>, "data": {...}}``.
Inbound payloads are validated against one pydantic model per event name;
anything malformed surfaces as a domain ``ValidationError`` instead of a
half-populated dict.  Field names are snake_case, camelCase is accepted
too (the dashboard clients send camelCase).
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ridelink.domain.enums import BookingStatus
from ridelink.domain.errors import ValidationError


class InboundEvent(str, enum.Enum):
    CREATE_BOOKING_REQUEST = "create_booking_request"
    ACCEPT_BOOKING_REQUEST = "accept_booking_request"
    REJECT_BOOKING_REQUEST = "reject_booking_request"
    UPDATE_RIDE_STATUS = "update_ride_status"
    UPDATE_RIDE_LOCATION = "update_ride_location"
    CREATE_PARTNERSHIP = "create_partnership"
    GET_USER_ONGOING_RIDES = "get_user_ongoing_rides"
    GET_USER_CURRENT_PARTNERS = "get_user_current_partners"
    GET_USER_AVAILABLE_PARTNERS = "get_user_available_partners"


class OutboundEvent(str, enum.Enum):
    # dispatch
    NEW_BOOKING_REQUEST = "new_booking_request"
    BOOKING_REQUEST_CREATED = "booking_request_created"
    BOOKING_REQUEST_ERROR = "booking_request_error"
    BOOKING_REQUEST_EXPIRED = "booking_request_expired"
    # acceptance
    BOOKING_STATUS_UPDATE = "booking_status_update"
    BOOKING_REQUEST_ACCEPTED = "booking_request_accepted"
    BOOKING_REQUEST_REJECTED = "booking_request_rejected"
    BOOKING_ACCEPTANCE_CONFIRMED = "booking_acceptance_confirmed"
    BOOKING_ERROR = "booking_error"
    # lifecycle
    RIDE_STATUS_UPDATED = "ride_status_updated"
    RIDE_STATUS_ERROR = "ride_status_error"
    RIDE_LOCATION_UPDATED = "ride_location_updated"
    PENDING_RIDES_UPDATED = "pending_rides_updated"
    ONGOING_RIDES_UPDATED = "ongoing_rides_updated"
    # partnerships and queries
    PARTNERSHIP_CREATED = "partnership_created"
    PARTNERSHIP_CREATION_SUCCESS = "partnership_creation_success"
    PARTNERSHIP_CREATION_ERROR = "partnership_creation_error"
    USER_ONGOING_RIDES = "user_ongoing_rides"
    USER_ONGOING_RIDES_ERROR = "user_ongoing_rides_error"
    USER_CURRENT_PARTNERS = "user_current_partners"
    USER_CURRENT_PARTNERS_ERROR = "user_current_partners_error"
    USER_AVAILABLE_PARTNERS = "user_available_partners"
    USER_AVAILABLE_PARTNERS_ERROR = "user_available_partners_error"
    # transport
    ERROR = "error"


class ListAction(str, enum.Enum):
    ADDED = "added"
    REMOVED = "removed"
    UPDATED = "updated"


# ── Inbound payloads ──────────────────────────────────────────────────


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )


class RideDetails(_Payload):
    company_id: Optional[str] = None
    pickup_location: str = Field(..., min_length=1)
    dropoff_location: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("dropoff_location", "dropoffLocation", "destination"),
    )
    pickup_time: datetime = Field(
        ...,
        validation_alias=AliasChoices("pickup_time", "pickupTime", "scheduledTime"),
    )
    passenger_count: int = Field(1, ge=1, le=50)
    passenger_name: Optional[str] = None
    passenger_phone: Optional[str] = None
    vehicle_type: Optional[str] = None
    special_requirements: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "special_requirements", "specialRequirements", "specialRequests"
        ),
    )
    price: Optional[float] = Field(
        None,
        ge=0,
        validation_alias=AliasChoices("price", "estimated_fare", "estimatedFare"),
    )

    @field_validator("price", mode="before")
    @classmethod
    def _strip_currency(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lstrip("$").replace(",", "")
            return value or None
        return value

    def booking_fields(self) -> dict[str, Any]:
        """Columns persisted on the booking row (``company_id`` excluded)."""
        return self.model_dump(exclude={"company_id"})


class OfferResponse(_Payload):
    request_id: str = Field(..., min_length=1)
    vendor_id: Optional[str] = None


class RideStatusChange(_Payload):
    booking_id: str = Field(..., min_length=1)
    new_status: BookingStatus
    vendor_id: Optional[str] = None
    location: Optional[str] = None


class RideLocationChange(_Payload):
    booking_id: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    vendor_id: Optional[str] = None


class PartnershipRequest(_Payload):
    company_id: str = Field(..., min_length=1)
    vendor_id: str = Field(..., min_length=1)


class UserQuery(_Payload):
    """Identity is taken from the session; the body carries nothing required."""


INBOUND_SCHEMAS: dict[InboundEvent, type[_Payload]] = {
    InboundEvent.CREATE_BOOKING_REQUEST: RideDetails,
    InboundEvent.ACCEPT_BOOKING_REQUEST: OfferResponse,
    InboundEvent.REJECT_BOOKING_REQUEST: OfferResponse,
    InboundEvent.UPDATE_RIDE_STATUS: RideStatusChange,
    InboundEvent.UPDATE_RIDE_LOCATION: RideLocationChange,
    InboundEvent.CREATE_PARTNERSHIP: PartnershipRequest,
    InboundEvent.GET_USER_ONGOING_RIDES: UserQuery,
    InboundEvent.GET_USER_CURRENT_PARTNERS: UserQuery,
    InboundEvent.GET_USER_AVAILABLE_PARTNERS: UserQuery,
}


# ── Envelope helpers ──────────────────────────────────────────────────


def _describe(exc: PydanticValidationError) -> list[dict[str, str]]:
    return [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


def parse_envelope(message: Any) -> tuple[InboundEvent, dict[str, Any]]:
    """Split a raw client message into a known event name and its data."""
    if not isinstance(message, dict):
        raise ValidationError("Message must be a JSON object")
    name = message.get("event")
    try:
        event = InboundEvent(name)
    except ValueError:
        raise ValidationError(f"Unknown event: {name!r}", event=name) from None
    data = message.get("data") or {}
    if not isinstance(data, dict):
        raise ValidationError("Event data must be a JSON object", event=event.value)
    return event, data


def parse_payload(event: InboundEvent, data: dict[str, Any]) -> _Payload:
    schema = INBOUND_SCHEMAS[event]
    try:
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid {event.value} payload", details=_describe(exc)
        ) from exc


def envelope(event: OutboundEvent, payload: dict[str, Any]) -> dict[str, Any]:
    return {"event": event.value, "data": payload}
