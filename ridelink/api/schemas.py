"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from ridelink.domain.enums import ActorType, BookingStatus, PartnershipStatus


# ── Requests ──────────────────────────────────────────────────────────


class UserCreateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    user_type: ActorType
    company_name: Optional[str] = Field(None, max_length=255)
    vendor_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=40)
    address: Optional[str] = None

    @model_validator(mode="after")
    def _name_matches_type(self) -> "UserCreateRequest":
        if self.user_type is ActorType.COMPANY and not self.company_name:
            raise ValueError("company_name is required for companies")
        if self.user_type is ActorType.VENDOR and not self.vendor_name:
            raise ValueError("vendor_name is required for vendors")
        return self


class PartnershipCreateRequest(BaseModel):
    company_id: str = Field(..., min_length=1)
    vendor_id: str = Field(..., min_length=1)


class StatusUpdateRequest(BaseModel):
    status: BookingStatus
    vendor_id: Optional[str] = None
    location: Optional[str] = Field(
        None, description="Current position; stored when the ride starts."
    )


# ── Responses ─────────────────────────────────────────────────────────


class UserResponse(BaseModel):
    id: str
    email: str
    user_type: ActorType
    company_name: Optional[str] = None
    vendor_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserRegistrationResponse(BaseModel):
    user: UserResponse
    partnerships_created: int


class PartnershipResponse(BaseModel):
    id: str
    company_id: str
    vendor_id: str
    status: PartnershipStatus
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: str
    company_id: str
    vendor_id: Optional[str] = None
    pickup_location: str
    dropoff_location: str
    pickup_time: datetime
    passenger_count: int
    passenger_name: Optional[str] = None
    passenger_phone: Optional[str] = None
    vehicle_type: Optional[str] = None
    special_requirements: Optional[str] = None
    status: BookingStatus
    price: Optional[float] = None
    current_location: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PartnerListResponse(BaseModel):
    user_id: str
    partnerships: list[dict[str, Any]]
    count: int


class AvailablePartnersResponse(BaseModel):
    user_id: str
    partner_type: str
    available_partners: list[UserResponse]
    count: int


class OngoingRidesResponse(BaseModel):
    user_id: str
    ongoing_rides: list[BookingResponse]
    count: int


class PendingRidesResponse(BaseModel):
    user_id: str
    pending_rides: list[BookingResponse]
    count: int


class OfferSummary(BaseModel):
    request_id: str
    booking_id: str
    company_id: str
    target_vendor_ids: list[str]
    status: str
    created_at: datetime


class OffersResponse(BaseModel):
    connected_sessions: int
    connected_companies: int
    connected_vendors: int
    offer_ttl_seconds: int
    pending_offers: list[OfferSummary]


class HealthResponse(BaseModel):
    status: str = "ok"
