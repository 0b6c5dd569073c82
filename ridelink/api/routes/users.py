"""
User endpoints
==============

POST /api/v1/users                          -- register a company or vendor
GET  /api/v1/users                          -- list companies and vendors
GET  /api/v1/users/{user_id}                -- one user
GET  /api/v1/users/{user_id}/current-partners
GET  /api/v1/users/{user_id}/available-partners
GET  /api/v1/users/{user_id}/ongoing-rides
GET  /api/v1/users/{user_id}/pending-rides
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ridelink.api.dependencies import get_bookings, get_coordinator, get_users
from ridelink.api.middleware import limiter
from ridelink.api.schemas import (
    AvailablePartnersResponse,
    OngoingRidesResponse,
    PartnerListResponse,
    PendingRidesResponse,
    UserCreateRequest,
    UserRegistrationResponse,
    UserResponse,
)
from ridelink.config import settings
from ridelink.domain.enums import ActorType
from ridelink.infrastructure.repositories import BookingRepository, UserRepository
from ridelink.services.container import Coordinator

router = APIRouter(prefix="/users", tags=["users"])


async def _require_actor(users: UserRepository, user_id: str, user_type: ActorType) -> dict:
    user = await users.get_actor(user_type, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail=f"{user_type.value.title()} not found")
    return user


@router.post(
    "",
    status_code=201,
    response_model=UserRegistrationResponse,
    summary="Register a company or vendor",
    description=(
        "With bootstrap partnerships enabled, a new company is partnered "
        "with every existing vendor and a new vendor with every company."
    ),
)
@limiter.limit(settings.rate_limit)
async def create_user(
    request: Request,
    body: UserCreateRequest,
    coordinator: Coordinator = Depends(get_coordinator),
):
    if await coordinator.gateway.query("users", {"email": body.email}, limit=1):
        raise HTTPException(status_code=409, detail="Email already registered")
    user, created = await coordinator.resolver.register_actor(body.model_dump())
    return UserRegistrationResponse(user=user, partnerships_created=len(created))


@router.get("", response_model=list[UserResponse], summary="List users")
@limiter.limit(settings.rate_limit)
async def list_users(
    request: Request,
    user_type: Optional[ActorType] = None,
    users: UserRepository = Depends(get_users),
):
    if user_type is not None:
        return await users.list_by_type(user_type)
    return await users.list_by_type(ActorType.COMPANY) + await users.list_by_type(
        ActorType.VENDOR
    )


@router.get("/{user_id}", response_model=UserResponse, summary="Get a user")
@limiter.limit(settings.rate_limit)
async def get_user(
    request: Request,
    user_id: str,
    users: UserRepository = Depends(get_users),
):
    user = await users.get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get(
    "/{user_id}/current-partners",
    response_model=PartnerListResponse,
    summary="Active partnerships with the partner's details",
)
@limiter.limit(settings.rate_limit)
async def current_partners(
    request: Request,
    user_id: str,
    user_type: ActorType = Query(...),
    coordinator: Coordinator = Depends(get_coordinator),
):
    await _require_actor(coordinator.users, user_id, user_type)
    partnerships = await coordinator.resolver.partner_details(user_type, user_id)
    return PartnerListResponse(
        user_id=user_id, partnerships=partnerships, count=len(partnerships)
    )


@router.get(
    "/{user_id}/available-partners",
    response_model=AvailablePartnersResponse,
    summary="Counterparts not yet partnered with this user",
)
@limiter.limit(settings.rate_limit)
async def available_partners(
    request: Request,
    user_id: str,
    user_type: ActorType = Query(...),
    coordinator: Coordinator = Depends(get_coordinator),
):
    await _require_actor(coordinator.users, user_id, user_type)
    available = await coordinator.resolver.available_partner_details(user_type, user_id)
    return AvailablePartnersResponse(
        user_id=user_id,
        partner_type="vendors" if user_type is ActorType.COMPANY else "companies",
        available_partners=available,
        count=len(available),
    )


@router.get(
    "/{user_id}/ongoing-rides",
    response_model=OngoingRidesResponse,
    summary="Accepted and in-progress bookings of this user",
)
@limiter.limit(settings.rate_limit)
async def ongoing_rides(
    request: Request,
    user_id: str,
    user_type: ActorType = Query(...),
    users: UserRepository = Depends(get_users),
    bookings: BookingRepository = Depends(get_bookings),
):
    await _require_actor(users, user_id, user_type)
    rides = await bookings.ongoing_for_actor(user_type, user_id)
    return OngoingRidesResponse(user_id=user_id, ongoing_rides=rides, count=len(rides))


@router.get(
    "/{user_id}/pending-rides",
    response_model=PendingRidesResponse,
    summary="Unassigned pending bookings visible to this user",
    description=(
        "For a company, its own pending bookings; for a vendor, the "
        "unassigned pending bookings of every company it partners with."
    ),
)
@limiter.limit(settings.rate_limit)
async def pending_rides(
    request: Request,
    user_id: str,
    user_type: ActorType = Query(...),
    coordinator: Coordinator = Depends(get_coordinator),
):
    await _require_actor(coordinator.users, user_id, user_type)
    if user_type is ActorType.COMPANY:
        company_ids = [user_id]
    else:
        company_ids = await coordinator.resolver.active_company_partners(user_id)
    rides = await coordinator.bookings.unassigned_pending(company_ids)
    return PendingRidesResponse(user_id=user_id, pending_rides=rides, count=len(rides))
