"""
Partnership endpoints
=====================

POST /api/v1/partnerships                      -- partner a company with a vendor
GET  /api/v1/partnerships?company_id=|vendor_id= -- active partnerships of one side
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from ridelink.api.dependencies import get_coordinator, get_partnerships
from ridelink.api.middleware import limiter
from ridelink.api.schemas import PartnershipCreateRequest, PartnershipResponse
from ridelink.config import settings
from ridelink.domain.enums import ActorType
from ridelink.infrastructure.repositories import PartnershipRepository
from ridelink.services.container import Coordinator

router = APIRouter(prefix="/partnerships", tags=["partnerships"])


@router.post(
    "",
    status_code=201,
    response_model=PartnershipResponse,
    summary="Create a partnership",
    description="Idempotent: an existing pair is returned unchanged.",
)
@limiter.limit(settings.rate_limit)
async def create_partnership(
    request: Request,
    body: PartnershipCreateRequest,
    coordinator: Coordinator = Depends(get_coordinator),
):
    return await coordinator.resolver.create_partnership(body.company_id, body.vendor_id)


@router.get("", response_model=list[PartnershipResponse], summary="List partnerships")
@limiter.limit(settings.rate_limit)
async def list_partnerships(
    request: Request,
    company_id: Optional[str] = None,
    vendor_id: Optional[str] = None,
    partnerships: PartnershipRepository = Depends(get_partnerships),
):
    if bool(company_id) == bool(vendor_id):
        raise HTTPException(
            status_code=422, detail="Exactly one of company_id or vendor_id is required"
        )
    if company_id:
        return await partnerships.active_for(ActorType.COMPANY, company_id)
    return await partnerships.active_for(ActorType.VENDOR, vendor_id)
