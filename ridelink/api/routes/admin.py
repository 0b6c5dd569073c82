"""
Admin / observability endpoints
===============================

GET /api/v1/admin/offers -- in-flight offers and connected session counts
GET /api/v1/admin/health -- simple health check
"""

from fastapi import APIRouter, Depends, Request

from ridelink.api.dependencies import get_coordinator
from ridelink.api.middleware import limiter
from ridelink.api.schemas import HealthResponse, OfferSummary, OffersResponse
from ridelink.config import settings
from ridelink.domain.enums import ActorType
from ridelink.services.container import Coordinator

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/offers",
    response_model=OffersResponse,
    summary="List pending booking offers and live sessions",
)
@limiter.limit(settings.rate_limit)
async def get_offers(
    request: Request,
    coordinator: Coordinator = Depends(get_coordinator),
):
    registry = coordinator.registry
    pending = [
        OfferSummary(
            request_id=offer.request_id,
            booking_id=offer.booking_id,
            company_id=offer.company_id,
            target_vendor_ids=sorted(offer.target_vendor_ids),
            status=offer.status.value,
            created_at=offer.created_at,
        )
        for offer in coordinator.offers.pending()
    ]
    return OffersResponse(
        connected_sessions=len(registry),
        connected_companies=len(registry.connected_actor_ids(ActorType.COMPANY)),
        connected_vendors=len(registry.connected_actor_ids(ActorType.VENDOR)),
        offer_ttl_seconds=coordinator.offers.ttl_seconds,
        pending_offers=pending,
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
