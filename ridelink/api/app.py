"""
FastAPI application factory.

* Builds the coordinator (registry, offers, locks, services) once per app.
* Registers routes for users, partnerships, bookings, admin and the
  ``/ws`` realtime channel.
* Starts / stops the offer sweeper via lifespan events.
* Maps coordination errors to HTTP status codes and applies rate limiting.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ridelink.api.middleware import limiter
from ridelink.api.routes import admin, bookings, partnerships, realtime, users
from ridelink.config import Settings, settings
from ridelink.domain.errors import (
    CoordinationError,
    InvalidTransition,
    NotFound,
    OfferAlreadyResolved,
    OfferNotFound,
    PersistenceError,
    ValidationError,
)
from ridelink.infrastructure.gateway import PersistenceGateway, SqlAlchemyGateway
from ridelink.realtime.hub import WebSocketTransport
from ridelink.services.container import build_coordinator

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

_STATUS_CODES: list[tuple[type[CoordinationError], int]] = [
    (NotFound, 404),
    (OfferNotFound, 404),
    (ValidationError, 422),
    (InvalidTransition, 409),
    (OfferAlreadyResolved, 409),
    (PersistenceError, 503),
]


async def coordination_error_handler(request: Request, exc: CoordinationError) -> JSONResponse:
    status_code = next(
        (code for error_cls, code in _STATUS_CODES if isinstance(exc, error_cls)), 400
    )
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(exc.to_payload()))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the offer sweeper on startup; stop on shutdown."""
    sweeper = app.state.coordinator.sweeper
    await sweeper.start()
    yield
    await sweeper.stop()


def create_app(
    gateway: Optional[PersistenceGateway] = None,
    config: Optional[Settings] = None,
) -> FastAPI:
    config = config or settings
    if gateway is None:
        from ridelink.infrastructure.database import async_session_factory

        gateway = SqlAlchemyGateway(async_session_factory)

    app = FastAPI(
        title="RideLink Booking Coordination API",
        description=(
            "Dispatches ride bookings from companies to their partner "
            "vendors in real time, settles concurrent acceptances and "
            "tracks each ride through its lifecycle."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.coordinator = build_coordinator(gateway, WebSocketTransport(), config)

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(CoordinationError, coordination_error_handler)

    # Routers
    app.include_router(users.router, prefix="/api/v1")
    app.include_router(partnerships.router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")
    app.include_router(realtime.router)

    return app
