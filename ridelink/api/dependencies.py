"""FastAPI dependency injection helpers."""

from fastapi import Request

from ridelink.infrastructure.repositories import (
    BookingRepository,
    PartnershipRepository,
    UserRepository,
)
from ridelink.services.container import Coordinator


def get_coordinator(request: Request) -> Coordinator:
    """The process-wide coordinator created by the app factory."""
    return request.app.state.coordinator


def get_users(request: Request) -> UserRepository:
    return UserRepository(get_coordinator(request).gateway)


def get_partnerships(request: Request) -> PartnershipRepository:
    return PartnershipRepository(get_coordinator(request).gateway)


def get_bookings(request: Request) -> BookingRepository:
    return BookingRepository(get_coordinator(request).gateway)
