"""
Repository Pattern -- domain-relevant queries on top of the gateway.

Each repository receives a ``PersistenceGateway`` and exposes only the
lookups the coordination services and the API need, so neither has to
spell out table names or filter dictionaries.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .gateway import PersistenceGateway, Record
from ridelink.domain.entities import utcnow
from ridelink.domain.enums import (
    ONGOING_STATUSES,
    ActorType,
    BookingStatus,
    PartnershipStatus,
)


def _actor_column(actor_type: ActorType) -> str:
    return "company_id" if actor_type is ActorType.COMPANY else "vendor_id"


class UserRepository:
    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    async def create(self, record: Record) -> Record:
        return await self.gateway.insert("users", record)

    async def get_by_id(self, user_id: str) -> Optional[Record]:
        return await self.gateway.get("users", user_id)

    async def get_actor(self, actor_type: ActorType, actor_id: str) -> Optional[Record]:
        """Return the user only if it exists with the given actor type."""
        user = await self.get_by_id(actor_id)
        if user is None or ActorType(user["user_type"]) is not actor_type:
            return None
        return user

    async def list_by_type(self, actor_type: ActorType) -> list[Record]:
        name_column = "company_name" if actor_type is ActorType.COMPANY else "vendor_name"
        return await self.gateway.query(
            "users", {"user_type": actor_type}, order_by=name_column
        )


class PartnershipRepository:
    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    async def create(self, company_id: str, vendor_id: str) -> Record:
        return await self.gateway.insert(
            "partnerships",
            {
                "company_id": company_id,
                "vendor_id": vendor_id,
                "status": PartnershipStatus.ACTIVE,
            },
        )

    async def find_pair(self, company_id: str, vendor_id: str) -> Optional[Record]:
        rows = await self.gateway.query(
            "partnerships", {"company_id": company_id, "vendor_id": vendor_id}, limit=1
        )
        return rows[0] if rows else None

    async def active_for(self, actor_type: ActorType, actor_id: str) -> list[Record]:
        return await self.gateway.query(
            "partnerships",
            {_actor_column(actor_type): actor_id, "status": PartnershipStatus.ACTIVE},
            order_by="created_at",
        )


class BookingRepository:
    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    async def create(self, record: Record) -> Record:
        return await self.gateway.insert("bookings", record)

    async def get_by_id(self, booking_id: str) -> Optional[Record]:
        return await self.gateway.get("bookings", booking_id)

    async def update(self, booking_id: str, patch: Record) -> Record:
        return await self.gateway.update(
            "bookings", booking_id, {**patch, "updated_at": utcnow()}
        )

    async def list_for_actor(
        self, actor_type: ActorType, actor_id: str, limit: int = 100
    ) -> list[Record]:
        return await self.gateway.query(
            "bookings",
            {_actor_column(actor_type): actor_id},
            order_by="-created_at",
            limit=limit,
        )

    async def ongoing_for_actor(
        self, actor_type: ActorType, actor_id: str, limit: int = 50
    ) -> list[Record]:
        return await self.gateway.query(
            "bookings",
            {_actor_column(actor_type): actor_id, "status": set(ONGOING_STATUSES)},
            order_by="-created_at",
            limit=limit,
        )

    async def unassigned_pending(self, company_ids: Iterable[str]) -> list[Record]:
        """Pending bookings with no vendor yet, for the given companies."""
        company_ids = list(company_ids)
        if not company_ids:
            return []
        return await self.gateway.query(
            "bookings",
            {
                "company_id": company_ids,
                "status": BookingStatus.PENDING,
                "vendor_id": None,
            },
            order_by="-created_at",
        )
