"""
Partnership resolution
======================

Answers "which vendors may receive this company's booking requests?" (and
the symmetric question for vendors), creates partnerships explicitly, and
applies the bootstrap policy when a new actor registers: a new company is
partnered with every existing vendor and a new vendor with every existing
company.

Partnerships are unique per (company, vendor) pair and never deleted.
"""

from __future__ import annotations

import logging
from typing import Any

from ridelink.domain.enums import ActorType
from ridelink.domain.errors import PersistenceError, ValidationError
from ridelink.infrastructure.gateway import PersistenceGateway, Record, ids_of
from ridelink.infrastructure.repositories import PartnershipRepository, UserRepository

logger = logging.getLogger(__name__)


class PartnershipResolver:
    def __init__(self, gateway: PersistenceGateway, bootstrap: bool = True):
        self.users = UserRepository(gateway)
        self.partnerships = PartnershipRepository(gateway)
        self.bootstrap = bootstrap

    # ── Queries ───────────────────────────────────────────────────────

    async def active_vendor_partners(self, company_id: str) -> set[str]:
        rows = await self.partnerships.active_for(ActorType.COMPANY, company_id)
        return ids_of(rows, "vendor_id")

    async def active_company_partners(self, vendor_id: str) -> set[str]:
        rows = await self.partnerships.active_for(ActorType.VENDOR, vendor_id)
        return ids_of(rows, "company_id")

    async def active_partners(self, actor_type: ActorType, actor_id: str) -> set[str]:
        if ActorType(actor_type) is ActorType.COMPANY:
            return await self.active_vendor_partners(actor_id)
        return await self.active_company_partners(actor_id)

    async def available_vendor_partners(self, company_id: str) -> set[str]:
        vendors = await self.users.list_by_type(ActorType.VENDOR)
        return ids_of(vendors) - await self.active_vendor_partners(company_id)

    async def available_company_partners(self, vendor_id: str) -> set[str]:
        companies = await self.users.list_by_type(ActorType.COMPANY)
        return ids_of(companies) - await self.active_company_partners(vendor_id)

    async def available_partner_details(
        self, actor_type: ActorType, actor_id: str
    ) -> list[Record]:
        """User rows of counterparts not yet partnered with this actor."""
        actor_type = ActorType(actor_type)
        partnered = await self.active_partners(actor_type, actor_id)
        candidates = await self.users.list_by_type(actor_type.counterpart)
        return [user for user in candidates if user["id"] not in partnered]

    async def partner_details(self, actor_type: ActorType, actor_id: str) -> list[Record]:
        """Active partnership rows joined with the counterpart's user row."""
        actor_type = ActorType(actor_type)
        rows = await self.partnerships.active_for(actor_type, actor_id)
        counterpart_key = "vendor_id" if actor_type is ActorType.COMPANY else "company_id"
        counterpart_name = actor_type.counterpart.value
        details = []
        for row in rows:
            partner = await self.users.get_by_id(row[counterpart_key])
            details.append({**row, counterpart_name: partner})
        return details

    # ── Commands ──────────────────────────────────────────────────────

    async def create_partnership(self, company_id: str, vendor_id: str) -> Record:
        """Partner a company with a vendor; returns the existing row if any."""
        if await self.users.get_actor(ActorType.COMPANY, company_id) is None:
            raise ValidationError("Unknown company", company_id=company_id)
        if await self.users.get_actor(ActorType.VENDOR, vendor_id) is None:
            raise ValidationError("Unknown vendor", vendor_id=vendor_id)

        existing = await self.partnerships.find_pair(company_id, vendor_id)
        if existing is not None:
            return existing
        partnership = await self.partnerships.create(company_id, vendor_id)
        logger.info("Partnership created: company %s <-> vendor %s", company_id, vendor_id)
        return partnership

    async def register_actor(self, record: dict[str, Any]) -> tuple[Record, list[Record]]:
        """Create a user and, if enabled, partner it with every counterpart.

        Returns the new user and the partnerships created for it.
        """
        try:
            actor_type = ActorType(record.get("user_type"))
        except ValueError:
            raise ValidationError(
                "user_type must be 'company' or 'vendor'", user_type=record.get("user_type")
            ) from None
        user = await self.users.create({**record, "user_type": actor_type})

        created: list[Record] = []
        if self.bootstrap:
            for counterpart in await self.users.list_by_type(actor_type.counterpart):
                if actor_type is ActorType.COMPANY:
                    pair = (user["id"], counterpart["id"])
                else:
                    pair = (counterpart["id"], user["id"])
                try:
                    created.append(await self.partnerships.create(*pair))
                except PersistenceError:
                    logger.warning("Bootstrap partnership %s <-> %s failed", *pair)
            logger.info(
                "Created partnerships between %s %s and %d %ss",
                actor_type.value,
                user["id"],
                len(created),
                actor_type.counterpart.value,
            )
        return user, created
