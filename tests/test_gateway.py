"""
Integration tests for the SQLAlchemy gateway and the repositories on top.

Runs against an in-memory SQLite database (aiosqlite) built from the
production ORM models.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from ridelink.domain.enums import ActorType, BookingStatus, PartnershipStatus
from ridelink.domain.errors import NotFound, PersistenceError
from ridelink.infrastructure.repositories import (
    BookingRepository,
    PartnershipRepository,
    UserRepository,
)
from ridelink.services.partnerships import PartnershipResolver

PICKUP = datetime(2026, 10, 20, 9, 30, tzinfo=timezone.utc)


def _booking(company_id, **overrides):
    return {
        "company_id": company_id,
        "pickup_location": "SFO",
        "dropoff_location": "Downtown",
        "pickup_time": PICKUP,
        **overrides,
    }


class TestSqlAlchemyGateway:
    @pytest.mark.asyncio
    async def test_insert_assigns_id_and_defaults(self, sqlite_gateway):
        user = await sqlite_gateway.insert(
            "users", {"email": "c@x.test", "user_type": ActorType.COMPANY, "company_name": "C"}
        )
        assert len(user["id"]) == 36
        assert user["user_type"] is ActorType.COMPANY
        assert user["created_at"] is not None

        booking = await sqlite_gateway.insert("bookings", _booking(user["id"]))
        assert booking["status"] is BookingStatus.PENDING
        assert booking["passenger_count"] == 1
        assert booking["vendor_id"] is None

    @pytest.mark.asyncio
    async def test_get_and_update(self, sqlite_gateway):
        company = await sqlite_gateway.insert(
            "users", {"email": "c@x.test", "user_type": ActorType.COMPANY}
        )
        booking = await sqlite_gateway.insert("bookings", _booking(company["id"]))

        updated = await sqlite_gateway.update(
            "bookings", booking["id"], {"status": BookingStatus.CANCELLED}
        )

        assert updated["status"] is BookingStatus.CANCELLED
        fetched = await sqlite_gateway.get("bookings", booking["id"])
        assert fetched["status"] is BookingStatus.CANCELLED
        assert await sqlite_gateway.get("bookings", "missing") is None

    @pytest.mark.asyncio
    async def test_update_missing_record(self, sqlite_gateway):
        with pytest.raises(NotFound):
            await sqlite_gateway.update("bookings", "missing", {"status": BookingStatus.CANCELLED})

    @pytest.mark.asyncio
    async def test_unique_email_violation_is_a_persistence_error(self, sqlite_gateway):
        await sqlite_gateway.insert("users", {"email": "dup@x.test", "user_type": ActorType.VENDOR})
        with pytest.raises(PersistenceError):
            await sqlite_gateway.insert(
                "users", {"email": "dup@x.test", "user_type": ActorType.VENDOR}
            )

    @pytest.mark.asyncio
    async def test_query_filters(self, sqlite_gateway):
        company = await sqlite_gateway.insert(
            "users", {"email": "c@x.test", "user_type": ActorType.COMPANY}
        )
        vendor = await sqlite_gateway.insert(
            "users", {"email": "v@x.test", "user_type": ActorType.VENDOR}
        )
        await sqlite_gateway.insert("bookings", _booking(company["id"]))
        await sqlite_gateway.insert(
            "bookings",
            _booking(company["id"], vendor_id=vendor["id"], status=BookingStatus.ACCEPTED),
        )
        await sqlite_gateway.insert(
            "bookings",
            _booking(company["id"], vendor_id=vendor["id"], status=BookingStatus.COMPLETED),
        )

        unassigned = await sqlite_gateway.query("bookings", {"vendor_id": None})
        assert len(unassigned) == 1
        active = await sqlite_gateway.query(
            "bookings", {"status": [BookingStatus.ACCEPTED, BookingStatus.PENDING]}
        )
        assert {b["status"] for b in active} == {BookingStatus.ACCEPTED, BookingStatus.PENDING}
        assert len(await sqlite_gateway.query("bookings", limit=2)) == 2

    @pytest.mark.asyncio
    async def test_unknown_table(self, sqlite_gateway):
        with pytest.raises(ValueError):
            await sqlite_gateway.get("cabs", "1")


class TestRepositories:
    @pytest.mark.asyncio
    async def test_partnership_pair_is_unique(self, sqlite_gateway):
        users = UserRepository(sqlite_gateway)
        company = await users.create({"email": "c@x.test", "user_type": ActorType.COMPANY})
        vendor = await users.create({"email": "v@x.test", "user_type": ActorType.VENDOR})
        partnerships = PartnershipRepository(sqlite_gateway)

        created = await partnerships.create(company["id"], vendor["id"])
        assert created["status"] is PartnershipStatus.ACTIVE
        with pytest.raises(PersistenceError):
            await partnerships.create(company["id"], vendor["id"])
        assert (await partnerships.find_pair(company["id"], vendor["id"]))["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_get_actor_checks_type(self, sqlite_gateway):
        users = UserRepository(sqlite_gateway)
        vendor = await users.create({"email": "v@x.test", "user_type": ActorType.VENDOR})
        assert await users.get_actor(ActorType.VENDOR, vendor["id"]) is not None
        assert await users.get_actor(ActorType.COMPANY, vendor["id"]) is None

    @pytest.mark.asyncio
    async def test_booking_lists(self, sqlite_gateway):
        users = UserRepository(sqlite_gateway)
        company = await users.create({"email": "c@x.test", "user_type": ActorType.COMPANY})
        vendor = await users.create({"email": "v@x.test", "user_type": ActorType.VENDOR})
        bookings = BookingRepository(sqlite_gateway)
        pending = await bookings.create(_booking(company["id"]))
        ongoing = await bookings.create(
            _booking(company["id"], vendor_id=vendor["id"], status=BookingStatus.IN_PROGRESS)
        )

        assert len(await bookings.list_for_actor(ActorType.COMPANY, company["id"])) == 2
        assert [b["id"] for b in await bookings.ongoing_for_actor(ActorType.VENDOR, vendor["id"])] == [
            ongoing["id"]
        ]
        assert [b["id"] for b in await bookings.unassigned_pending([company["id"]])] == [
            pending["id"]
        ]
        assert await bookings.unassigned_pending([]) == []


class TestPartnershipBootstrap:
    @pytest.mark.asyncio
    async def test_new_actors_are_partnered_with_every_counterpart(self, sqlite_gateway):
        resolver = PartnershipResolver(sqlite_gateway, bootstrap=True)
        v1, _ = await resolver.register_actor(
            {"email": "v1@x.test", "user_type": "vendor", "vendor_name": "V1"}
        )
        v2, _ = await resolver.register_actor(
            {"email": "v2@x.test", "user_type": "vendor", "vendor_name": "V2"}
        )
        company, created = await resolver.register_actor(
            {"email": "c@x.test", "user_type": "company", "company_name": "C"}
        )

        assert len(created) == 2
        assert await resolver.active_vendor_partners(company["id"]) == {v1["id"], v2["id"]}
        assert await resolver.active_company_partners(v1["id"]) == {company["id"]}
        assert await resolver.available_vendor_partners(company["id"]) == set()

    @pytest.mark.asyncio
    async def test_bootstrap_disabled(self, sqlite_gateway):
        resolver = PartnershipResolver(sqlite_gateway, bootstrap=False)
        vendor, _ = await resolver.register_actor(
            {"email": "v@x.test", "user_type": "vendor", "vendor_name": "V"}
        )
        company, created = await resolver.register_actor(
            {"email": "c@x.test", "user_type": "company", "company_name": "C"}
        )
        assert created == []
        assert await resolver.available_vendor_partners(company["id"]) == {vendor["id"]}

        partnership = await resolver.create_partnership(company["id"], vendor["id"])
        again = await resolver.create_partnership(company["id"], vendor["id"])
        assert again["id"] == partnership["id"]
        [detail] = await resolver.partner_details(ActorType.COMPANY, company["id"])
        assert detail["vendor"]["vendor_name"] == "V"
