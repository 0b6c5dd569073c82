"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 3 companies and 4 vendors (registered through the partnership
    bootstrap, so every company starts partnered with every vendor)
  - 6 sample bookings (mix of pending, accepted, in_progress, completed)
"""

import asyncio
from datetime import timedelta

from sqlalchemy import text

from ridelink.domain.entities import utcnow
from ridelink.domain.enums import BookingStatus
from ridelink.infrastructure.database import async_session_factory, engine
from ridelink.infrastructure.gateway import SqlAlchemyGateway
from ridelink.infrastructure.repositories import BookingRepository
from ridelink.services.partnerships import PartnershipResolver


COMPANIES = [
    {"email": "ops@northwind.example", "company_name": "Northwind Travel", "phone": "+1 415 555 0101"},
    {"email": "desk@bluesky.example", "company_name": "Blue Sky Events", "phone": "+1 415 555 0102"},
    {"email": "travel@acme.example", "company_name": "Acme Corp Travel", "phone": "+1 415 555 0103"},
]

VENDORS = [
    {"email": "dispatch@citycabs.example", "vendor_name": "City Cabs", "phone": "+1 415 555 0201"},
    {"email": "rides@metrolimo.example", "vendor_name": "Metro Limo", "phone": "+1 415 555 0202"},
    {"email": "hello@baytransit.example", "vendor_name": "Bay Transit", "phone": "+1 415 555 0203"},
    {"email": "book@executivecars.example", "vendor_name": "Executive Cars", "phone": "+1 415 555 0204"},
]

# (company index, vendor index or None, status, pickup, dropoff, hours ahead, passengers, price)
BOOKINGS = [
    (0, None, BookingStatus.PENDING, "SFO Terminal 2", "Union Square", 3, 2, 65.0),
    (1, None, BookingStatus.PENDING, "Moscone Center", "Oakland Airport", 5, 4, 90.0),
    (0, 0, BookingStatus.ACCEPTED, "Ferry Building", "Palo Alto", 2, 1, 120.0),
    (2, 1, BookingStatus.IN_PROGRESS, "SJC Terminal B", "Downtown San Jose", 0, 3, 45.5),
    (1, 2, BookingStatus.COMPLETED, "Oracle Park", "Berkeley", -4, 2, 55.0),
    (2, 3, BookingStatus.ACCEPTED, "Palace Hotel", "SFO Terminal 1", 6, 1, 70.0),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

    gateway = SqlAlchemyGateway(async_session_factory)
    resolver = PartnershipResolver(gateway, bootstrap=True)
    bookings = BookingRepository(gateway)

    # ── Users and bootstrap partnerships ──────────────────────────────
    companies, vendors, partnerships = [], [], 0
    for c in COMPANIES:
        user, created = await resolver.register_actor({**c, "user_type": "company"})
        companies.append(user)
        partnerships += len(created)
    for v in VENDORS:
        user, created = await resolver.register_actor({**v, "user_type": "vendor"})
        vendors.append(user)
        partnerships += len(created)
    print(f"  Created {len(companies)} companies and {len(vendors)} vendors")
    print(f"  Created {partnerships} partnerships")

    # ── Bookings ──────────────────────────────────────────────────────
    now = utcnow()
    for company_idx, vendor_idx, status, pickup, dropoff, hours, passengers, price in BOOKINGS:
        await bookings.create(
            {
                "company_id": companies[company_idx]["id"],
                "vendor_id": vendors[vendor_idx]["id"] if vendor_idx is not None else None,
                "pickup_location": pickup,
                "dropoff_location": dropoff,
                "pickup_time": now + timedelta(hours=hours),
                "passenger_count": passengers,
                "price": price,
                "status": status,
                "current_location": pickup if status is BookingStatus.IN_PROGRESS else None,
            }
        )
    print(f"  Created {len(BOOKINGS)} bookings")
    print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
