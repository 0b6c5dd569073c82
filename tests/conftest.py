"""
Shared test fixtures.

Service-level tests run against ``InMemoryGateway`` (a dict-backed
``PersistenceGateway`` with failure injection) and ``RecordingTransport``
(which keeps every envelope instead of writing to a socket), so no
database or network is needed.  Gateway tests use an in-memory SQLite
database via aiosqlite.
"""

from __future__ import annotations

import uuid
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ridelink.config import Settings
from ridelink.domain.entities import utcnow
from ridelink.domain.enums import ActorType
from ridelink.domain.errors import NotFound, PersistenceError
from ridelink.infrastructure.database import Base
from ridelink.infrastructure.gateway import PersistenceGateway, Record, SqlAlchemyGateway
from ridelink.services.container import Coordinator, build_coordinator

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

COMPANY = "company-1"
VENDOR_A = "vendor-a"
VENDOR_B = "vendor-b"
VENDOR_C = "vendor-c"


# ── Fakes ─────────────────────────────────────────────────────────────


class InMemoryGateway(PersistenceGateway):
    """Dict-backed gateway mirroring the constraints of the real schema."""

    _UNIQUE = {
        "users": [("email",)],
        "partnerships": [("company_id", "vendor_id")],
        "bookings": [],
    }

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, Record]] = {t: {} for t in self._UNIQUE}
        self.failures: set[tuple[str, str]] = set()
        self.calls: list[tuple[str, str]] = []
        self._seq = 0

    def fail(self, op: str, table: str) -> None:
        """Make every subsequent ``op`` on ``table`` raise ``PersistenceError``."""
        self.failures.add((op, table))

    def recover(self) -> None:
        self.failures.clear()

    def _check(self, op: str, table: str) -> None:
        self.calls.append((op, table))
        if (op, table) in self.failures:
            raise PersistenceError(f"Injected {op} failure on {table}", table=table)

    async def insert(self, table: str, record: Record) -> Record:
        self._check("insert", table)
        rows = self.tables[table]
        for columns in self._UNIQUE[table]:
            key = tuple(record.get(c) for c in columns)
            if any(tuple(r.get(c) for c in columns) == key for r in rows.values()):
                raise PersistenceError(f"Duplicate {table} record", table=table)
        self._seq += 1
        now = utcnow()
        row = {"created_at": now, "updated_at": now, **record, "_seq": self._seq}
        row["id"] = record.get("id") or str(uuid.uuid4())
        rows[row["id"]] = row
        return self._public(row)

    async def update(self, table: str, record_id: str, patch: Record) -> Record:
        self._check("update", table)
        row = self.tables[table].get(record_id)
        if row is None:
            raise NotFound(f"{table} record {record_id} not found", id=record_id)
        row.update(patch)
        return self._public(row)

    async def get(self, table: str, record_id: str) -> Optional[Record]:
        self._check("get", table)
        row = self.tables[table].get(record_id)
        return self._public(row) if row is not None else None

    async def query(self, table, filters=None, *, order_by=None, limit=None):
        self._check("query", table)
        rows = [r for r in self.tables[table].values() if self._matches(r, filters or {})]
        rows.sort(key=lambda r: r["_seq"])
        if order_by:
            column = order_by.lstrip("-")
            rows.sort(
                key=lambda r: (r.get(column) is None, r.get(column)),
                reverse=order_by.startswith("-"),
            )
        if limit:
            rows = rows[:limit]
        return [self._public(r) for r in rows]

    @staticmethod
    def _matches(row: Record, filters: Record) -> bool:
        for column, value in filters.items():
            actual = row.get(column)
            if isinstance(value, (list, tuple, set, frozenset)):
                if actual not in value:
                    return False
            elif value is None:
                if actual is not None:
                    return False
            elif actual != value:
                return False
        return True

    @staticmethod
    def _public(row: Record) -> Record:
        return {k: v for k, v in row.items() if k != "_seq"}


class RecordingTransport:
    """Transport that keeps every envelope sent to every session."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict]] = []
        self.broken: set[str] = set()

    async def send(self, session_id: str, message: dict) -> None:
        if session_id in self.broken:
            raise ConnectionError(f"session {session_id} is gone")
        self.sent.append((session_id, message))

    def events(self, session_id: str, name: Optional[str] = None) -> list[dict]:
        """Payloads delivered to one session, optionally of one event name."""
        return [
            message["data"]
            for sid, message in self.sent
            if sid == session_id and (name is None or message["event"] == name)
        ]

    def names(self, session_id: str) -> list[str]:
        return [message["event"] for sid, message in self.sent if sid == session_id]

    def clear(self) -> None:
        self.sent.clear()


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    return Settings(offer_ttl_seconds=600, offer_sweep_interval_seconds=1)


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def coordinator(gateway, transport, settings) -> Coordinator:
    return build_coordinator(gateway, transport, settings)


@pytest_asyncio.fixture
async def actors(coordinator: Coordinator) -> dict[str, str]:
    """One company partnered with vendors A and B; vendor C registered later.

    Vendor C is registered with bootstrap turned off so that it is *not*
    partnered with the company.
    """
    resolver = coordinator.resolver
    await resolver.register_actor(
        {"id": VENDOR_A, "email": "a@vendors.test", "user_type": "vendor", "vendor_name": "Alpha Cabs"}
    )
    await resolver.register_actor(
        {"id": VENDOR_B, "email": "b@vendors.test", "user_type": "vendor", "vendor_name": "Beta Limo"}
    )
    await resolver.register_actor(
        {"id": COMPANY, "email": "ops@company.test", "user_type": "company", "company_name": "Acme Travel"}
    )
    resolver.bootstrap = False
    await resolver.register_actor(
        {"id": VENDOR_C, "email": "c@vendors.test", "user_type": "vendor", "vendor_name": "Gamma Rides"}
    )
    resolver.bootstrap = True
    return {"company": COMPANY, "vendor_a": VENDOR_A, "vendor_b": VENDOR_B, "vendor_c": VENDOR_C}


@pytest.fixture
def connect(coordinator: Coordinator):
    """Register a session: ``connect("vendor", "vendor-a") -> session_id``."""
    counter = {"n": 0}

    def _connect(actor_type: str, actor_id: str, session_id: Optional[str] = None) -> str:
        counter["n"] += 1
        session_id = session_id or f"sess-{actor_id}-{counter['n']}"
        coordinator.registry.register(session_id, ActorType(actor_type), actor_id)
        return session_id

    return _connect


@pytest.fixture
def ride_details() -> dict:
    return {
        "pickup_location": "SFO Terminal 2",
        "dropoff_location": "Union Square",
        "pickup_time": "2026-10-20T09:30:00Z",
        "passenger_count": 2,
        "passenger_name": "Dana Lee",
        "price": 65.0,
    }


@pytest_asyncio.fixture
async def sqlite_gateway() -> AsyncGenerator[SqlAlchemyGateway, None]:
    """``SqlAlchemyGateway`` over a fresh in-memory SQLite schema."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    yield SqlAlchemyGateway(factory)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
