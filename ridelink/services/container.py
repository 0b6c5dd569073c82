"""
Composition root for the coordination engine.

All process-local state (session registry, offer store, keyed locks) is
created here exactly once per application and shared by the services
that need it.  Tests build a coordinator around an in-memory gateway and
a recording transport.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .acceptance import AcceptanceResolver
from .dispatcher import BookingDispatcher
from .offers import OfferStore
from .partnerships import PartnershipResolver
from .transitions import StatusTransitionEngine
from ridelink.config import Settings, settings as default_settings
from ridelink.infrastructure.gateway import PersistenceGateway
from ridelink.infrastructure.locks import KeyedLock
from ridelink.infrastructure.repositories import BookingRepository, UserRepository
from ridelink.realtime.hub import EventHub, Transport
from ridelink.realtime.registry import SessionRegistry
from ridelink.realtime.router import EventRouter
from ridelink.workers.offer_sweeper import OfferSweeper


@dataclass
class Coordinator:
    gateway: PersistenceGateway
    transport: Transport
    registry: SessionRegistry
    offers: OfferStore
    locks: KeyedLock
    hub: EventHub
    resolver: PartnershipResolver
    dispatcher: BookingDispatcher
    transitions: StatusTransitionEngine
    acceptance: AcceptanceResolver
    sweeper: OfferSweeper
    router: Optional[EventRouter] = None

    @property
    def users(self) -> UserRepository:
        return UserRepository(self.gateway)

    @property
    def bookings(self) -> BookingRepository:
        return BookingRepository(self.gateway)


def build_coordinator(
    gateway: PersistenceGateway,
    transport: Transport,
    config: Optional[Settings] = None,
) -> Coordinator:
    config = config or default_settings

    registry = SessionRegistry()
    offers = OfferStore(
        ttl_seconds=config.offer_ttl_seconds,
        retention_seconds=config.resolved_offer_retention_seconds,
    )
    locks = KeyedLock()
    hub = EventHub(registry, transport)
    resolver = PartnershipResolver(gateway, bootstrap=config.bootstrap_partnerships)
    transitions = StatusTransitionEngine(gateway, resolver, registry, hub, offers, locks)

    coordinator = Coordinator(
        gateway=gateway,
        transport=transport,
        registry=registry,
        offers=offers,
        locks=locks,
        hub=hub,
        resolver=resolver,
        dispatcher=BookingDispatcher(gateway, resolver, registry, hub, offers),
        transitions=transitions,
        acceptance=AcceptanceResolver(gateway, resolver, hub, offers, locks, transitions),
        sweeper=OfferSweeper(offers, hub, config.offer_sweep_interval_seconds),
    )
    coordinator.router = EventRouter(coordinator)
    return coordinator
