"""
Background Offer Sweeper
========================

Runs every ``OFFER_SWEEP_INTERVAL_SECONDS`` (default 15 s).

Algorithm per cycle
-------------------
1. Evict pending offers older than ``OFFER_TTL_SECONDS`` from the offer store.
2. Tell the targets of every expired *pending* offer with
   ``booking_request_expired`` so they drop it from their screens.
3. Purge resolved offers older than ``RESOLVED_OFFER_RETENTION_SECONDS``,
   silently.  This runs even when expiry is disabled.

The booking row of an expired offer is left ``pending``; the company can
still cancel it.  With both the TTL and the retention at 0 the sweeper is
not started at all.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ridelink.domain.entities import utcnow
from ridelink.domain.enums import ActorType
from ridelink.realtime.events import OutboundEvent
from ridelink.realtime.hub import EventHub
from ridelink.services.offers import OfferStore

logger = logging.getLogger(__name__)


class OfferSweeper:
    def __init__(self, offers: OfferStore, hub: EventHub, interval_seconds: float = 15):
        self.offers = offers
        self.hub = hub
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Public API ────────────────────────────────────────────────────

    async def start(self) -> None:
        if not self.offers.sweeps:
            logger.info("Offer expiry and retention disabled; sweeper not started")
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Offer sweeper started (interval=%ss, ttl=%ss, retention=%ss)",
            self.interval_seconds,
            self.offers.ttl_seconds,
            self.offers.retention_seconds,
        )

    async def stop(self) -> None:
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Offer sweeper stopped")

    async def run_sweep_cycle(self) -> int:
        """Execute one sweep.  Returns the number of pending offers expired."""
        now = utcnow()
        expired, purged = self.offers.evict_expired(now)
        for offer in expired:
            await self.hub.to_actors(
                ActorType.VENDOR,
                offer.target_vendor_ids,
                OutboundEvent.BOOKING_REQUEST_EXPIRED,
                {
                    "request_id": offer.request_id,
                    "booking_id": offer.booking_id,
                    "expired_at": now,
                },
            )
        if expired or purged:
            logger.info("Sweep cycle: %d offers expired, %d resolved purged", len(expired), purged)
        return len(expired)

    # ── Internals ─────────────────────────────────────────────────────

    async def _loop(self) -> None:
        """Periodic loop: run a sweep then sleep."""
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            try:
                await self.run_sweep_cycle()
            except Exception:
                logger.exception("Unhandled error in sweep cycle")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass  # next cycle
