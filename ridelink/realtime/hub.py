"""
Notification hub -- addresses outbound events to sessions and actors.

The hub resolves *who* should get an event through the session registry
and hands the envelope to a ``Transport``, which knows *how* to reach a
session (a WebSocket in production, a recording list in tests).

Delivery is best effort: a session that cannot be reached is logged and
skipped, it never fails the request that produced the event.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from .events import OutboundEvent, envelope
from .registry import SessionRegistry
from ridelink.domain.enums import ActorType

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def send(self, session_id: str, message: dict[str, Any]) -> None:
        """Deliver one envelope to one session; raise if it cannot."""


class WebSocketTransport:
    """Maps session ids to live FastAPI WebSocket connections."""

    def __init__(self) -> None:
        self._sockets: dict[str, WebSocket] = {}

    def attach(self, session_id: str, websocket: WebSocket) -> None:
        self._sockets[session_id] = websocket

    def detach(self, session_id: str) -> None:
        self._sockets.pop(session_id, None)

    async def send(self, session_id: str, message: dict[str, Any]) -> None:
        websocket = self._sockets.get(session_id)
        if websocket is None:
            raise ConnectionError(f"Session {session_id} has no open socket")
        await websocket.send_json(jsonable_encoder(message))


class EventHub:
    def __init__(self, registry: SessionRegistry, transport: Transport):
        self.registry = registry
        self.transport = transport

    async def to_session(
        self, session_id: str, event: OutboundEvent, payload: dict[str, Any]
    ) -> bool:
        """Send to one session.  Returns False when delivery failed."""
        try:
            await self.transport.send(session_id, envelope(event, payload))
        except Exception as exc:
            logger.warning("Could not deliver %s to session %s: %s", event.value, session_id, exc)
            return False
        logger.debug("Delivered %s to session %s", event.value, session_id)
        return True

    async def to_actor(
        self,
        actor_type: ActorType,
        actor_id: str,
        event: OutboundEvent,
        payload: dict[str, Any],
    ) -> int:
        """Send to every session of one actor.  Returns sessions reached."""
        reached = 0
        for session_id in sorted(self.registry.find_sessions(actor_type, actor_id)):
            if await self.to_session(session_id, event, payload):
                reached += 1
        return reached

    async def to_actors(
        self,
        actor_type: ActorType,
        actor_ids: Iterable[str],
        event: OutboundEvent,
        payload: dict[str, Any],
    ) -> set[str]:
        """Send to several actors.  Returns the ids of actors reached."""
        reached: set[str] = set()
        for actor_id in sorted(set(actor_ids)):
            if await self.to_actor(actor_type, actor_id, event, payload):
                reached.add(actor_id)
        return reached
