"""
Realtime channel
================

WS /ws?actor_type=company|vendor&actor_id=<user id>

One connection is one session.  The query string is the handshake: it
binds the session to an actor for its whole lifetime.  Every frame in
either direction is a JSON envelope ``{"event": ..., "data": {...}}``.
"""

from __future__ import annotations

import json
import logging
import secrets

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ridelink.domain.enums import ActorType
from ridelink.domain.errors import ValidationError
from ridelink.realtime.events import OutboundEvent
from ridelink.services.container import Coordinator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def _handshake(websocket: WebSocket) -> tuple[ActorType, str]:
    params = websocket.query_params
    raw_type = params.get("actor_type") or params.get("userType")
    actor_id = params.get("actor_id") or params.get("userId")
    try:
        actor_type = ActorType(raw_type)
    except ValueError:
        raise ValidationError("actor_type must be 'company' or 'vendor'") from None
    if not actor_id:
        raise ValidationError("actor_id is required")
    return actor_type, actor_id


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket):
    coordinator: Coordinator = websocket.app.state.coordinator
    try:
        actor_type, actor_id = _handshake(websocket)
    except ValidationError as exc:
        logger.info("Rejected realtime handshake: %s", exc.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.message)
        return

    await websocket.accept()
    session_id = secrets.token_urlsafe(12)
    coordinator.transport.attach(session_id, websocket)
    session = coordinator.registry.register(session_id, actor_type, actor_id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await coordinator.hub.to_session(
                    session_id,
                    OutboundEvent.ERROR,
                    ValidationError("Message is not valid JSON").to_payload(),
                )
                continue
            await coordinator.router.handle(session, message)
    except WebSocketDisconnect:
        logger.info("Session %s (%s %s) disconnected", session_id, actor_type.value, actor_id)
    finally:
        coordinator.registry.unregister(session_id)
        coordinator.transport.detach(session_id)
