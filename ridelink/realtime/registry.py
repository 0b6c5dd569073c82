"""
Session registry -- which client sessions are connected, and as whom.

Primary map: ``session_id -> ActorSession``.  Secondary index:
``(actor_type, actor_id) -> {session_id, ...}`` so that one actor may hold
several sessions (e.g. two browser tabs); every notification addressed to
the actor is delivered to all of them.

State is process-local and lost on restart: clients reconnect and
re-register.  All operations are synchronous and never raise.
"""

from __future__ import annotations

import logging
from typing import Optional

from ridelink.domain.entities import ActorSession
from ridelink.domain.enums import ActorType

logger = logging.getLogger(__name__)


class SessionRegistry:
    def __init__(self) -> None:
        self._sessions: dict[str, ActorSession] = {}
        self._by_actor: dict[tuple[ActorType, str], set[str]] = {}

    def register(self, session_id: str, actor_type: ActorType, actor_id: str) -> ActorSession:
        actor_type = ActorType(actor_type)
        if session_id in self._sessions:
            # re-handshake on an existing session moves it to the new identity
            self.unregister(session_id)
        session = ActorSession(session_id, actor_type, actor_id)
        self._sessions[session_id] = session
        self._by_actor.setdefault((actor_type, actor_id), set()).add(session_id)
        logger.info("%s %s connected with session %s", actor_type.value, actor_id, session_id)
        return session

    def unregister(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        key = (session.actor_type, session.actor_id)
        sessions = self._by_actor.get(key)
        if sessions is not None:
            sessions.discard(session_id)
            if not sessions:
                del self._by_actor[key]
        logger.info(
            "%s %s disconnected (session %s)",
            session.actor_type.value,
            session.actor_id,
            session_id,
        )

    def get(self, session_id: str) -> Optional[ActorSession]:
        return self._sessions.get(session_id)

    def find_sessions(self, actor_type: ActorType, actor_id: str) -> set[str]:
        return set(self._by_actor.get((ActorType(actor_type), actor_id), ()))

    def is_connected(self, actor_type: ActorType, actor_id: str) -> bool:
        return bool(self._by_actor.get((ActorType(actor_type), actor_id)))

    def connected_actor_ids(self, actor_type: ActorType) -> set[str]:
        actor_type = ActorType(actor_type)
        return {actor_id for (kind, actor_id) in self._by_actor if kind is actor_type}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
