"""
In-memory conversation sessions.
Conversations are not persisted: a restart drops every session.
Sessions idle for longer than SESSION_TTL_MINUTES are dropped on the next create.
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional
import uuid

from loguru import logger

from ..core.config import settings
from ..core.errors import SessionNotFoundError
from .conversation import ConversationController


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    def __init__(self, ttl: Optional[timedelta] = None):
        self._sessions: Dict[str, dict] = {}
        self.ttl = ttl or timedelta(minutes=settings.session_ttl_minutes)

    def create(
        self, factory: Callable[[], ConversationController], now: Optional[datetime] = None
    ) -> tuple[str, ConversationController]:
        """Register a new isolated conversation and return its session ID"""
        now = now or _now()
        self.purge_expired(now)

        session_id = str(uuid.uuid4())
        controller = factory()
        self._sessions[session_id] = {
            "id": session_id,
            "controller": controller,
            "created_at": now,
            "last_used": now,
        }
        return session_id, controller

    def get(self, session_id: str, now: Optional[datetime] = None) -> ConversationController:
        """Get the controller of a session and mark it as used"""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        session["last_used"] = now or _now()
        return session["controller"]

    def delete(self, session_id: str) -> bool:
        """Drop a session; False if it did not exist"""
        return self._sessions.pop(session_id, None) is not None

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Drop idle sessions, except those still processing a message"""
        cutoff = (now or _now()) - self.ttl
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if session["last_used"] < cutoff and not session["controller"].state.processing
        ]
        for session_id in expired:
            del self._sessions[session_id]
        if expired:
            logger.info("Expired chat sessions dropped", count=len(expired))
        return len(expired)

    def list_ids(self) -> list:
        return list(self._sessions)

    def clear(self) -> None:
        self._sessions.clear()


# Global instance (one per API process)
session_store = SessionStore()
