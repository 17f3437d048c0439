"""In-memory conversation sessions and per-conversation locking."""
from __future__ import annotations

import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Literal, Optional

from pydantic import BaseModel, Field

from intake_flow import FlowState

SessionStatus = Literal["active", "complete"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationSession(BaseModel):
    """Serializable state tracked across intake turns."""

    session_id: str
    schema_id: str
    flow_state: FlowState = Field(default_factory=FlowState)
    status: SessionStatus = "active"
    events: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)


class SessionNotFoundError(KeyError):
    pass


class SessionStore:
    """Process-local session map.

    ``lock(session_id)`` serializes turns of one conversation; different
    conversations proceed independently.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, ConversationSession] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def create(self, schema_id: str, *, session_id: Optional[str] = None) -> ConversationSession:
        session = ConversationSession(session_id=session_id or str(uuid.uuid4()), schema_id=schema_id)
        with self._guard:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> ConversationSession:
        with self._guard:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def save(self, session: ConversationSession) -> None:
        with self._guard:
            self._sessions[session.session_id] = session

    def __contains__(self, session_id: object) -> bool:
        with self._guard:
            return session_id in self._sessions

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
        return lock

    @contextmanager
    def lock(self, session_id: str) -> Iterator[ConversationSession]:
        """Hold the conversation's lock and yield its current session."""

        with self._lock_for(session_id):
            yield self.get(session_id)


__all__ = ["ConversationSession", "SessionNotFoundError", "SessionStatus", "SessionStore"]
