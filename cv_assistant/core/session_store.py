from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict

from cv_assistant.core.config import settings
from cv_assistant.services.generation import GenerationGateway
from cv_assistant.services.workflow import WorkflowSession

logger = logging.getLogger(__name__)


class SessionNotFound(KeyError):
    pass


class SessionStore:
    """In-process registry of live workflow sessions; nothing is persisted."""

    def __init__(self, ttl_seconds: int | None = None, max_sessions: int | None = None):
        self._ttl_seconds = settings.session_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._max_sessions = settings.max_sessions if max_sessions is None else max_sessions
        self._sessions: OrderedDict[str, WorkflowSession] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def _expired(self, session: WorkflowSession, now: float) -> bool:
        return now - session.last_active > self._ttl_seconds

    def create(self, gateway: GenerationGateway) -> WorkflowSession:
        session = WorkflowSession(gateway)
        with self._lock:
            self._sessions[session.session_id] = session
            while len(self._sessions) > self._max_sessions:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info("session_evicted session=%s reason=capacity", evicted_id)
        logger.info("session_created session=%s", session.session_id)
        return session

    def get(self, session_id: str) -> WorkflowSession:
        now = time.monotonic()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            if self._expired(session, now):
                del self._sessions[session_id]
                logger.info("session_evicted session=%s reason=expired", session_id)
                raise SessionNotFound(session_id)
            session.touch()
            self._sessions.move_to_end(session_id)
            return session

    def purge_expired(self) -> int:
        now = time.monotonic()
        with self._lock:
            expired = [key for key, session in self._sessions.items() if self._expired(session, now)]
            for key in expired:
                del self._sessions[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


session_store = SessionStore()
