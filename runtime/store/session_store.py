"""In-memory session storage for COMPAS Navigator.

Sessions live only for the lifetime of the serving process. The store is
a dict of session_id -> Session plus:

- one lock per session, so that two chat turns for the same session are
  processed one after the other while different sessions never wait on
  each other;
- an explicit eviction policy (idle timeout and maximum session count)
  instead of unbounded growth.

Identifiers handed out by the store are never reused, even after the
session was deleted or evicted.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterator, List, Optional, Set

from exceptions.exceptions import SessionNotFound

from ..models.session_models import Session, utcnow


logger = logging.getLogger(__name__)


class SessionStore:
    """In-memory session store with per-session locks.

    Parameters
    ----------
    max_idle_seconds:
        Sessions with no activity for longer than this are evicted by
        `purge_expired()`. 0 disables idle eviction.
    max_sessions:
        Upper bound on live sessions. When a new session would exceed it,
        the least recently active one is evicted. 0 disables the cap.
    on_evict:
        Optional callback invoked with the evicted Session.
    clock:
        Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        max_idle_seconds: int = 0,
        max_sessions: int = 0,
        on_evict: Optional[Callable[[Session], None]] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._issued_ids: Set[str] = set()

        # Guards the three collections above, never held during a turn.
        self._registry_lock = threading.Lock()

        self.max_idle_seconds = max_idle_seconds
        self.max_sessions = max_sessions
        self._on_evict = on_evict
        self._clock = clock

    def create_session(self) -> Session:
        """Create a new session and return it.

        Expired sessions are purged first; if the store is still at its
        cap, the least recently active session is evicted.
        """
        self.purge_expired()

        evicted: List[Session] = []
        with self._registry_lock:
            session = Session.create()
            while session.session_id in self._issued_ids:
                session = Session.create()

            if self.max_sessions > 0:
                # Sessions with a turn in progress are never evicted; the
                # cap may be exceeded while all of them are busy.
                idle = sorted(
                    (s for s in self._sessions.values() if not self._locks[s.session_id].locked()),
                    key=lambda s: s.last_activity,
                )
                while idle and len(self._sessions) >= self.max_sessions:
                    evicted.append(self._drop(idle.pop(0).session_id))

            self._issued_ids.add(session.session_id)
            self._sessions[session.session_id] = session
            self._locks[session.session_id] = threading.Lock()

        for old in evicted:
            self._notify_evicted(old, reason="max_sessions")

        logger.info("[STORE] Created session_id=%s", session.session_id)
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        """Return the session, or None if it is unknown."""
        with self._registry_lock:
            return self._sessions.get(session_id)

    def require_session(self, session_id: str) -> Session:
        """Return the session or raise SessionNotFound."""
        session = self.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def delete_session(self, session_id: str) -> None:
        with self._registry_lock:
            if session_id not in self._sessions:
                raise SessionNotFound(session_id)
            self._drop(session_id)
        logger.info("[STORE] Deleted session_id=%s", session_id)

    def list_session_ids(self) -> List[str]:
        with self._registry_lock:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._sessions)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def session_lock(self, session_id: str) -> Iterator[Session]:
        """Hold the session's exclusive lock and yield the session.

        Raises SessionNotFound if the session does not exist (or was
        removed while waiting for the lock). The lock is released on
        every exit path.
        """
        with self._registry_lock:
            lock = self._locks.get(session_id)
        if lock is None:
            raise SessionNotFound(session_id)

        with lock:
            session = self.get_session(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            yield session
            session.touch()

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    def purge_expired(self) -> List[str]:
        """Evict sessions idle for longer than max_idle_seconds.

        Sessions whose lock is currently held (a turn in progress) are
        skipped. Returns the evicted session ids.
        """
        if self.max_idle_seconds <= 0:
            return []

        cutoff = self._clock() - timedelta(seconds=self.max_idle_seconds)
        evicted: List[Session] = []
        with self._registry_lock:
            for session_id, session in list(self._sessions.items()):
                if session.last_activity >= cutoff:
                    continue
                if self._locks[session_id].locked():
                    continue
                evicted.append(self._drop(session_id))

        for session in evicted:
            self._notify_evicted(session, reason="idle")
        return [s.session_id for s in evicted]

    def _drop(self, session_id: str) -> Session:
        # Caller holds _registry_lock.
        self._locks.pop(session_id, None)
        return self._sessions.pop(session_id)

    def _notify_evicted(self, session: Session, reason: str) -> None:
        logger.info("[STORE] Evicted session_id=%s reason=%s", session.session_id, reason)
        if self._on_evict is None:
            return
        try:
            self._on_evict(session)
        except Exception:
            logger.exception("[STORE] on_evict callback failed for session_id=%s", session.session_id)
