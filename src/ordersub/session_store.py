"""In-memory conversation sessions with TTL eviction."""

import copy
import threading
import time
import weakref
from typing import Callable

from .models import Session

DEFAULT_TTL = 24 * 3600.0
DEFAULT_MAX_SESSIONS = 10_000


class SessionStore:
    """
    Per-user sessions keyed by chat ID.

    ``get`` hands out a copy, so changes only become visible through ``set``.
    Sessions idle for longer than ``ttl`` seconds are dropped; when the store
    is full the least recently touched session is evicted.

    ``lock`` gives each chat its own lock so that one chat's updates are
    handled one at a time, while different chats run in parallel.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_sessions = max_sessions
        self._clock = clock
        self._sessions: dict[str, tuple[Session, float]] = {}
        self._lock = threading.Lock()
        self._chat_locks: weakref.WeakValueDictionary[str, threading.RLock] = (
            weakref.WeakValueDictionary()
        )

    def lock(self, chat_id: str) -> threading.RLock:
        """The re-entrant lock serializing updates from one chat."""
        with self._lock:
            chat_lock = self._chat_locks.get(chat_id)
            if chat_lock is None:
                chat_lock = threading.RLock()
                self._chat_locks[chat_id] = chat_lock
            return chat_lock

    def get(self, chat_id: str) -> Session:
        """Return the user's session, or a fresh idle one."""
        with self._lock:
            entry = self._sessions.get(chat_id)
            if entry is None:
                return Session()
            session, touched_at = entry
            if self._clock() - touched_at > self.ttl:
                del self._sessions[chat_id]
                return Session()
            return copy.deepcopy(session)

    def set(self, chat_id: str, session: Session) -> None:
        with self._lock:
            if chat_id not in self._sessions and len(self._sessions) >= self.max_sessions:
                self._evict_expired()
                if len(self._sessions) >= self.max_sessions:
                    oldest = min(self._sessions, key=lambda k: self._sessions[k][1])
                    del self._sessions[oldest]
            self._sessions[chat_id] = (copy.deepcopy(session), self._clock())

    def clear(self, chat_id: str) -> None:
        with self._lock:
            self._sessions.pop(chat_id, None)

    def evict_expired(self) -> int:
        """Drop idle sessions; returns how many were removed."""
        with self._lock:
            return self._evict_expired()

    def _evict_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (_, t) in self._sessions.items() if now - t > self.ttl]
        for key in expired:
            del self._sessions[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
