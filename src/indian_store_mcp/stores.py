"""In-process stores for CSRF states and browser sessions.

Both stores are exposed as protocols so a shared backend can replace the
in-memory versions when more than one gateway replica serves the same
browser flows. The in-memory versions keep everything in a dict guarded by
one ``asyncio.Lock``; nothing survives a restart.
"""

from __future__ import annotations

import asyncio
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from indian_store_mcp.audit import get_logger

logger = get_logger("stores")

Clock = Callable[[], float]

SESSION_COOKIE = "session_id"
SESSION_TTL_SECONDS = 86400


class CsrfStateStore(Protocol):
    async def issue(self) -> str: ...

    async def consume(self, state: str) -> bool: ...

    async def purge_expired(self) -> int: ...


@dataclass(frozen=True)
class Session:
    id: str
    subject_email: str
    created_at: float


class SessionStore(Protocol):
    ttl_seconds: int

    async def create(self, email: str) -> Session: ...

    async def lookup(self, session_id: str) -> Session | None: ...

    async def purge_expired(self) -> int: ...


class InMemoryCsrfStateStore:
    """Single-use authorization-flow nonces.

    ``consume`` checks and removes under the lock, so a state is accepted at
    most once however many callbacks race on it. With ``ttl_seconds=0`` a
    state stays pending until consumed.
    """

    def __init__(self, ttl_seconds: int = 0, clock: Clock = time.time) -> None:
        self._states: dict[str, float] = {}
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = asyncio.Lock()

    async def issue(self) -> str:
        state = secrets.token_urlsafe(32)
        async with self._lock:
            self._states[state] = self._clock()
        return state

    async def consume(self, state: str) -> bool:
        if not state:
            return False
        async with self._lock:
            issued_at = self._states.pop(state, None)
        if issued_at is None:
            return False
        return not self._is_expired(issued_at)

    async def purge_expired(self) -> int:
        if not self._ttl:
            return 0
        async with self._lock:
            stale = [s for s, issued in self._states.items() if self._is_expired(issued)]
            for state in stale:
                del self._states[state]
        return len(stale)

    def _is_expired(self, issued_at: float) -> bool:
        return bool(self._ttl) and self._clock() - issued_at >= self._ttl

    def __len__(self) -> int:
        return len(self._states)


class InMemorySessionStore:
    """Browser sessions keyed by an opaque cookie value.

    A session is found only while ``now - created_at < ttl``. Expired entries
    stay in the map until ``purge_expired`` runs.
    """

    def __init__(
        self, ttl_seconds: int = SESSION_TTL_SECONDS, clock: Clock = time.time
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._sessions: dict[str, Session] = {}
        self._clock = clock
        self._lock = asyncio.Lock()

    async def create(self, email: str) -> Session:
        session = Session(
            id=secrets.token_hex(32),
            subject_email=email,
            created_at=self._clock(),
        )
        async with self._lock:
            self._sessions[session.id] = session
        return session

    async def lookup(self, session_id: str) -> Session | None:
        if not session_id:
            return None
        async with self._lock:
            session = self._sessions.get(session_id)
        if session is None or self._is_expired(session):
            return None
        return session

    async def purge_expired(self) -> int:
        async with self._lock:
            stale = [sid for sid, s in self._sessions.items() if self._is_expired(s)]
            for sid in stale:
                del self._sessions[sid]
        return len(stale)

    def _is_expired(self, session: Session) -> bool:
        return self._clock() - session.created_at >= self.ttl_seconds

    def __len__(self) -> int:
        return len(self._sessions)


async def sweep_forever(
    interval_seconds: float,
    *stores: CsrfStateStore | SessionStore,
) -> None:
    """Evict expired entries from ``stores`` every ``interval_seconds``."""
    while True:
        await asyncio.sleep(interval_seconds)
        for store in stores:
            removed = await store.purge_expired()
            if removed:
                logger.info(
                    "store_swept",
                    store=type(store).__name__,
                    removed=removed,
                )
