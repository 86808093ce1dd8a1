"""In-memory session store for authenticated gateway callers.

A session binds a caller to a user id and a set of granted scopes for a fixed
lifetime. Expiry is absolute: ``expires_at = created_at + ttl`` and touching a
session only refreshes ``last_activity``.

Expired sessions are reaped lazily by validate() and in bulk by sweep(). The
store is shared by every in-flight request, so each lookup-and-mutate
sequence runs under a single lock.

Example usage:
    store = SessionStore()
    session = store.create("demo-user", {"read", "write"})
    same = store.validate(session.id)   # touches last_activity
    store.destroy(session.id)
"""

from __future__ import annotations

import logging
import re
import secrets
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(minutes=30)

# 32 random bytes -> 43 URL-safe characters
SESSION_ID_BYTES = 32

# Incoming ids must look like ours before they reach the store or the log
MAX_SESSION_ID_LENGTH = 256
SESSION_ID_PATTERN: re.Pattern[str] = re.compile(r"^[a-zA-Z0-9_-]+$")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_session_id() -> str:
    """Generate an unguessable session identifier."""
    return secrets.token_urlsafe(SESSION_ID_BYTES)


def is_well_formed_session_id(session_id: str | None) -> bool:
    """True if session_id is a non-empty URL-safe token of bounded length."""
    if not session_id or len(session_id) > MAX_SESSION_ID_LENGTH:
        return False
    return SESSION_ID_PATTERN.fullmatch(session_id) is not None


@dataclass
class SessionRecord:
    """A live gateway session.

    Attributes:
        id: Opaque session identifier handed to the caller.
        user_id: Identity the session acts for.
        created_at: Creation time (UTC).
        last_activity: Time of the last successful validation (UTC).
        scopes: Granted scopes, never empty.
        expires_at: Absolute expiry time (UTC).
    """

    id: str
    user_id: str
    created_at: datetime
    last_activity: datetime
    scopes: frozenset[str]
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """True once ``now`` is past the expiry timestamp."""
        return now > self.expires_at


class SessionStore:
    """Thread-safe mapping of session id to SessionRecord."""

    def __init__(
        self,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = generate_session_id,
    ) -> None:
        """Initialize the store.

        Args:
            ttl: Absolute lifetime of every session.
            clock: Returns the current time. Injected by tests.
            id_factory: Returns a fresh candidate session id.
        """
        if ttl <= timedelta(0):
            raise ValueError(f"Session ttl must be positive, got: {ttl}")
        self._ttl = ttl
        self._clock = clock
        self._id_factory = id_factory
        self._sessions: dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def create(self, user_id: str, scopes: Iterable[str]) -> SessionRecord:
        """Create and store a new session.

        Args:
            user_id: Identity the session acts for.
            scopes: Granted scopes; must not be empty.

        Returns:
            The stored SessionRecord.

        Raises:
            ValueError: If scopes is empty.
        """
        scope_set = frozenset(scopes)
        if not scope_set:
            raise ValueError("A session needs at least one scope")

        with self._lock:
            session_id = self._id_factory()
            while session_id in self._sessions:
                session_id = self._id_factory()

            now = self._clock()
            record = SessionRecord(
                id=session_id,
                user_id=user_id,
                created_at=now,
                last_activity=now,
                scopes=scope_set,
                expires_at=now + self._ttl,
            )
            self._sessions[session_id] = record

        logger.info(
            "Session created for user '%s' with scopes %s (expires %s)",
            user_id,
            sorted(scope_set),
            record.expires_at.isoformat(),
        )
        return record

    def validate(self, session_id: str) -> SessionRecord | None:
        """Look up a session and refresh its last-activity time.

        Expired sessions are removed and reported as missing.

        Returns:
            The live SessionRecord, or None if unknown or expired.
        """
        with self._lock:
            record = self._sessions.get(session_id)
            if record is None:
                return None

            now = self._clock()
            if record.is_expired(now):
                del self._sessions[session_id]
                logger.info("Session for user '%s' expired", record.user_id)
                return None

            record.last_activity = now
            return record

    def get(self, session_id: str) -> SessionRecord | None:
        """Return a session without touching or reaping it."""
        with self._lock:
            return self._sessions.get(session_id)

    def destroy(self, session_id: str) -> None:
        """Remove a session. Missing sessions are ignored."""
        with self._lock:
            record = self._sessions.pop(session_id, None)
        if record is not None:
            logger.debug("Session for user '%s' destroyed", record.user_id)

    def sweep(self) -> int:
        """Remove every expired session.

        Returns:
            Number of sessions removed.
        """
        with self._lock:
            now = self._clock()
            expired = [sid for sid, rec in self._sessions.items() if rec.is_expired(now)]
            for sid in expired:
                del self._sessions[sid]

        if expired:
            logger.debug("Swept %d expired session(s)", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
