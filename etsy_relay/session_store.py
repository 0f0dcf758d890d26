"""
Server-side session records, keyed by an opaque session id carried in a signed cookie.
Repository interface (get/put/delete) with an in-memory implementation for single-process use.
"""
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Protocol

from etsy_relay.config import SESSION_MAX_AGE


def now_ms() -> int:
    """Wall clock in epoch milliseconds; token expiry is stored in this unit."""
    return int(time.time() * 1000)


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


@dataclass
class SessionRecord:
    # Transient PKCE material, cleared after a successful callback
    code_verifier: str | None = None
    state: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: int | None = None
    created_at: float = field(default_factory=time.monotonic)

    def token_expired(self, at_ms: int | None = None) -> bool:
        if self.expires_at is None:
            return True
        return self.expires_at <= (now_ms() if at_ms is None else at_ms)

    def is_authenticated(self, at_ms: int | None = None) -> bool:
        return bool(self.access_token) and not self.token_expired(at_ms)

    def begin_flow(self, code_verifier: str, state: str) -> None:
        self.code_verifier = code_verifier
        self.state = state

    def complete_flow(self, access_token: str, refresh_token: str, expires_in: int) -> None:
        """Store the token pair and drop the single-use PKCE fields."""
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.expires_at = now_ms() + int(expires_in) * 1000
        self.code_verifier = None
        self.state = None


class SessionRepository(Protocol):
    def get(self, session_id: str) -> SessionRecord | None:
        ...

    def put(self, session_id: str, record: SessionRecord) -> None:
        ...

    def delete(self, session_id: str) -> None:
        ...


class InMemorySessionRepository:
    """Dict-backed repository. Records older than max_age are dropped on read.
    Guarded by a lock: sync dependencies touch it from the threadpool."""

    def __init__(self, max_age: int = SESSION_MAX_AGE) -> None:
        self.max_age = max_age
        self._records: dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def _expired(self, record: SessionRecord, now: float) -> bool:
        return (now - record.created_at) > self.max_age

    def get(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            record = self._records.get(session_id)
            if record is None:
                return None
            if self._expired(record, time.monotonic()):
                del self._records[session_id]
                return None
            return record

    def put(self, session_id: str, record: SessionRecord) -> None:
        with self._lock:
            self._records[session_id] = record
            self._clean_expired()

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._records.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _clean_expired(self) -> None:
        """Caller holds the lock."""
        now = time.monotonic()
        expired = [sid for sid, r in self._records.items() if self._expired(r, now)]
        for sid in expired:
            del self._records[sid]


_repository = InMemorySessionRepository()


def get_session_repository() -> SessionRepository:
    """Dependency: process-wide repository. Override in tests or for an external cache."""
    return _repository
