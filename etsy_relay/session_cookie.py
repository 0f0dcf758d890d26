"""
Signed session cookie. The cookie holds only an HS256 JWT carrying the session id (sid);
the record itself lives in the SessionRepository.
"""
import logging
import time
from dataclasses import dataclass
from typing import Annotated

import jwt
from fastapi import Depends, Request, Response

from etsy_relay.config import (
    SESSION_COOKIE_NAME,
    SESSION_COOKIE_SECURE,
    SESSION_MAX_AGE,
    SESSION_SECRET,
)
from etsy_relay.session_store import (
    SessionRecord,
    SessionRepository,
    get_session_repository,
    new_session_id,
)

logger = logging.getLogger(__name__)


def encode_session_cookie(session_id: str, *, secret: str = SESSION_SECRET, max_age: int = SESSION_MAX_AGE) -> str:
    now = int(time.time())
    token = jwt.encode({"sid": session_id, "iat": now, "exp": now + max_age}, secret, algorithm="HS256")
    if isinstance(token, bytes):
        token = token.decode("utf-8")
    return token


def decode_session_cookie(value: str | None, *, secret: str = SESSION_SECRET) -> str | None:
    """Return the session id if the cookie signature and exp are valid, else None."""
    if not value:
        return None
    try:
        payload = jwt.decode(value, secret, algorithms=["HS256"], options={"require": ["sid", "exp"]})
    except jwt.InvalidTokenError as e:
        logger.debug("Session cookie rejected: %s", e)
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) and sid else None


def set_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        encode_session_cookie(session_id),
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
    )


@dataclass
class CurrentSession:
    """The browser's session for one request: id and record may both be None (no cookie yet)."""

    sessions: SessionRepository
    session_id: str | None
    record: SessionRecord | None

    def ensure(self) -> SessionRecord:
        """Load-or-create. Nothing is stored until save() is called."""
        if self.record is None:
            self.session_id = new_session_id()
            self.record = SessionRecord()
        return self.record

    def save(self, response: Response) -> None:
        if self.session_id is None or self.record is None:
            return
        self.sessions.put(self.session_id, self.record)
        set_session_cookie(response, self.session_id)

    def destroy(self, response: Response) -> None:
        if self.session_id is not None:
            self.sessions.delete(self.session_id)
        self.session_id = None
        self.record = None
        clear_session_cookie(response)


def get_current_session(
    request: Request,
    sessions: Annotated[SessionRepository, Depends(get_session_repository)],
) -> CurrentSession:
    """Dependency: resolve the cookie to a session record (no record is created here)."""
    session_id = decode_session_cookie(request.cookies.get(SESSION_COOKIE_NAME))
    record = sessions.get(session_id) if session_id else None
    if record is None:
        session_id = None
    return CurrentSession(sessions=sessions, session_id=session_id, record=record)
