"""
Auth guard for the upstream-data routes: a session with an unexpired access token.
Expiry is terminal; the user re-runs the login flow (no refresh_token grant here).
"""
from typing import Annotated

from fastapi import Depends, Request, status

from etsy_relay.audit import EVENT_AUTH_DENIED, OUTCOME_FAIL, AuditLog, get_audit_log, get_client_ip
from etsy_relay.errors import ApiError
from etsy_relay.session_cookie import CurrentSession, get_current_session
from etsy_relay.session_store import SessionRecord


def require_auth(
    request: Request,
    session: Annotated[CurrentSession, Depends(get_current_session)],
    audit: Annotated[AuditLog, Depends(get_audit_log)],
) -> SessionRecord:
    """Dependency: the authenticated session record. 401 'Not authenticated' or 'Token expired'."""
    record = session.record
    if record is None or not record.access_token:
        audit.log(EVENT_AUTH_DENIED, outcome=OUTCOME_FAIL, ip=get_client_ip(request), reason="no_token")
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Not authenticated")
    if record.token_expired():
        audit.log(EVENT_AUTH_DENIED, outcome=OUTCOME_FAIL, ip=get_client_ip(request), reason="expired")
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Token expired")
    return record


AuthenticatedSession = Annotated[SessionRecord, Depends(require_auth)]
