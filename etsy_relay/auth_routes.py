"""
Login flow: GET /api/auth/etsy (start), GET /api/auth/etsy/callback (code exchange),
GET /api/auth/status, POST /api/auth/logout.
"""
import html
import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from etsy_relay.audit import (
    EVENT_CALLBACK_REJECTED,
    EVENT_FLOW_STARTED,
    EVENT_LOGOUT,
    EVENT_TOKEN_EXCHANGE_FAILED,
    EVENT_TOKEN_ISSUED,
    OUTCOME_FAIL,
    AuditLog,
    get_audit_log,
    get_client_ip,
)
from etsy_relay.config import (
    ETSY_API_KEY,
    ETSY_AUTHORIZE_URL,
    ETSY_SCOPES,
    LANDING_PATH,
    REDIRECT_URI,
)
from etsy_relay.etsy_client import EtsyClient, TokenExchangeError, get_etsy_client
from etsy_relay.pkce import build_authorize_url, generate_challenge, generate_state, generate_verifier
from etsy_relay.session_cookie import CurrentSession, get_current_session

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth")

Session = Annotated[CurrentSession, Depends(get_current_session)]
Audit = Annotated[AuditLog, Depends(get_audit_log)]


def _page(title: str, message: str, status_code: int) -> HTMLResponse:
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body>
  <h1>{html.escape(title)}</h1>
  <p>{html.escape(message)}</p>
</body>
</html>""",
        status_code=status_code,
    )


@router.get("/etsy")
async def start_login(request: Request, response: Response, session: Session, audit: Audit):
    """
    Generate state and PKCE verifier, store them in the session, return the Etsy authorize URL.
    The browser performs the redirect.
    """
    try:
        code_verifier = generate_verifier()
        state = generate_state()
        session.ensure().begin_flow(code_verifier=code_verifier, state=state)
        session.save(response)
        auth_url = build_authorize_url(
            authorize_url=ETSY_AUTHORIZE_URL,
            client_id=ETSY_API_KEY,
            redirect_uri=REDIRECT_URI,
            scope=ETSY_SCOPES,
            state=state,
            code_challenge=generate_challenge(code_verifier),
        )
    except Exception:
        logger.exception("Error starting OAuth flow")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to start authentication"},
        )
    audit.log(EVENT_FLOW_STARTED, ip=get_client_ip(request))
    return {"authUrl": auth_url}


@router.get("/etsy/callback")
async def callback(
    request: Request,
    session: Session,
    audit: Audit,
    etsy: Annotated[EtsyClient, Depends(get_etsy_client)],
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
):
    """
    Handle the redirect from Etsy. State is checked before any network call;
    on success tokens go into the session, PKCE fields are dropped, and the browser is sent to the app.
    """
    ip = get_client_ip(request)
    record = session.record
    expected_state = record.state if record is not None else None
    # Bytes compare: compare_digest rejects non-ASCII str
    if not state or not expected_state or not secrets.compare_digest(
        state.encode("utf-8"), expected_state.encode("utf-8")
    ):
        audit.log(EVENT_CALLBACK_REJECTED, outcome=OUTCOME_FAIL, ip=ip, reason="state_mismatch")
        return _page("Error", "Invalid state parameter", status.HTTP_400_BAD_REQUEST)

    if error:
        audit.log(EVENT_CALLBACK_REJECTED, outcome=OUTCOME_FAIL, ip=ip, reason=error)
        return _page("Login error", error_description or error, status.HTTP_400_BAD_REQUEST)

    if not code:
        audit.log(EVENT_CALLBACK_REJECTED, outcome=OUTCOME_FAIL, ip=ip, reason="missing_code")
        return _page("Error", "Missing code parameter", status.HTTP_400_BAD_REQUEST)

    if not record.code_verifier:
        audit.log(EVENT_CALLBACK_REJECTED, outcome=OUTCOME_FAIL, ip=ip, reason="missing_verifier")
        return _page("Error", "Login flow expired. Please try logging in again.", status.HTTP_400_BAD_REQUEST)

    try:
        tokens = await etsy.exchange_code(code, record.code_verifier)
    except TokenExchangeError as e:
        logger.error("OAuth callback error: %s", e)
        audit.log(EVENT_TOKEN_EXCHANGE_FAILED, outcome=OUTCOME_FAIL, ip=ip)
        return _page("Error", "Authentication failed", status.HTTP_500_INTERNAL_SERVER_ERROR)

    record.complete_flow(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
    )
    redirect = RedirectResponse(url=LANDING_PATH, status_code=status.HTTP_302_FOUND)
    session.save(redirect)
    audit.log(EVENT_TOKEN_ISSUED, ip=ip, expires_in=tokens.expires_in)
    return redirect


@router.get("/status")
async def auth_status(session: Session):
    record = session.record
    return {"authenticated": record is not None and record.is_authenticated()}


@router.post("/logout")
async def logout(request: Request, response: Response, session: Session, audit: Audit):
    """Destroy the server-side record and clear the cookie."""
    had_session = session.session_id is not None
    session.destroy(response)
    if had_session:
        audit.log(EVENT_LOGOUT, ip=get_client_ip(request))
    return {"success": True}
