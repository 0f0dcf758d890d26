"""
Audit events for the login flow and upstream relay. Security-relevant events only;
never tokens, authorization codes, or verifiers.
Handlers receive the sink through get_audit_log so tests can capture events.
"""
import logging
from typing import Any

from fastapi import Request

EVENT_FLOW_STARTED = "flow_started"
EVENT_CALLBACK_REJECTED = "callback_rejected"
EVENT_TOKEN_ISSUED = "token_issued"
EVENT_TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
EVENT_LOGOUT = "logout"
EVENT_AUTH_DENIED = "auth_denied"
EVENT_UPSTREAM_ERROR = "upstream_error"

OUTCOME_SUCCESS = "success"
OUTCOME_FAIL = "fail"


def get_client_ip(request: Request | None) -> str | None:
    """Client IP if available (request.client.host). No forwarding headers."""
    if request is None or request.client is None:
        return None
    return getattr(request.client, "host", None)


class AuditLog:
    """Structured sink over stdlib logging; each event is one record with an `audit` extra."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("etsy_relay.audit")

    def log(
        self,
        event_type: str,
        *,
        outcome: str = OUTCOME_SUCCESS,
        ip: str | None = None,
        **fields: Any,
    ) -> None:
        record = {"event_type": event_type, "outcome": outcome, "ip": ip, **fields}
        level = logging.INFO if outcome == OUTCOME_SUCCESS else logging.WARNING
        details = " ".join(f"{k}={v}" for k, v in fields.items() if v is not None)
        self.logger.log(level, "%s %s %s", event_type, outcome, details, extra={"audit": record})


_audit_log = AuditLog()


def get_audit_log() -> AuditLog:
    """Dependency: process-wide audit sink."""
    return _audit_log
