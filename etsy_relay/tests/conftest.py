"""
Pytest configuration for etsy_relay. Env is fixed before the app is imported;
the session repository, audit sink, and Etsy upstream are replaced per test.
"""
import os

os.environ["ETSY_API_KEY"] = "test-keystring"
os.environ["ETSY_SHARED_SECRET"] = "test-shared-secret"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["REDIRECT_URI"] = "http://testserver/api/auth/etsy/callback"
os.environ["FRONTEND_URL"] = "http://localhost:8080"
os.environ.pop("STATIC_DIR", None)

import httpx
import pytest
from fastapi.testclient import TestClient

from etsy_relay.audit import get_audit_log
from etsy_relay.config import SESSION_COOKIE_NAME
from etsy_relay.etsy_client import EtsyClient, get_etsy_client
from etsy_relay.main import app
from etsy_relay.session_cookie import decode_session_cookie
from etsy_relay.session_store import InMemorySessionRepository, get_session_repository


class FakeUpstream:
    """Etsy stand-in: responses keyed by (method, path); every request is recorded."""

    def __init__(self):
        self.routes = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, response):
        self.routes[(method, path)] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, json={"error": f"no route for {request.url.path}"})
        if callable(response):
            return response(request)
        return response

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


class CapturingAudit:
    def __init__(self):
        self.events = []

    def log(self, event_type, *, outcome="success", ip=None, **fields):
        self.events.append({"event_type": event_type, "outcome": outcome, **fields})

    def types(self) -> list[str]:
        return [e["event_type"] for e in self.events]


@pytest.fixture
def sessions():
    return InMemorySessionRepository()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def audit():
    return CapturingAudit()


@pytest.fixture
def client(sessions, upstream, audit):
    transport = httpx.MockTransport(upstream.handler)
    app.dependency_overrides[get_session_repository] = lambda: sessions
    app.dependency_overrides[get_audit_log] = lambda: audit
    app.dependency_overrides[get_etsy_client] = lambda: EtsyClient(
        httpx.AsyncClient(transport=transport), api_key="test-keystring"
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def _session_id(client: TestClient) -> str | None:
    return decode_session_cookie(client.cookies.get(SESSION_COOKIE_NAME))


@pytest.fixture
def cookie_session_id(client):
    """Session id the test client currently holds in its signed cookie."""
    return lambda: _session_id(client)


@pytest.fixture
def start_flow(client, sessions):
    """Run GET /api/auth/etsy and return (session_id, record, auth_url)."""

    def _start():
        r = client.get("/api/auth/etsy")
        assert r.status_code == 200
        sid = _session_id(client)
        return sid, sessions.get(sid), r.json()["authUrl"]

    return _start


@pytest.fixture
def logged_in(start_flow):
    """A session holding a token valid for an hour."""
    sid, record, _ = start_flow()
    record.complete_flow(access_token="access-123", refresh_token="refresh-456", expires_in=3600)
    return record
