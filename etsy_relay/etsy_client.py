"""
Async client for the Etsy Open API v3: token exchange and the read calls the relay forwards.
Every non-2xx or transport failure is raised as UpstreamError; no retries.
"""
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import Request

from etsy_relay.config import (
    ETSY_API_KEY,
    ETSY_BASE_URL,
    ETSY_TOKEN_URL,
    HTTP_TIMEOUT,
    REDIRECT_URI,
)

logger = logging.getLogger(__name__)

LISTING_INCLUDES = "Images,Inventory"
LISTINGS_LIMIT = 100


class UpstreamError(Exception):
    """Upstream call failed. status_code is None for transport errors or unreadable bodies."""

    def __init__(self, status_code: int | None, detail: Any) -> None:
        super().__init__(f"Etsy API error (status={status_code}): {detail}")
        self.status_code = status_code
        self.detail = detail


class TokenExchangeError(Exception):
    """Raised when the token endpoint fails or returns an incomplete payload."""


@dataclass
class TokenResponse:
    access_token: str
    refresh_token: str
    expires_in: int


def _error_body(r: httpx.Response) -> Any:
    try:
        return r.json()
    except ValueError:
        return r.text


class EtsyClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        api_key: str = ETSY_API_KEY,
        base_url: str = ETSY_BASE_URL,
        token_url: str = ETSY_TOKEN_URL,
        redirect_uri: str = REDIRECT_URI,
    ) -> None:
        self.http = http
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url
        self.redirect_uri = redirect_uri

    async def exchange_code(self, code: str, code_verifier: str) -> TokenResponse:
        """
        Exchange an authorization code for a token pair (PKCE, no client secret).
        Raises TokenExchangeError on transport error, non-2xx, or a payload without access_token/expires_in.
        """
        try:
            r = await self.http.post(
                self.token_url,
                json={
                    "grant_type": "authorization_code",
                    "client_id": self.api_key,
                    "redirect_uri": self.redirect_uri,
                    "code": code,
                    "code_verifier": code_verifier,
                },
                headers={"Content-Type": "application/json", "Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"Token request failed: {e}") from e

        if not r.is_success:
            raise TokenExchangeError(f"Token endpoint returned {r.status_code}: {_error_body(r)}")

        try:
            data = r.json()
        except ValueError as e:
            raise TokenExchangeError("Token endpoint returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise TokenExchangeError("Token endpoint returned an unexpected body")

        access_token = data.get("access_token")
        expires_in = data.get("expires_in")
        if not access_token or expires_in is None:
            raise TokenExchangeError("Incomplete token payload returned from Etsy")
        try:
            expires_in = int(expires_in)
        except (TypeError, ValueError) as e:
            raise TokenExchangeError(f"Invalid expires_in: {expires_in!r}") from e

        return TokenResponse(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or "",
            expires_in=expires_in,
        )

    async def _get(self, path: str, access_token: str, params: dict | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = await self.http.get(
                url,
                params=params,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "x-api-key": self.api_key,
                },
            )
        except httpx.HTTPError as e:
            raise UpstreamError(None, str(e)) from e

        if not r.is_success:
            raise UpstreamError(r.status_code, _error_body(r))
        try:
            return r.json()
        except ValueError as e:
            raise UpstreamError(None, "Etsy returned a non-JSON body") from e

    async def get_me(self, access_token: str) -> dict:
        me = await self._get("/application/users/me", access_token)
        if not isinstance(me, dict):
            raise UpstreamError(None, "Etsy returned an unexpected users/me body")
        return me

    async def get_user_shops(self, access_token: str, user_id: Any) -> Any:
        return await self._get(f"/application/users/{user_id}/shops", access_token)

    async def get_active_listings(self, access_token: str, shop_id: Any) -> Any:
        return await self._get(
            f"/application/shops/{shop_id}/listings",
            access_token,
            params={"state": "active", "includes": LISTING_INCLUDES, "limit": LISTINGS_LIMIT},
        )

    async def get_listing(self, access_token: str, listing_id: Any) -> Any:
        return await self._get(
            f"/application/listings/{listing_id}",
            access_token,
            params={"includes": LISTING_INCLUDES},
        )


def create_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=HTTP_TIMEOUT)


def get_etsy_client(request: Request) -> EtsyClient:
    """Dependency: EtsyClient over the app-wide AsyncClient (created in lifespan, or lazily)."""
    http = getattr(request.app.state, "http_client", None)
    if http is None:
        # Only reached when the app runs without its lifespan; this client is never closed
        logger.warning("No lifespan http client; creating an unmanaged AsyncClient")
        http = create_http_client()
        request.app.state.http_client = http
    return EtsyClient(http)
