"""Tests for the relayed shop and listing routes behind the auth guard."""
import logging
from types import SimpleNamespace

import httpx
import pytest

from etsy_relay.etsy_client import get_etsy_client
from etsy_relay.session_store import now_ms

ME = "/v3/application/users/me"
SHOPS = "/v3/application/users/9/shops"
LISTINGS = "/v3/application/shops/42/listings"


def _raw_listing(listing_id=1001, products=None):
    return {
        "listing_id": listing_id,
        "title": "Linen apron",
        "description": "Natural linen",
        "price": {"amount": 4000, "divisor": 100, "currency_code": "USD"},
        "quantity": 3,
        "tags": ["apron"],
        "url": f"https://www.etsy.com/listing/{listing_id}",
        "state": "active",
        "images": [{"url_fullxfull": "https://i.etsystatic.com/a.jpg"}],
        "inventory": {"products": products or []},
    }


@pytest.mark.parametrize("path", ["/api/shop", "/api/listings", "/api/listings/1001"])
def test_guard_rejects_without_token(client, upstream, path):
    r = client.get(path)
    assert r.status_code == 401
    assert r.json() == {"error": "Not authenticated"}
    assert upstream.requests == []


def test_guard_rejects_during_unfinished_flow(client, start_flow):
    start_flow()
    r = client.get("/api/listings")
    assert r.status_code == 401
    assert r.json() == {"error": "Not authenticated"}


def test_guard_rejects_expired_token(client, logged_in, upstream, audit):
    logged_in.expires_at = now_ms() - 1000
    r = client.get("/api/listings")
    assert r.status_code == 401
    assert r.json() == {"error": "Token expired"}
    assert upstream.requests == []
    assert audit.events[-1]["reason"] == "expired"


def test_get_shop_returns_raw_shops_payload(client, logged_in, upstream):
    shops = {"count": 1, "results": [{"shop_id": 42, "shop_name": "LinenHouse"}]}
    upstream.add("GET", ME, httpx.Response(200, json={"user_id": 9, "shop_id": 42}))
    upstream.add("GET", SHOPS, httpx.Response(200, json=shops))
    r = client.get("/api/shop")
    assert r.status_code == 200
    assert r.json() == shops
    sent = upstream.requests[0]
    assert sent.headers["authorization"] == "Bearer access-123"
    assert sent.headers["x-api-key"] == "test-keystring"


def test_get_shop_forwards_upstream_status(client, logged_in, upstream):
    upstream.add("GET", ME, httpx.Response(403, json={"error": "insufficient scope"}))
    r = client.get("/api/shop")
    assert r.status_code == 403
    assert r.json() == {"error": "Failed to fetch shop information"}


def test_listings_with_inline_shop_id(client, logged_in, upstream):
    product = {
        "property_values": [{"property_name": "Color", "values": ["Red"]}],
        "offerings": [{"price": {"amount": 2500, "divisor": 100}, "quantity": 5}],
    }
    upstream.add("GET", ME, httpx.Response(200, json={"user_id": 9, "shop_id": 42}))
    upstream.add("GET", LISTINGS, httpx.Response(200, json={"count": 1, "results": [_raw_listing(products=[product])]}))

    r = client.get("/api/listings")

    assert r.status_code == 200
    body = r.json()
    assert body["count"] == 1
    listing = body["results"][0]
    assert listing["id"] == 1001
    assert listing["price"] == 40.0
    assert listing["photos"] == ["https://i.etsystatic.com/a.jpg"]
    assert listing["variations"] == [{"color": "Red", "price": 25.0, "quantity": 5}]
    assert listing["lastBackup"] is None
    assert upstream.paths() == [ME, LISTINGS]
    params = upstream.requests[-1].url.params
    assert params["state"] == "active"
    assert params["includes"] == "Images,Inventory"
    assert params["limit"] == "100"


def test_listings_default_variation(client, logged_in, upstream):
    upstream.add("GET", ME, httpx.Response(200, json={"user_id": 9, "shop_id": 42}))
    upstream.add("GET", LISTINGS, httpx.Response(200, json={"count": 1, "results": [_raw_listing()]}))
    listing = client.get("/api/listings").json()["results"][0]
    assert listing["variations"] == [{"option": "Default", "price": 40.0, "quantity": 3}]


@pytest.mark.parametrize(
    "shops",
    [
        [{"shop_id": 42}],
        {"count": 1, "results": [{"shop_id": 42}]},
        {"shop_id": 42, "shop_name": "LinenHouse"},
    ],
)
def test_listings_resolves_shop_from_shops_endpoint(client, logged_in, upstream, shops):
    upstream.add("GET", ME, httpx.Response(200, json={"user_id": 9}))
    upstream.add("GET", SHOPS, httpx.Response(200, json=shops))
    upstream.add("GET", LISTINGS, httpx.Response(200, json={"count": 0, "results": []}))
    r = client.get("/api/listings")
    assert r.status_code == 200
    assert upstream.paths() == [ME, SHOPS, LISTINGS]


def test_listings_no_shop_returns_404_without_listings_call(client, logged_in, upstream):
    upstream.add("GET", ME, httpx.Response(200, json={"user_id": 9}))
    upstream.add("GET", SHOPS, httpx.Response(200, json={"count": 0, "results": []}))
    r = client.get("/api/listings")
    assert r.status_code == 404
    assert r.json() == {
        "error": "No shop found",
        "message": "Your Etsy account does not have a shop associated with it.",
    }
    assert upstream.paths() == [ME, SHOPS]


def test_listings_empty_results(client, logged_in, upstream):
    upstream.add("GET", ME, httpx.Response(200, json={"user_id": 9, "shop_id": 42}))
    upstream.add("GET", LISTINGS, httpx.Response(200, json={"count": 0, "results": []}))
    r = client.get("/api/listings")
    assert r.status_code == 200
    assert r.json() == {"count": 0, "results": []}


def test_listings_upstream_error_forwards_status_and_details(client, logged_in, upstream, audit):
    upstream.add("GET", ME, httpx.Response(200, json={"user_id": 9, "shop_id": 42}))
    upstream.add("GET", LISTINGS, httpx.Response(429, json={"error": "rate limited"}))
    r = client.get("/api/listings")
    assert r.status_code == 429
    assert r.json() == {"error": "Failed to fetch listings", "details": {"error": "rate limited"}}
    assert audit.events[-1]["upstream_status"] == 429


def test_listings_transport_error_is_500(client, logged_in, upstream):
    def fail(request):
        raise httpx.ReadTimeout("timed out", request=request)

    upstream.add("GET", ME, fail)
    r = client.get("/api/listings")
    assert r.status_code == 500
    assert r.json()["error"] == "Failed to fetch listings"


def test_get_listing_returns_raw_payload(client, logged_in, upstream):
    raw = _raw_listing(listing_id=555)
    upstream.add("GET", "/v3/application/listings/555", httpx.Response(200, json=raw))
    r = client.get("/api/listings/555")
    assert r.status_code == 200
    assert r.json() == raw
    assert upstream.requests[0].url.params["includes"] == "Images,Inventory"


def test_get_listing_forwards_404(client, logged_in, upstream):
    upstream.add("GET", "/v3/application/listings/404404", httpx.Response(404, json={"error": "not found"}))
    r = client.get("/api/listings/404404")
    assert r.status_code == 404
    assert r.json() == {"error": "Failed to fetch listing"}


def test_listings_non_object_users_me_is_json_500(client, logged_in, upstream):
    upstream.add("GET", ME, httpx.Response(200, json=[]))
    r = client.get("/api/listings")
    assert r.status_code == 500
    assert r.json()["error"] == "Failed to fetch listings"
    assert upstream.paths() == [ME]


def test_shop_non_object_users_me_is_json_500(client, logged_in, upstream):
    upstream.add("GET", ME, httpx.Response(200, json=["unexpected"]))
    r = client.get("/api/shop")
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to fetch shop information"}


def test_etsy_client_without_lifespan_warns(caplog):
    request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace()))
    with caplog.at_level(logging.WARNING, logger="etsy_relay.etsy_client"):
        etsy = get_etsy_client(request)
    assert request.app.state.http_client is etsy.http
    assert "unmanaged AsyncClient" in caplog.text
    # Second call reuses the stored client without warning again
    caplog.clear()
    assert get_etsy_client(request).http is etsy.http
    assert caplog.text == ""
