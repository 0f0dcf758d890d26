"""
Relayed Etsy data: GET /api/shop, GET /api/listings, GET /api/listings/{listing_id}.
All routes require an authenticated session; upstream failures keep the upstream status.
"""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from etsy_relay.audit import EVENT_UPSTREAM_ERROR, OUTCOME_FAIL, AuditLog, get_audit_log, get_client_ip
from etsy_relay.auth import AuthenticatedSession
from etsy_relay.errors import ApiError, upstream_failure
from etsy_relay.etsy_client import EtsyClient, UpstreamError, get_etsy_client
from etsy_relay.listings import shop_id_from_shops, transform_listings_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api")

Etsy = Annotated[EtsyClient, Depends(get_etsy_client)]
Audit = Annotated[AuditLog, Depends(get_audit_log)]


def _report(audit: AuditLog, request: Request, route: str, exc: UpstreamError) -> None:
    logger.error("Error fetching %s: %s", route, exc.detail)
    audit.log(
        EVENT_UPSTREAM_ERROR,
        outcome=OUTCOME_FAIL,
        ip=get_client_ip(request),
        route=route,
        upstream_status=exc.status_code,
    )


@router.get("/shop")
async def get_shop(request: Request, record: AuthenticatedSession, etsy: Etsy, audit: Audit):
    """The user's shops payload exactly as Etsy returns it."""
    try:
        me = await etsy.get_me(record.access_token)
        return await etsy.get_user_shops(record.access_token, me.get("user_id"))
    except UpstreamError as e:
        _report(audit, request, "shop", e)
        raise upstream_failure(e, "Failed to fetch shop information") from e


@router.get("/listings")
async def list_listings(request: Request, record: AuthenticatedSession, etsy: Etsy, audit: Audit):
    """
    Active listings of the user's shop (max 100) reshaped for the frontend: {count, results}.
    404 when the account has no shop; the listings call is not attempted then.
    """
    token = record.access_token
    try:
        me = await etsy.get_me(token)
        shop_id = me.get("shop_id")
        if not shop_id:
            shops = await etsy.get_user_shops(token, me.get("user_id"))
            shop_id = shop_id_from_shops(shops)

        if not shop_id:
            raise ApiError(
                status.HTTP_404_NOT_FOUND,
                "No shop found",
                message="Your Etsy account does not have a shop associated with it.",
            )

        logger.debug("Using shop ID: %s", shop_id)
        payload = await etsy.get_active_listings(token, shop_id)
    except UpstreamError as e:
        _report(audit, request, "listings", e)
        raise upstream_failure(e, "Failed to fetch listings", with_details=True) from e

    result = transform_listings_response(payload)
    if not result["count"]:
        logger.info("No listings returned from Etsy API for shop %s", shop_id)
    return result


@router.get("/listings/{listing_id}")
async def get_listing(listing_id: str, request: Request, record: AuthenticatedSession, etsy: Etsy, audit: Audit):
    """Single listing, raw Etsy payload (no reshape)."""
    try:
        return await etsy.get_listing(record.access_token, listing_id)
    except UpstreamError as e:
        _report(audit, request, "listing", e)
        raise upstream_failure(e, "Failed to fetch listing") from e
