"""
Shop-id resolution and the listing reshape served by GET /api/listings.
Pure functions over Etsy JSON payloads; no I/O.
"""
from enum import Enum
from typing import Any


class ShopsShape(str, Enum):
    """Shapes seen from GET /users/{id}/shops, checked in this order."""

    LIST = "list"  # [ {shop}, ... ]
    COLLECTION = "collection"  # {"count": n, "results": [ {shop}, ... ]}
    SINGLE = "single"  # {shop}
    UNKNOWN = "unknown"


def classify_shops_payload(payload: Any) -> ShopsShape:
    if isinstance(payload, list):
        return ShopsShape.LIST
    if isinstance(payload, dict):
        if isinstance(payload.get("results"), list):
            return ShopsShape.COLLECTION
        return ShopsShape.SINGLE
    return ShopsShape.UNKNOWN


def _first_shop_id(shops: list) -> Any | None:
    if not shops or not isinstance(shops[0], dict):
        return None
    return shops[0].get("shop_id")


def shop_id_from_shops(payload: Any) -> Any | None:
    """Shop id from a shops payload of any known shape; None when there is none."""
    shape = classify_shops_payload(payload)
    if shape is ShopsShape.LIST:
        return _first_shop_id(payload)
    if shape is ShopsShape.COLLECTION:
        return _first_shop_id(payload["results"])
    if shape is ShopsShape.SINGLE:
        return payload.get("shop_id")
    return None


def money(price: Any) -> float | None:
    """Etsy Money {amount, divisor} -> float. None when absent or malformed."""
    if not isinstance(price, dict):
        return None
    amount = price.get("amount")
    divisor = price.get("divisor")
    if amount is None or not divisor:
        return None
    try:
        return amount / divisor
    except TypeError:
        return None


def transform_photos(listing: dict) -> list[str]:
    photos = []
    for image in listing.get("images") or []:
        if not isinstance(image, dict):
            continue
        url = image.get("url_fullxfull") or image.get("url_570xN")
        if url:
            photos.append(url)
    return photos


def transform_variation(product: dict, listing_price: float | None) -> dict | None:
    """
    One inventory product -> {<property name lower>: <first value>, ..., price, quantity}.
    Returns None when the product has no properties (only price and quantity).
    """
    variation: dict[str, Any] = {}
    for prop in product.get("property_values") or []:
        if not isinstance(prop, dict):
            continue
        name = str(prop.get("property_name") or "option")
        values = prop.get("values") or []
        variation[name.lower()] = (values[0] if values else "") or ""

    offerings = product.get("offerings") or []
    offering = offerings[0] if offerings else {}
    # Zero or missing offering price falls back to the listing price
    variation["price"] = money(offering.get("price")) or listing_price
    variation["quantity"] = offering.get("quantity") or 0

    if len(variation) <= 2:
        return None
    return variation


def transform_variations(listing: dict, listing_price: float | None) -> list[dict]:
    """Never empty: falls back to a single Default variation at the listing's price and quantity."""
    variations = []
    inventory = listing.get("inventory") or {}
    for product in inventory.get("products") or []:
        if not isinstance(product, dict):
            continue
        variation = transform_variation(product, listing_price)
        if variation is not None:
            variations.append(variation)
    if not variations:
        variations.append(
            {
                "option": "Default",
                "price": listing_price,
                "quantity": listing.get("quantity"),
            }
        )
    return variations


def transform_listing(listing: dict) -> dict:
    """Etsy ShopListing (with Images, Inventory includes) -> frontend listing record."""
    price = money(listing.get("price"))
    return {
        "id": listing.get("listing_id"),
        "title": listing.get("title"),
        "price": price,
        "description": listing.get("description") or "",
        "tags": listing.get("tags") or [],
        "photos": transform_photos(listing),
        "variations": transform_variations(listing, price),
        # No backup subsystem in this service
        "lastBackup": None,
        "etsyUrl": listing.get("url"),
        "state": listing.get("state"),
    }


def transform_listings_response(payload: Any) -> dict:
    """Listings collection -> {count, results}; an empty or missing results list is not an error."""
    results = payload.get("results") if isinstance(payload, dict) else None
    if not results:
        return {"count": 0, "results": []}
    transformed = [transform_listing(listing) for listing in results if isinstance(listing, dict)]
    return {"count": len(transformed), "results": transformed}
