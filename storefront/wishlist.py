from __future__ import annotations
import logging
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from .database import WISHLISTS, create_document, utcnow
from .errors import (
    AlreadyInWishlistError,
    ProductNotFoundError,
    WishlistItemNotFoundError,
    WishlistNotFoundError,
)
from .products import find_product_by_id

logger = logging.getLogger(__name__)


async def find_wishlist_by_user(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict[str, Any]]:
    return await db[WISHLISTS].find_one({"user_id": user_id})


async def _save_products(db: AsyncIOMotorDatabase, wishlist: dict[str, Any]) -> None:
    await db[WISHLISTS].update_one(
        {"_id": wishlist["_id"]}, {"$set": {"products": wishlist["products"], "updated_at": utcnow()}}
    )


async def _require_wishlist(db: AsyncIOMotorDatabase, user_id: str) -> dict[str, Any]:
    wishlist = await find_wishlist_by_user(db, user_id)
    if wishlist is None:
        raise WishlistNotFoundError(user_id)
    return wishlist


async def get_wishlist(db: AsyncIOMotorDatabase, user_id: str) -> dict[str, Any]:
    """Return the user's wishlist, dropping products that are gone or inactive."""
    wishlist = await find_wishlist_by_user(db, user_id)
    if wishlist is None:
        return await create_document(db, WISHLISTS, {"user_id": user_id, "products": []})
    kept = []
    for product_id in wishlist["products"]:
        product = await find_product_by_id(db, product_id)
        if product and product.get("is_active", True):
            kept.append(product_id)
    if len(kept) != len(wishlist["products"]):
        logger.info("Pruned %d product(s) from wishlist of user %s", len(wishlist["products"]) - len(kept), user_id)
        wishlist["products"] = kept
        await _save_products(db, wishlist)
    return wishlist


async def add_to_wishlist(db: AsyncIOMotorDatabase, user_id: str, product_id: str) -> dict[str, Any]:
    product = await find_product_by_id(db, product_id)
    if product is None or not product.get("is_active", True):
        raise ProductNotFoundError(product_id)

    wishlist = await find_wishlist_by_user(db, user_id)
    if wishlist is None:
        return await create_document(db, WISHLISTS, {"user_id": user_id, "products": [product_id]})
    if product_id in wishlist["products"]:
        raise AlreadyInWishlistError(product_id)
    wishlist["products"].append(product_id)
    await _save_products(db, wishlist)
    return wishlist


async def remove_from_wishlist(db: AsyncIOMotorDatabase, user_id: str, product_id: str) -> dict[str, Any]:
    wishlist = await _require_wishlist(db, user_id)
    if product_id not in wishlist["products"]:
        raise WishlistItemNotFoundError(product_id)
    wishlist["products"].remove(product_id)
    await _save_products(db, wishlist)
    return wishlist


async def clear_wishlist(db: AsyncIOMotorDatabase, user_id: str) -> dict[str, Any]:
    wishlist = await _require_wishlist(db, user_id)
    wishlist["products"] = []
    await _save_products(db, wishlist)
    return wishlist


async def is_in_wishlist(db: AsyncIOMotorDatabase, user_id: str, product_id: str) -> bool:
    wishlist = await find_wishlist_by_user(db, user_id)
    return wishlist is not None and product_id in wishlist["products"]


async def wishlist_count(db: AsyncIOMotorDatabase, user_id: str) -> int:
    wishlist = await find_wishlist_by_user(db, user_id)
    return len(wishlist["products"]) if wishlist else 0
