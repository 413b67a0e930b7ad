from __future__ import annotations
import logging
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from .config import Settings, get_settings
from .database import CARTS, create_document, utcnow
from .errors import (
    CartItemNotFoundError,
    CartNotFoundError,
    InsufficientStockError,
    InvalidQuantityError,
    ProductNotFoundError,
)
from .products import find_product_by_id

logger = logging.getLogger(__name__)


async def find_cart_by_user(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict[str, Any]]:
    return await db[CARTS].find_one({"user_id": user_id})


async def save_cart_items(db: AsyncIOMotorDatabase, cart: dict[str, Any]) -> None:
    await db[CARTS].update_one(
        {"_id": cart["_id"]}, {"$set": {"items": cart["items"], "updated_at": utcnow()}}
    )


async def get_or_create_cart(db: AsyncIOMotorDatabase, user_id: str) -> dict[str, Any]:
    cart = await find_cart_by_user(db, user_id)
    if cart is None:
        cart = await create_document(db, CARTS, {"user_id": user_id, "items": []})
    return cart


async def _require_cart(db: AsyncIOMotorDatabase, user_id: str) -> dict[str, Any]:
    cart = await find_cart_by_user(db, user_id)
    if cart is None:
        raise CartNotFoundError(user_id)
    return cart


def _check_quantity(quantity: int, settings: Settings) -> None:
    if quantity < 1 or quantity > settings.MAX_CART_QUANTITY:
        raise InvalidQuantityError(quantity, settings.MAX_CART_QUANTITY)


def _index_of(cart: dict[str, Any], product_id: str) -> int:
    for i, item in enumerate(cart["items"]):
        if item["product_id"] == product_id:
            return i
    return -1


async def get_cart(db: AsyncIOMotorDatabase, user_id: str) -> dict[str, Any]:
    """Return the user's cart, dropping lines that can no longer be bought."""
    cart = await get_or_create_cart(db, user_id)
    valid = []
    for item in cart["items"]:
        product = await find_product_by_id(db, item["product_id"])
        if product and product.get("stock", 0) > 0 and item["quantity"] <= product["stock"]:
            valid.append(item)
    if len(valid) != len(cart["items"]):
        logger.info("Pruned %d stale line(s) from cart of user %s", len(cart["items"]) - len(valid), user_id)
        cart["items"] = valid
        await save_cart_items(db, cart)
    return cart


async def add_to_cart(
    db: AsyncIOMotorDatabase,
    user_id: str,
    product_id: str,
    quantity: int,
    settings: Settings | None = None,
) -> dict[str, Any]:
    settings = settings or get_settings()
    _check_quantity(quantity, settings)
    product = await find_product_by_id(db, product_id)
    if product is None or not product.get("is_active", True):
        raise ProductNotFoundError(product_id)
    if product["stock"] < quantity:
        raise InsufficientStockError(product_id, product["name"], quantity, product["stock"])

    cart = await get_or_create_cart(db, user_id)
    idx = _index_of(cart, product_id)
    if idx > -1:
        new_quantity = cart["items"][idx]["quantity"] + quantity
        if new_quantity > product["stock"]:
            raise InsufficientStockError(product_id, product["name"], new_quantity, product["stock"])
        cart["items"][idx]["quantity"] = new_quantity
        cart["items"][idx]["price"] = product["price"]
    else:
        cart["items"].append({"product_id": product_id, "quantity": quantity, "price": product["price"]})
    await save_cart_items(db, cart)
    return cart


async def update_cart_item(
    db: AsyncIOMotorDatabase,
    user_id: str,
    product_id: str,
    quantity: int,
    settings: Settings | None = None,
) -> dict[str, Any]:
    settings = settings or get_settings()
    _check_quantity(quantity, settings)
    cart = await _require_cart(db, user_id)
    idx = _index_of(cart, product_id)
    if idx == -1:
        raise CartItemNotFoundError(product_id)

    product = await find_product_by_id(db, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    if product["stock"] < quantity:
        raise InsufficientStockError(product_id, product["name"], quantity, product["stock"])

    cart["items"][idx]["quantity"] = quantity
    cart["items"][idx]["price"] = product["price"]
    await save_cart_items(db, cart)
    return cart


async def remove_from_cart(db: AsyncIOMotorDatabase, user_id: str, product_id: str) -> dict[str, Any]:
    cart = await _require_cart(db, user_id)
    idx = _index_of(cart, product_id)
    if idx == -1:
        raise CartItemNotFoundError(product_id)
    del cart["items"][idx]
    await save_cart_items(db, cart)
    return cart


async def clear_cart(db: AsyncIOMotorDatabase, user_id: str) -> dict[str, Any]:
    cart = await _require_cart(db, user_id)
    cart["items"] = []
    await save_cart_items(db, cart)
    return cart


async def cart_count(db: AsyncIOMotorDatabase, user_id: str) -> int:
    cart = await find_cart_by_user(db, user_id)
    if cart is None:
        return 0
    return sum(item["quantity"] for item in cart["items"])
