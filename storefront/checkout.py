"""Turn a user's cart into an order.

The steps run strictly in sequence: check the input, load and validate
every cart line, price the lines, reserve stock with conditional
decrements, write the order, then empty the cart. Nothing is written until
every line has been validated. Once stock has been taken, any later failure
puts it back before the error propagates.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from .carts import find_cart_by_user, save_cart_items
from .config import Settings, get_settings
from .database import ORDERS, create_document
from .errors import (
    EmptyCartError,
    InsufficientStockError,
    InvalidPaymentMethodError,
    InvalidShippingAddressError,
    ProductUnavailableError,
    StockCompensationError,
    StockConflictError,
)
from .orders import order_from_document
from .pricing import calculate_prices
from .products import decrement_stock, find_product_by_id, restore_stock
from .schemas import Order, OrderStatus, PaymentMethod, ShippingAddress

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("full_name", "address", "city", "postal_code", "country")


@dataclass(frozen=True)
class CheckoutLine:
    product_id: str
    name: str
    quantity: int
    price: float
    image: str

    def snapshot(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": self.price,
            "image": self.image,
        }


def validate_shipping_address(raw: ShippingAddress | Mapping[str, Any]) -> ShippingAddress:
    if isinstance(raw, ShippingAddress):
        raw = raw.model_dump()
    cleaned: dict[str, str] = {}
    missing = []
    for field in ADDRESS_FIELDS:
        value = raw.get(field)
        if not isinstance(value, str) or not value.strip():
            missing.append(field)
        else:
            cleaned[field] = value.strip()
    if missing:
        raise InvalidShippingAddressError(missing)
    return ShippingAddress(**cleaned)


def parse_payment_method(raw: PaymentMethod | str) -> PaymentMethod:
    try:
        return PaymentMethod(raw)
    except ValueError:
        raise InvalidPaymentMethodError(raw)


async def load_checkout_lines(db: AsyncIOMotorDatabase, user_id: str) -> tuple[dict[str, Any], list[CheckoutLine]]:
    """Load the cart and resolve every line against current product data.

    Raises ``EmptyCartError`` for a missing or empty cart, and a
    ``CheckoutValidationError`` subclass for the first line whose product
    is gone, inactive, or short on stock.
    """
    cart = await find_cart_by_user(db, user_id)
    if cart is None or not cart.get("items"):
        raise EmptyCartError(user_id)

    lines = []
    for item in cart["items"]:
        product = await find_product_by_id(db, item["product_id"])
        if product is None:
            raise ProductUnavailableError(item["product_id"])
        if not product.get("is_active", True):
            raise ProductUnavailableError(item["product_id"], product["name"])
        if product["stock"] < item["quantity"]:
            raise InsufficientStockError(item["product_id"], product["name"], item["quantity"], product["stock"])
        images = product.get("images") or []
        lines.append(
            CheckoutLine(
                product_id=item["product_id"],
                name=product["name"],
                quantity=item["quantity"],
                price=item["price"],
                image=images[0] if images else "",
            )
        )
    return cart, lines


async def release_stock(db: AsyncIOMotorDatabase, lines: Sequence[CheckoutLine]) -> None:
    failed = []
    for line in lines:
        try:
            await restore_stock(db, line.product_id, line.quantity)
        except PyMongoError:
            logger.exception("Could not restore %d unit(s) of product %s", line.quantity, line.product_id)
            failed.append(line.product_id)
    if failed:
        raise StockCompensationError(failed)


async def reserve_stock(db: AsyncIOMotorDatabase, lines: Sequence[CheckoutLine]) -> None:
    """Decrement stock for every line, or for none of them."""
    reserved: list[CheckoutLine] = []
    try:
        for line in lines:
            await decrement_stock(db, line.product_id, line.quantity)
            reserved.append(line)
    except Exception as exc:
        failed_on = exc.product_id if isinstance(exc, StockConflictError) else line.product_id
        logger.warning(
            "Stock reservation failed on product %s (%s); releasing %d reserved line(s)",
            failed_on,
            type(exc).__name__,
            len(reserved),
        )
        try:
            await release_stock(db, reserved)
        except StockCompensationError as compensation:
            raise compensation from exc
        raise


async def discard_order(db: AsyncIOMotorDatabase, order_id: ObjectId, lines: Sequence[CheckoutLine]) -> None:
    """Undo a checkout whose order write did not complete.

    The order is removed before its stock is released. If the removal fails
    the order keeps its stock, so the two never disagree.
    """
    await db[ORDERS].delete_one({"_id": order_id})
    await release_stock(db, lines)


async def place_order(
    db: AsyncIOMotorDatabase,
    user_id: str,
    shipping_address: ShippingAddress | Mapping[str, Any],
    payment_method: PaymentMethod | str,
    settings: Settings | None = None,
) -> Order:
    settings = settings or get_settings()
    address = validate_shipping_address(shipping_address)
    method = parse_payment_method(payment_method)

    cart, lines = await load_checkout_lines(db, user_id)
    prices = calculate_prices(lines, settings)

    await reserve_stock(db, lines)
    # Id chosen up front so a write that landed but reported failure can be found
    order_id = ObjectId()
    try:
        doc = await create_document(
            db,
            ORDERS,
            {
                "_id": order_id,
                "user_id": user_id,
                "order_items": [line.snapshot() for line in lines],
                "shipping_address": address.model_dump(),
                "payment_method": method.value,
                **prices.as_document(),
                "status": OrderStatus.PENDING.value,
                "is_paid": False,
                "paid_at": None,
                "payment_result": None,
                "is_delivered": False,
                "delivered_at": None,
            },
        )
    except Exception as exc:
        logger.error("Order write failed for user %s; discarding order %s and releasing stock", user_id, order_id)
        try:
            await discard_order(db, order_id, lines)
        except (PyMongoError, StockCompensationError) as compensation:
            logger.exception("Could not undo order %s; it needs manual reconciliation", order_id)
            raise compensation from exc
        raise

    cart["items"] = []
    try:
        await save_cart_items(db, cart)
    except PyMongoError:
        logger.exception("Order %s placed but cart of user %s was not cleared", doc["_id"], user_id)
        raise

    logger.info("Placed order %s for user %s, total %s", doc["_id"], user_id, prices.total_price)
    return order_from_document(doc)
