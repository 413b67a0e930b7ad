from __future__ import annotations
import logging
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from .database import ORDERS, find_document_by_id, get_documents, serialize, utcnow
from .errors import (
    InvalidStatusTransitionError,
    NotAuthorizedError,
    OrderAlreadyDeliveredError,
    OrderAlreadyPaidError,
    OrderNotFoundError,
)
from .schemas import Order, OrderStatus, Role

logger = logging.getLogger(__name__)

# pending -> processing -> shipped -> delivered; cancelled from anything not final
TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED}
    ),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def is_terminal(status: OrderStatus) -> bool:
    return not TRANSITIONS[status]


def check_transition(current: OrderStatus, target: OrderStatus) -> None:
    if target not in TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current.value, target.value)


def transition_fields(current: OrderStatus, target: OrderStatus) -> dict[str, Any]:
    """Fields to ``$set`` when moving an order from ``current`` to ``target``."""
    check_transition(current, target)
    now = utcnow()
    fields: dict[str, Any] = {"status": target.value, "updated_at": now}
    if target is OrderStatus.DELIVERED:
        fields["is_delivered"] = True
        fields["delivered_at"] = now
    return fields


def order_from_document(doc: dict[str, Any]) -> Order:
    return Order(**serialize(doc))


def is_admin(user: dict[str, Any]) -> bool:
    return user.get("role") == Role.ADMIN.value


def _check_access(doc: dict[str, Any], user: dict[str, Any], action: str) -> None:
    if doc["user_id"] != str(user["_id"]) and not is_admin(user):
        raise NotAuthorizedError(f"Not authorized to {action} this order")


async def _find_order(db: AsyncIOMotorDatabase, order_id: str) -> dict[str, Any]:
    doc = await find_document_by_id(db, ORDERS, order_id)
    if doc is None:
        raise OrderNotFoundError(order_id)
    return doc


async def _set_if_status(db: AsyncIOMotorDatabase, doc: dict[str, Any], extra_filter: dict[str, Any], fields: dict[str, Any]) -> Order:
    # Guard on the status we read so a concurrent update cannot be overwritten
    updated = await db[ORDERS].find_one_and_update(
        {"_id": doc["_id"], "status": doc["status"], **extra_filter},
        {"$set": fields},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        current = await _find_order(db, str(doc["_id"]))
        raise InvalidStatusTransitionError(current["status"], fields.get("status", current["status"]))
    return order_from_document(updated)


async def get_order(db: AsyncIOMotorDatabase, order_id: str, user: dict[str, Any]) -> Order:
    doc = await _find_order(db, order_id)
    _check_access(doc, user, "access")
    return order_from_document(doc)


async def list_user_orders(db: AsyncIOMotorDatabase, user_id: str, limit: int = 100) -> list[Order]:
    docs = await get_documents(db, ORDERS, {"user_id": user_id}, limit=limit, sort=[("created_at", -1)])
    return [order_from_document(d) for d in docs]


async def list_all_orders(db: AsyncIOMotorDatabase, status: Optional[OrderStatus] = None, limit: int = 100) -> list[Order]:
    filter_dict = {"status": status.value} if status else {}
    docs = await get_documents(db, ORDERS, filter_dict, limit=limit, sort=[("created_at", -1)])
    return [order_from_document(d) for d in docs]


async def mark_order_paid(
    db: AsyncIOMotorDatabase,
    order_id: str,
    user: dict[str, Any],
    payment_result: Optional[dict[str, Any]] = None,
) -> Order:
    """Record payment. A pending order moves on to processing."""
    doc = await _find_order(db, order_id)
    _check_access(doc, user, "update")
    if doc["is_paid"]:
        raise OrderAlreadyPaidError(order_id)

    current = OrderStatus(doc["status"])
    if is_terminal(current):
        raise InvalidStatusTransitionError(current.value, OrderStatus.PROCESSING.value)
    if current is OrderStatus.PENDING:
        fields = transition_fields(current, OrderStatus.PROCESSING)
    else:
        fields = {"updated_at": utcnow()}
    fields["is_paid"] = True
    fields["paid_at"] = fields["updated_at"]
    if payment_result:
        fields["payment_result"] = payment_result

    order = await _set_if_status(db, doc, {"is_paid": False}, fields)
    logger.info("Order %s paid", order_id)
    return order


async def mark_order_delivered(db: AsyncIOMotorDatabase, order_id: str) -> Order:
    doc = await _find_order(db, order_id)
    if doc["is_delivered"]:
        raise OrderAlreadyDeliveredError(order_id)
    fields = transition_fields(OrderStatus(doc["status"]), OrderStatus.DELIVERED)
    order = await _set_if_status(db, doc, {}, fields)
    logger.info("Order %s delivered", order_id)
    return order


async def update_order_status(db: AsyncIOMotorDatabase, order_id: str, status: OrderStatus) -> Order:
    doc = await _find_order(db, order_id)
    fields = transition_fields(OrderStatus(doc["status"]), status)
    order = await _set_if_status(db, doc, {}, fields)
    logger.info("Order %s moved %s -> %s", order_id, doc["status"], status.value)
    return order
