from __future__ import annotations
import logging
import re
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from .database import PRODUCTS, create_document, get_documents, to_object_id, utcnow
from .errors import ProductNotFoundError, StockConflictError
from .schemas import Product, ProductUpdatePayload

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    return _NON_ALNUM.sub("-", name.lower()).strip("-")


async def _unique_slug(db: AsyncIOMotorDatabase, name: str, exclude_id: ObjectId | None = None) -> str:
    base = slugify(name) or "product"
    slug, n = base, 1
    while True:
        query: dict[str, Any] = {"slug": slug}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        if await db[PRODUCTS].find_one(query) is None:
            return slug
        n += 1
        slug = f"{base}-{n}"


async def create_product(db: AsyncIOMotorDatabase, product: Product) -> dict[str, Any]:
    data = product.model_dump()
    data["slug"] = await _unique_slug(db, product.name)
    doc = await create_document(db, PRODUCTS, data)
    logger.info("Created product %s (%s)", doc["_id"], doc["slug"])
    return doc


async def find_product_by_id(db: AsyncIOMotorDatabase, product_id: str | ObjectId) -> Optional[dict[str, Any]]:
    try:
        oid = product_id if isinstance(product_id, ObjectId) else ObjectId(product_id)
    except (InvalidId, TypeError):
        return None
    return await db[PRODUCTS].find_one({"_id": oid})


async def get_product(db: AsyncIOMotorDatabase, id_or_slug: str) -> dict[str, Any]:
    doc = None
    if ObjectId.is_valid(id_or_slug):
        doc = await db[PRODUCTS].find_one({"_id": ObjectId(id_or_slug), "is_active": True})
    if doc is None:
        doc = await db[PRODUCTS].find_one({"slug": id_or_slug, "is_active": True})
    if doc is None:
        raise ProductNotFoundError(id_or_slug)
    return doc


async def list_products(
    db: AsyncIOMotorDatabase,
    q: Optional[str] = None,
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    limit: int = 100,
) -> list[dict[str, Any]]:
    filter_dict: dict[str, Any] = {"is_active": True}
    if q:
        filter_dict["name"] = {"$regex": re.escape(q), "$options": "i"}
    if category:
        filter_dict["category"] = category
    if featured is not None:
        filter_dict["featured"] = featured
    return await get_documents(db, PRODUCTS, filter_dict, limit=limit, sort=[("created_at", -1)])


async def update_product(db: AsyncIOMotorDatabase, product_id: str, payload: ProductUpdatePayload) -> dict[str, Any]:
    oid = to_object_id(product_id, "product")
    update = payload.model_dump(exclude_unset=True)
    if "name" in update and update["name"] is not None:
        update["slug"] = await _unique_slug(db, update["name"], exclude_id=oid)
    update["updated_at"] = utcnow()
    doc = await db[PRODUCTS].find_one_and_update(
        {"_id": oid}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    if doc is None:
        raise ProductNotFoundError(product_id)
    return doc


async def deactivate_product(db: AsyncIOMotorDatabase, product_id: str) -> None:
    oid = to_object_id(product_id, "product")
    res = await db[PRODUCTS].update_one({"_id": oid}, {"$set": {"is_active": False, "updated_at": utcnow()}})
    if res.matched_count == 0:
        raise ProductNotFoundError(product_id)


async def decrement_stock(db: AsyncIOMotorDatabase, product_id: str | ObjectId, quantity: int) -> dict[str, Any]:
    """Take ``quantity`` units off a product's stock in one conditional update.

    The filter only matches while ``stock >= quantity``, so two checkouts
    racing for the last units cannot both succeed and stock never goes
    below zero. Raises ``StockConflictError`` when nothing matched.
    """
    doc = await db[PRODUCTS].find_one_and_update(
        {"_id": to_object_id(product_id, "product"), "stock": {"$gte": quantity}},
        {"$inc": {"stock": -quantity}, "$set": {"updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise StockConflictError(str(product_id), quantity)
    return doc


async def restore_stock(db: AsyncIOMotorDatabase, product_id: str | ObjectId, quantity: int) -> None:
    await db[PRODUCTS].update_one(
        {"_id": to_object_id(product_id, "product")},
        {"$inc": {"stock": quantity}, "$set": {"updated_at": utcnow()}},
    )
