from __future__ import annotations
import logging
import re
from typing import Any, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from .database import CATEGORIES, PRODUCTS, create_document, get_documents, to_object_id, utcnow
from .errors import CategoryInUseError, CategoryNotFoundError, DuplicateCategoryError
from .products import list_products, slugify
from .schemas import Category, CategoryUpdatePayload

logger = logging.getLogger(__name__)


async def _check_name_free(db: AsyncIOMotorDatabase, name: str, exclude_id: ObjectId | None = None) -> None:
    # Names are unique regardless of case
    query: dict[str, Any] = {"name": {"$regex": f"^{re.escape(name)}$", "$options": "i"}}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    if await db[CATEGORIES].find_one(query) is not None:
        raise DuplicateCategoryError(name)


async def create_category(db: AsyncIOMotorDatabase, category: Category) -> dict[str, Any]:
    data = category.model_dump()
    data["name"] = data["name"].strip()
    await _check_name_free(db, data["name"])
    data["slug"] = slugify(data["name"])
    doc = await create_document(db, CATEGORIES, data)
    logger.info("Created category %s (%s)", doc["_id"], doc["slug"])
    return doc


async def list_categories(db: AsyncIOMotorDatabase, limit: int = 100) -> list[dict[str, Any]]:
    return await get_documents(db, CATEGORIES, {"is_active": True}, limit=limit, sort=[("created_at", -1)])


async def get_category(db: AsyncIOMotorDatabase, id_or_slug: str) -> dict[str, Any]:
    doc: Optional[dict[str, Any]] = None
    if ObjectId.is_valid(id_or_slug):
        doc = await db[CATEGORIES].find_one({"_id": ObjectId(id_or_slug)})
    if doc is None:
        doc = await db[CATEGORIES].find_one({"slug": id_or_slug})
    if doc is None:
        raise CategoryNotFoundError(id_or_slug)
    return doc


async def list_category_products(db: AsyncIOMotorDatabase, id_or_slug: str, limit: int = 100) -> list[dict[str, Any]]:
    """Active products filed under the category."""
    category = await get_category(db, id_or_slug)
    return await list_products(db, category=str(category["_id"]), limit=limit)


async def update_category(db: AsyncIOMotorDatabase, category_id: str, payload: CategoryUpdatePayload) -> dict[str, Any]:
    oid = to_object_id(category_id, "category")
    update = payload.model_dump(exclude_unset=True)
    if update.get("name") is not None:
        update["name"] = update["name"].strip()
        await _check_name_free(db, update["name"], exclude_id=oid)
        update["slug"] = slugify(update["name"])
    update["updated_at"] = utcnow()
    doc = await db[CATEGORIES].find_one_and_update(
        {"_id": oid}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    if doc is None:
        raise CategoryNotFoundError(category_id)
    return doc


async def deactivate_category(db: AsyncIOMotorDatabase, category_id: str) -> None:
    """Soft-delete a category. Refused while active products still use it."""
    oid = to_object_id(category_id, "category")
    in_use = await db[PRODUCTS].count_documents({"category": str(oid), "is_active": True})
    if in_use:
        raise CategoryInUseError(category_id, in_use)
    res = await db[CATEGORIES].update_one({"_id": oid}, {"$set": {"is_active": False, "updated_at": utcnow()}})
    if res.matched_count == 0:
        raise CategoryNotFoundError(category_id)
    logger.info("Deactivated category %s", category_id)
