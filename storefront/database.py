from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from .config import Settings
from .errors import InvalidIdError

# Collection names, one per document type
USERS = "user"
PRODUCTS = "product"
CARTS = "cart"
ORDERS = "order"
CATEGORIES = "category"
WISHLISTS = "wishlist"


def connect(settings: Settings) -> tuple[AsyncIOMotorClient, AsyncIOMotorDatabase]:
    client = AsyncIOMotorClient(settings.DATABASE_URL, tz_aware=True)
    return client, client[settings.DATABASE_NAME]


async def get_db(request: Request) -> AsyncIOMotorDatabase:
    """FastAPI dependency: the database handle opened by the app lifespan."""
    return request.app.state.db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: str | ObjectId, kind: str = "document") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise InvalidIdError(kind, str(value))


def serialize(doc: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Swap Mongo's ``_id`` for a string ``id`` and stringify nested ObjectIds."""
    if doc is None:
        return None
    out: dict[str, Any] = {}
    for key, value in doc.items():
        if key == "_id":
            out["id"] = str(value)
        elif isinstance(value, ObjectId):
            out[key] = str(value)
        elif isinstance(value, dict):
            out[key] = serialize(value)
        elif isinstance(value, list):
            out[key] = [serialize(v) if isinstance(v, dict) else (str(v) if isinstance(v, ObjectId) else v) for v in value]
        else:
            out[key] = value
    return out


async def create_document(db: AsyncIOMotorDatabase, collection_name: str, data: dict[str, Any]) -> dict[str, Any]:
    now = utcnow()
    data_with_meta = {**data, "created_at": now, "updated_at": now}
    result = await db[collection_name].insert_one(data_with_meta)
    # Built from what was written; nothing is read back after the insert
    return {**data_with_meta, "_id": result.inserted_id}


async def get_documents(
    db: AsyncIOMotorDatabase,
    collection_name: str,
    filter_dict: dict[str, Any] | None = None,
    limit: int = 100,
    sort: list[tuple[str, int]] | None = None,
) -> list[dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {}, sort=sort, limit=limit)
    docs = []
    async for d in cursor:
        docs.append(d)
    return docs


async def find_document_by_id(db: AsyncIOMotorDatabase, collection_name: str, doc_id: str | ObjectId) -> Optional[dict[str, Any]]:
    return await db[collection_name].find_one({"_id": to_object_id(doc_id, collection_name)})
