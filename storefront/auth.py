from __future__ import annotations
from typing import Any, Optional

from fastapi import Depends, Header
from motor.motor_asyncio import AsyncIOMotorDatabase

from .database import USERS, get_db
from .errors import NotAuthenticatedError, NotAuthorizedError
from .orders import is_admin


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return None


async def user_from_token(db: AsyncIOMotorDatabase, token: Optional[str]) -> Optional[dict[str, Any]]:
    if not token:
        return None
    return await db[USERS].find_one({"token": token})


async def get_current_user(
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> dict[str, Any]:
    user = await user_from_token(db, bearer_token(authorization))
    if not user:
        raise NotAuthenticatedError()
    return user


async def require_admin(user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    if not is_admin(user):
        raise NotAuthorizedError("Admin only")
    return user
