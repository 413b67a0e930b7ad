"""Pytest fixtures for storefront tests."""

import httpx
import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from storefront.config import Settings
from storefront.database import CARTS, PRODUCTS, USERS, get_db


@pytest.fixture
def db():
    """A fresh in-memory Motor database per test."""
    return AsyncMongoMockClient()["storefront_test"]


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def shipping_address():
    return {
        "full_name": "Ada Lovelace",
        "address": "12 Analytical Row",
        "city": "London",
        "postal_code": "NW1 6XE",
        "country": "UK",
    }


async def add_product(db, name="Widget", price=50.0, stock=10, is_active=True, images=None, category=None):
    result = await db[PRODUCTS].insert_one(
        {
            "name": name,
            "slug": name.lower().replace(" ", "-"),
            "description": f"{name} description",
            "price": price,
            "stock": stock,
            "is_active": is_active,
            "category": category,
            "images": images if images is not None else [f"https://img.example.com/{name}.png"],
        }
    )
    return str(result.inserted_id)


async def add_cart(db, user_id, lines):
    """lines: iterable of (product_id, quantity, price)."""
    await db[CARTS].insert_one(
        {
            "user_id": user_id,
            "items": [{"product_id": pid, "quantity": qty, "price": price} for pid, qty, price in lines],
        }
    )


async def add_user(db, token, role="user", name="Shopper"):
    result = await db[USERS].insert_one(
        {"name": name, "email": f"{token}@example.com", "role": role, "token": token}
    )
    return str(result.inserted_id)


async def stock_of(db, product_id):
    from bson import ObjectId

    doc = await db[PRODUCTS].find_one({"_id": ObjectId(product_id)})
    return doc["stock"]


@pytest_asyncio.fixture
async def api_client(db):
    """HTTP client bound to the app with the in-memory database."""
    from storefront.main import app

    async def override_db():
        return db

    app.dependency_overrides[get_db] = override_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
