"""Tests for product storage and stock updates."""

import pytest

from conftest import add_product, stock_of
from storefront.errors import InvalidIdError, ProductNotFoundError, StockConflictError
from storefront.products import (
    create_product,
    deactivate_product,
    decrement_stock,
    get_product,
    list_products,
    restore_stock,
    slugify,
    update_product,
)
from storefront.schemas import Product, ProductUpdatePayload


@pytest.mark.parametrize(
    "name, slug",
    [
        ("Nebula Headphones", "nebula-headphones"),
        ("  Hello,   World!  ", "hello-world"),
        ("Café Crème 2", "caf-cr-me-2"),
        ("--Already--Dashed--", "already-dashed"),
    ],
)
def test_slugify(name, slug):
    assert slugify(name) == slug


class TestProductStore:
    @pytest.mark.asyncio
    async def test_create_assigns_unique_slugs(self, db):
        first = await create_product(db, Product(name="Desk Lamp", price=49.5, stock=3))
        second = await create_product(db, Product(name="Desk Lamp", price=59.5, stock=3))
        assert first["slug"] == "desk-lamp"
        assert second["slug"] == "desk-lamp-2"
        assert first["is_active"] is True

    @pytest.mark.asyncio
    async def test_get_by_id_or_slug(self, db):
        doc = await create_product(db, Product(name="Water Bottle", price=24.0))
        assert (await get_product(db, str(doc["_id"])))["name"] == "Water Bottle"
        assert (await get_product(db, "water-bottle"))["_id"] == doc["_id"]
        with pytest.raises(ProductNotFoundError):
            await get_product(db, "missing")

    @pytest.mark.asyncio
    async def test_update_reslugs_on_rename(self, db):
        doc = await create_product(db, Product(name="Old Name", price=5.0))
        updated = await update_product(db, str(doc["_id"]), ProductUpdatePayload(name="New Name", price=6.0))
        assert updated["slug"] == "new-name"
        assert updated["price"] == 6.0

    @pytest.mark.asyncio
    async def test_update_unknown(self, db):
        with pytest.raises(ProductNotFoundError):
            await update_product(db, "0123456789abcdef01234567", ProductUpdatePayload(price=1.0))
        with pytest.raises(InvalidIdError):
            await update_product(db, "bogus", ProductUpdatePayload(price=1.0))

    @pytest.mark.asyncio
    async def test_deactivate_hides_from_listing(self, db):
        keep = await create_product(db, Product(name="Keep", price=1.0, category="home"))
        drop = await create_product(db, Product(name="Drop", price=1.0, category="home"))
        await deactivate_product(db, str(drop["_id"]))

        listed = await list_products(db, category="home")
        assert [d["_id"] for d in listed] == [keep["_id"]]
        with pytest.raises(ProductNotFoundError):
            await get_product(db, "drop")

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive_and_literal(self, db):
        await create_product(db, Product(name="Aurora Wallet", price=29.99))
        await create_product(db, Product(name="Card (Slim)", price=9.99))
        assert [d["name"] for d in await list_products(db, q="aurora")] == ["Aurora Wallet"]
        assert [d["name"] for d in await list_products(db, q="(slim)")] == ["Card (Slim)"]


class TestStockUpdates:
    @pytest.mark.asyncio
    async def test_conditional_decrement(self, db):
        pid = await add_product(db, stock=3)
        doc = await decrement_stock(db, pid, 2)
        assert doc["stock"] == 1
        with pytest.raises(StockConflictError):
            await decrement_stock(db, pid, 2)
        assert await stock_of(db, pid) == 1

    @pytest.mark.asyncio
    async def test_decrement_to_zero_then_restore(self, db):
        pid = await add_product(db, stock=2)
        await decrement_stock(db, pid, 2)
        assert await stock_of(db, pid) == 0
        await restore_stock(db, pid, 2)
        assert await stock_of(db, pid) == 2
