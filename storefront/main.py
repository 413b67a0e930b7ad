from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from . import carts, categories, checkout, orders, products, wishlist
from .auth import get_current_user, require_admin
from .config import get_settings
from .database import connect, get_db, serialize, utcnow
from .errors import (
    AlreadyInWishlistError,
    CartItemNotFoundError,
    CartNotFoundError,
    CategoryInUseError,
    CategoryNotFoundError,
    DuplicateCategoryError,
    EmptyCartError,
    InsufficientStockError,
    InvalidIdError,
    InvalidPaymentMethodError,
    InvalidQuantityError,
    InvalidShippingAddressError,
    InvalidStatusTransitionError,
    NotAuthenticatedError,
    NotAuthorizedError,
    OrderAlreadyDeliveredError,
    OrderAlreadyPaidError,
    OrderNotFoundError,
    ProductNotFoundError,
    ProductUnavailableError,
    StockCompensationError,
    StockConflictError,
    StorefrontError,
    WishlistItemNotFoundError,
    WishlistNotFoundError,
)
from .logging_config import configure_logging
from .schemas import (
    AddToCartPayload,
    CategoryPayload,
    CategoryUpdatePayload,
    CheckoutPayload,
    Order,
    OrderStatus,
    PayOrderPayload,
    ProductPayload,
    ProductUpdatePayload,
    StatusPayload,
    UpdateCartPayload,
    WishlistPayload,
)

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    client, app.state.db = connect(settings)
    logger.info("Connected to %s", settings.DATABASE_NAME)
    try:
        yield
    finally:
        client.close()


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    InvalidIdError: 400,
    EmptyCartError: 400,
    ProductUnavailableError: 400,
    InsufficientStockError: 400,
    InvalidShippingAddressError: 400,
    InvalidPaymentMethodError: 400,
    InvalidQuantityError: 400,
    InvalidStatusTransitionError: 400,
    OrderAlreadyPaidError: 400,
    OrderAlreadyDeliveredError: 400,
    DuplicateCategoryError: 400,
    CategoryInUseError: 400,
    AlreadyInWishlistError: 400,
    StockConflictError: 409,
    StockCompensationError: 500,
    NotAuthenticatedError: 401,
    NotAuthorizedError: 403,
    ProductNotFoundError: 404,
    CartNotFoundError: 404,
    CartItemNotFoundError: 404,
    OrderNotFoundError: 404,
    CategoryNotFoundError: 404,
    WishlistNotFoundError: 404,
    WishlistItemNotFoundError: 404,
}


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# --- Health ---


@app.get("/")
async def root():
    return {"message": "Storefront backend running"}


@app.get("/api/health")
async def health():
    return {"success": True, "message": "Server is running", "timestamp": utcnow().isoformat()}


# --- Products ---


@app.get("/api/products")
async def get_products(
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    featured: Optional[bool] = Query(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    docs = await products.list_products(db, q=q, category=category, featured=featured)
    return [serialize(d) for d in docs]


@app.get("/api/products/{id_or_slug}")
async def get_product(id_or_slug: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return serialize(await products.get_product(db, id_or_slug))


@app.post("/api/products", status_code=201)
async def create_product(
    payload: ProductPayload,
    db: AsyncIOMotorDatabase = Depends(get_db),
    _admin: dict = Depends(require_admin),
):
    return serialize(await products.create_product(db, payload))


@app.put("/api/products/{product_id}")
async def update_product(
    product_id: str,
    payload: ProductUpdatePayload,
    db: AsyncIOMotorDatabase = Depends(get_db),
    _admin: dict = Depends(require_admin),
):
    return serialize(await products.update_product(db, product_id, payload))


@app.delete("/api/products/{product_id}")
async def delete_product(
    product_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    _admin: dict = Depends(require_admin),
):
    await products.deactivate_product(db, product_id)
    return {"deleted": True}


# --- Categories ---


@app.get("/api/categories")
async def get_categories(db: AsyncIOMotorDatabase = Depends(get_db)):
    return [serialize(d) for d in await categories.list_categories(db)]


@app.get("/api/categories/{id_or_slug}")
async def get_category(id_or_slug: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return serialize(await categories.get_category(db, id_or_slug))


@app.get("/api/categories/{id_or_slug}/products")
async def get_category_products(id_or_slug: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    docs = await categories.list_category_products(db, id_or_slug)
    return [serialize(d) for d in docs]


@app.post("/api/categories", status_code=201)
async def create_category(
    payload: CategoryPayload,
    db: AsyncIOMotorDatabase = Depends(get_db),
    _admin: dict = Depends(require_admin),
):
    return serialize(await categories.create_category(db, payload))


@app.put("/api/categories/{category_id}")
async def update_category(
    category_id: str,
    payload: CategoryUpdatePayload,
    db: AsyncIOMotorDatabase = Depends(get_db),
    _admin: dict = Depends(require_admin),
):
    return serialize(await categories.update_category(db, category_id, payload))


@app.delete("/api/categories/{category_id}")
async def delete_category(
    category_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    _admin: dict = Depends(require_admin),
):
    await categories.deactivate_category(db, category_id)
    return {"deleted": True}


# --- Cart ---


class CartCountOut(BaseModel):
    count: int


@app.get("/api/cart")
async def get_cart(db: AsyncIOMotorDatabase = Depends(get_db), user: dict = Depends(get_current_user)):
    return serialize(await carts.get_cart(db, str(user["_id"])))


@app.get("/api/cart/count", response_model=CartCountOut)
async def get_cart_count(db: AsyncIOMotorDatabase = Depends(get_db), user: dict = Depends(get_current_user)):
    return CartCountOut(count=await carts.cart_count(db, str(user["_id"])))


@app.post("/api/cart/items", status_code=201)
async def add_cart_item(
    payload: AddToCartPayload,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    cart = await carts.add_to_cart(db, str(user["_id"]), payload.product_id, payload.quantity, settings)
    return serialize(cart)


@app.put("/api/cart/items/{product_id}")
async def update_cart_item(
    product_id: str,
    payload: UpdateCartPayload,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    cart = await carts.update_cart_item(db, str(user["_id"]), product_id, payload.quantity, settings)
    return serialize(cart)


@app.delete("/api/cart/items/{product_id}")
async def remove_cart_item(
    product_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return serialize(await carts.remove_from_cart(db, str(user["_id"]), product_id))


@app.delete("/api/cart")
async def clear_cart(db: AsyncIOMotorDatabase = Depends(get_db), user: dict = Depends(get_current_user)):
    return serialize(await carts.clear_cart(db, str(user["_id"])))


# --- Wishlist ---


class WishlistCheckOut(BaseModel):
    in_wishlist: bool


@app.get("/api/wishlist")
async def get_wishlist(db: AsyncIOMotorDatabase = Depends(get_db), user: dict = Depends(get_current_user)):
    return serialize(await wishlist.get_wishlist(db, str(user["_id"])))


@app.get("/api/wishlist/count", response_model=CartCountOut)
async def get_wishlist_count(db: AsyncIOMotorDatabase = Depends(get_db), user: dict = Depends(get_current_user)):
    return CartCountOut(count=await wishlist.wishlist_count(db, str(user["_id"])))


@app.get("/api/wishlist/check/{product_id}", response_model=WishlistCheckOut)
async def check_wishlist(
    product_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return WishlistCheckOut(in_wishlist=await wishlist.is_in_wishlist(db, str(user["_id"]), product_id))


@app.post("/api/wishlist", status_code=201)
async def add_wishlist_item(
    payload: WishlistPayload,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return serialize(await wishlist.add_to_wishlist(db, str(user["_id"]), payload.product_id))


@app.delete("/api/wishlist/{product_id}")
async def remove_wishlist_item(
    product_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return serialize(await wishlist.remove_from_wishlist(db, str(user["_id"]), product_id))


@app.delete("/api/wishlist")
async def clear_wishlist(db: AsyncIOMotorDatabase = Depends(get_db), user: dict = Depends(get_current_user)):
    return serialize(await wishlist.clear_wishlist(db, str(user["_id"])))


# --- Orders ---


@app.post("/api/orders", response_model=Order, status_code=201)
async def create_order(
    payload: CheckoutPayload,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return await checkout.place_order(
        db, str(user["_id"]), payload.shipping_address, payload.payment_method, settings
    )


@app.get("/api/orders/my-orders", response_model=list[Order])
async def my_orders(db: AsyncIOMotorDatabase = Depends(get_db), user: dict = Depends(get_current_user)):
    return await orders.list_user_orders(db, str(user["_id"]))


@app.get("/api/orders/admin/all", response_model=list[Order])
async def all_orders(
    status: Optional[OrderStatus] = Query(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    _admin: dict = Depends(require_admin),
):
    return await orders.list_all_orders(db, status=status)


@app.get("/api/orders/{order_id}", response_model=Order)
async def get_order(order_id: str, db: AsyncIOMotorDatabase = Depends(get_db), user: dict = Depends(get_current_user)):
    return await orders.get_order(db, order_id, user)


@app.put("/api/orders/{order_id}/pay", response_model=Order)
async def pay_order(
    order_id: str,
    payload: Optional[PayOrderPayload] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    payment_result: Optional[dict[str, Any]] = payload.payment_result if payload else None
    return await orders.mark_order_paid(db, order_id, user, payment_result)


@app.put("/api/orders/{order_id}/deliver", response_model=Order)
async def deliver_order(
    order_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    _admin: dict = Depends(require_admin),
):
    return await orders.mark_order_delivered(db, order_id)


@app.put("/api/orders/{order_id}/status", response_model=Order)
async def set_order_status(
    order_id: str,
    payload: StatusPayload,
    db: AsyncIOMotorDatabase = Depends(get_db),
    _admin: dict = Depends(require_admin),
):
    return await orders.update_order_status(db, order_id, payload.status)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
