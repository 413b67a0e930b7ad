"""
Database Schemas

MongoDB documents and request payloads, as Pydantic models.
Each document model maps to one collection:
- Product -> "product"
- Cart -> "cart"
- Order -> "order"
- Category -> "category"
- Wishlist -> "wishlist"
"""

from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Any, Optional, List

from pydantic import BaseModel, Field


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class PaymentMethod(str, Enum):
    PAYPAL = "paypal"
    STRIPE = "stripe"
    CASH_ON_DELIVERY = "cash_on_delivery"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Documents


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    name: str = Field(..., min_length=2, max_length=100)
    description: str = Field("", description="Product description")
    price: float = Field(..., ge=0, description="Unit price")
    original_price: Optional[float] = Field(None, ge=0)
    stock: int = Field(0, ge=0, description="Purchasable units")
    category: Optional[str] = None
    images: List[str] = Field(default_factory=list, description="Image URLs, first is primary")
    featured: bool = False
    is_active: bool = True
    tags: List[str] = Field(default_factory=list)


class Category(BaseModel):
    """
    Categories collection schema
    Collection name: "category"
    """
    name: str = Field(..., min_length=2, max_length=50)
    description: str = Field("", max_length=200)
    image: str = ""
    is_active: bool = True


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price when added")


class ShippingAddress(BaseModel):
    full_name: str
    address: str
    city: str
    postal_code: str
    country: str


class OrderItem(BaseModel):
    product_id: str
    name: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)
    image: str = ""


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    id: str
    user_id: str
    order_items: List[OrderItem]
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    items_price: float = Field(..., ge=0)
    tax_price: float = Field(..., ge=0)
    shipping_price: float = Field(..., ge=0)
    total_price: float = Field(..., ge=0)
    status: OrderStatus = OrderStatus.PENDING
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    payment_result: Optional[dict[str, Any]] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Request payloads


class ProductPayload(Product):
    pass


class CategoryPayload(Category):
    pass


class CategoryUpdatePayload(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    image: Optional[str] = None
    is_active: Optional[bool] = None


class ProductUpdatePayload(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None
    images: Optional[List[str]] = None
    featured: Optional[bool] = None
    is_active: Optional[bool] = None
    tags: Optional[List[str]] = None


class AddToCartPayload(BaseModel):
    product_id: str
    quantity: int = 1


class WishlistPayload(BaseModel):
    product_id: str


class UpdateCartPayload(BaseModel):
    quantity: int


class CheckoutPayload(BaseModel):
    # Left loose so the checkout pipeline reports its own address/payment errors
    shipping_address: dict[str, Any] = Field(default_factory=dict)
    payment_method: str = ""


class PayOrderPayload(BaseModel):
    payment_result: Optional[dict[str, Any]] = None


class StatusPayload(BaseModel):
    status: OrderStatus
