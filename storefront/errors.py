"""Custom exceptions for the storefront backend."""

from __future__ import annotations


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    pass


class InvalidIdError(StorefrontError):
    """Raised when a path or body identifier is not a valid ObjectId."""

    def __init__(self, kind: str, value: str):
        self.kind = kind
        self.value = value
        super().__init__(f"Invalid {kind} id: {value}")


# --- Checkout ---


class EmptyCartError(StorefrontError):
    """Raised when checking out a missing or empty cart."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("Cart is empty")


class CheckoutValidationError(StorefrontError):
    """Raised when a cart line fails validation before anything is written."""

    def __init__(self, product_id: str, message: str):
        self.product_id = product_id
        super().__init__(message)


class ProductUnavailableError(CheckoutValidationError):
    """Raised when a cart line references a missing or deactivated product."""

    def __init__(self, product_id: str, name: str | None = None):
        self.name = name
        super().__init__(product_id, f"Product {name or product_id} is no longer available")


class InsufficientStockError(CheckoutValidationError):
    """Raised when the requested quantity exceeds the available stock."""

    def __init__(self, product_id: str, name: str, requested: int, available: int):
        self.name = name
        self.requested = requested
        self.available = available
        super().__init__(product_id, f"Not enough stock for {name}. Available: {available}")


class StockConflictError(StorefrontError):
    """Raised when the conditional stock decrement loses a race."""

    def __init__(self, product_id: str, requested: int):
        self.product_id = product_id
        self.requested = requested
        super().__init__(f"Stock for product {product_id} changed during checkout; could not reserve {requested}")


class StockCompensationError(StorefrontError):
    """Raised when reserved stock could not be put back after a failed checkout."""

    def __init__(self, product_ids: list[str]):
        self.product_ids = product_ids
        super().__init__(f"Stock needs manual reconciliation for products: {', '.join(product_ids)}")


class InvalidShippingAddressError(StorefrontError):
    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Invalid shipping address: missing {', '.join(missing)}")


class InvalidPaymentMethodError(StorefrontError):
    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid payment method: {value}")


# --- Products & carts ---


class ProductNotFoundError(StorefrontError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class CartNotFoundError(StorefrontError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("Cart not found")


class CartItemNotFoundError(StorefrontError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Item not found in cart: {product_id}")


class InvalidQuantityError(StorefrontError):
    def __init__(self, quantity: int, maximum: int):
        self.quantity = quantity
        self.maximum = maximum
        super().__init__(f"Quantity must be between 1 and {maximum}, got {quantity}")


class WishlistNotFoundError(StorefrontError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("Wishlist not found")


class WishlistItemNotFoundError(StorefrontError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not in wishlist: {product_id}")


class AlreadyInWishlistError(StorefrontError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("Product already in wishlist")


# --- Categories ---


class CategoryNotFoundError(StorefrontError):
    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Category not found: {category_id}")


class DuplicateCategoryError(StorefrontError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Category already exists: {name}")


class CategoryInUseError(StorefrontError):
    """Raised when deleting a category that active products still reference."""

    def __init__(self, category_id: str, product_count: int):
        self.category_id = category_id
        self.product_count = product_count
        super().__init__(
            f"Cannot delete category. It has {product_count} product(s). Reassign or delete them first."
        )


# --- Orders ---


class OrderNotFoundError(StorefrontError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class OrderAlreadyPaidError(StorefrontError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Order is already paid")


class OrderAlreadyDeliveredError(StorefrontError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Order is already delivered")


class InvalidStatusTransitionError(StorefrontError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from {current} to {target}")


# --- Access ---


class NotAuthenticatedError(StorefrontError):
    def __init__(self) -> None:
        super().__init__("Not authorized, no valid token")


class NotAuthorizedError(StorefrontError):
    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(message)
