"""Product and user model type definitions for database operations.

Both tables are owned by the catalog and account services; the order flow
reads them and only ever writes product stock.
"""

from typing import TypedDict


class Product(TypedDict, total=False):
    """Product table row representation."""

    id: str
    name: str
    price: int | float
    stock: int
    images: list[str]
    brand: str | None
    main_category: str | None
    subcategory: str | None


class User(TypedDict, total=False):
    """User table row representation (display fields only)."""

    id: str
    name: str
    phone: str | None
    email: str | None


# Columns joined into an order for display
PRODUCT_DISPLAY_FIELDS = ("id", "name", "price", "images", "brand", "main_category", "subcategory")
USER_DISPLAY_FIELDS = ("id", "name", "phone", "email")

DELETED_PRODUCT_PLACEHOLDER: Product = {
    "name": "Product Deleted",
    "images": [],
    "brand": "N/A",
}

UNKNOWN_USER_PLACEHOLDER: User = {
    "name": "Unknown User",
    "phone": "N/A",
    "email": "N/A",
}
