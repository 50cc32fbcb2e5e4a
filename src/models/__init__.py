"""Database model type definitions."""

from src.models.order import (
    DeliveryAddress,
    Order,
    OrderCreate,
    OrderLineItem,
    OrderStatus,
    OrderTotals,
    OrderUpdate,
    PaymentMethod,
    PaymentStatus,
)
from src.models.product import Product, User

__all__ = [
    "DeliveryAddress",
    "Order",
    "OrderCreate",
    "OrderLineItem",
    "OrderStatus",
    "OrderTotals",
    "OrderUpdate",
    "PaymentMethod",
    "PaymentStatus",
    "Product",
    "User",
]
