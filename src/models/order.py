"""Order model type definitions for database operations."""

from datetime import datetime
from enum import Enum
from typing import TypedDict


class OrderStatus(str, Enum):
    """Fulfilment stages an order moves through."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """Payment method values matching the database enum."""

    COD = "cod"
    ONLINE = "online"
    WALLET = "wallet"


class PaymentStatus(str, Enum):
    """Payment status values matching the database enum."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class AddressType(str, Enum):
    """Delivery address type values."""

    HOME = "home"
    OFFICE = "office"
    OTHER = "other"


class OrderLineItem(TypedDict):
    """Structure for a single line item in an order.

    Stored as part of the items JSONB array. `price` is the unit price
    snapshotted at order time.
    """

    product_id: str
    quantity: int
    price: int | float
    total: int | float


class DeliveryAddress(TypedDict):
    """Delivery address snapshot stored on the order."""

    name: str
    phone: str
    address: str
    landmark: str
    pincode: str
    city: str
    state: str
    address_type: str


class StatusChange(TypedDict):
    """One entry of an order's status history."""

    status: str
    changed_at: str
    notes: str


class Order(TypedDict, total=False):
    """Order table row representation.

    Maps directly to the orders table schema.
    """

    id: str
    order_number: str
    user_id: str
    items: list[OrderLineItem]
    delivery_address: DeliveryAddress
    payment_method: str
    payment_status: str
    order_status: str
    subtotal: int | float
    delivery_charge: int | float
    tax: int | float
    total_amount: int | float
    order_notes: str | None
    delivery_boy: str | None
    delivery_phone: str | None
    estimated_delivery: str | None
    delivered_at: str | None
    cancelled_at: str | None
    cancellation_reason: str | None
    status_history: list[StatusChange]
    created_at: str
    updated_at: str


class OrderCreate(TypedDict, total=False):
    """Data required to insert a new order.

    Used by the stores when reserving stock and creating the order.
    """

    order_number: str
    user_id: str
    items: list[OrderLineItem]
    delivery_address: DeliveryAddress
    payment_method: str
    payment_status: str
    order_status: str
    subtotal: int | float
    delivery_charge: int | float
    tax: int | float
    total_amount: int | float
    order_notes: str | None
    status_history: list[StatusChange]


class OrderUpdate(TypedDict, total=False):
    """Data that can be updated on an order by a status transition."""

    order_status: str
    delivery_boy: str
    delivery_phone: str
    estimated_delivery: str
    delivered_at: str
    cancelled_at: str
    cancellation_reason: str
    status_history: list[StatusChange]
    updated_at: str


class OrderTotals(TypedDict):
    """Monetary fields derived from an order's line items."""

    subtotal: int | float
    delivery_charge: int | float
    tax: int
    total_amount: int | float


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 timestamp stored on an order row."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class OrderSummary(TypedDict):
    """Order count, per-status counts and delivered revenue over a set of orders."""

    orders: int
    by_status: dict[str, int]
    revenue: int | float


def empty_status_counts() -> dict[str, int]:
    return {status.value: 0 for status in OrderStatus}


def aggregate_order_stats(orders: list[Order]) -> OrderSummary:
    """Count orders per status and sum delivered revenue.

    Pure function of its input; every status appears in `by_status`.
    """
    by_status = empty_status_counts()
    revenue: int | float = 0
    for order in orders:
        by_status[order["order_status"]] = by_status.get(order["order_status"], 0) + 1
        if order["order_status"] == OrderStatus.DELIVERED.value:
            revenue += order["total_amount"]

    return {"orders": len(orders), "by_status": by_status, "revenue": revenue}
