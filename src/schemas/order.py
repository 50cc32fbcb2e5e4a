"""Order Pydantic schemas for API request/response models.

Request bodies accept both snake_case and the camelCase keys sent by the
mobile app and admin panel.
"""

from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from src.models.order import OrderStatus

Amount = int | float
StatsPeriod = Literal["today", "week", "month", "all"]


class OrderItemCreate(BaseModel):
    """Schema for one requested item."""

    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(
        validation_alias=AliasChoices("product_id", "productId"),
        description="Product ID",
    )
    quantity: int = Field(default=1, description="Quantity ordered")


class DeliveryAddressCreate(BaseModel):
    """Schema for the delivery address sent at checkout."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str | None = Field(default=None, description="Recipient name")
    phone: str | None = Field(default=None, description="Recipient phone number")
    address: str | None = Field(default=None, description="Street address")
    landmark: str | None = Field(default=None, description="Nearby landmark")
    pincode: str | None = Field(
        default=None,
        validation_alias=AliasChoices("pincode", "pinCode"),
        description="Postal code",
    )
    city: str | None = Field(default=None, description="City")
    state: str | None = Field(default=None, description="State")
    address_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("address_type", "addressType", "type"),
        description="home, office/work or other",
    )


class OrderCreateRequest(BaseModel):
    """Schema for creating an order via POST /orders."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[OrderItemCreate] = Field(default_factory=list, description="Items to order")
    delivery_address: DeliveryAddressCreate | None = Field(
        default=None,
        validation_alias=AliasChoices("delivery_address", "deliveryAddress"),
        description="Delivery address",
    )
    payment_method: str | None = Field(
        default=None,
        validation_alias=AliasChoices("payment_method", "paymentMethod"),
        description="Payment method label (COD, UPI, Card, Wallet, NetBanking)",
    )
    order_notes: str | None = Field(
        default=None,
        validation_alias=AliasChoices("order_notes", "orderNotes"),
        description="Free-text notes",
    )


class OrderStatusUpdateRequest(BaseModel):
    """Schema for PUT /orders/{order_id}/status."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = Field(description="Target order status")
    notes: str = Field(default="", description="Notes; used as the reason when cancelling")
    delivery_boy: str | None = Field(
        default=None,
        validation_alias=AliasChoices("delivery_boy", "deliveryBoy"),
        description="Assigned delivery person",
    )
    delivery_phone: str | None = Field(
        default=None,
        validation_alias=AliasChoices("delivery_phone", "deliveryPhone"),
        description="Delivery person's phone",
    )


class OrderCancelRequest(BaseModel):
    """Schema for PUT /orders/{order_id}/cancel."""

    reason: str = Field(default="", description="Cancellation reason")


class ProductSummary(BaseModel):
    """Product details joined into an order item."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: str | int | None = None
    name: str
    price: Amount | None = None
    images: list[str] | None = Field(default_factory=list)
    brand: str | None = None
    main_category: str | None = None
    subcategory: str | None = None


class UserSummary(BaseModel):
    """Customer details joined into an order."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: str | int | None = None
    name: str | None = None
    phone: str | None = None
    email: str | None = None


class OrderItemResponse(BaseModel):
    """Schema for a single line item in an order."""

    model_config = ConfigDict(from_attributes=True)

    product_id: str = Field(description="Product ID")
    quantity: int = Field(ge=1, description="Quantity ordered")
    price: Amount = Field(description="Unit price at order time")
    total: Amount = Field(description="Line total")
    product: ProductSummary | None = Field(default=None, description="Product details")


class DeliveryAddressResponse(BaseModel):
    """Delivery address stored on the order."""

    model_config = ConfigDict(from_attributes=True)

    name: str
    phone: str
    address: str
    landmark: str = ""
    pincode: str
    city: str
    state: str
    address_type: str


class StatusChangeResponse(BaseModel):
    """One entry of an order's status history."""

    model_config = ConfigDict(from_attributes=True)

    status: OrderStatus
    changed_at: datetime
    notes: str = ""


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Order unique identifier")
    order_number: str = Field(description="Human-readable order number")
    user_id: str = Field(description="Owning customer")
    user: UserSummary | None = Field(default=None, description="Customer details")
    items: list[OrderItemResponse] = Field(description="Order line items")
    delivery_address: DeliveryAddressResponse = Field(description="Delivery address")
    payment_method: str = Field(description="Payment method")
    payment_status: str = Field(description="Payment status")
    order_status: OrderStatus = Field(description="Order status")
    subtotal: Amount = Field(description="Sum of line totals")
    delivery_charge: Amount = Field(description="Delivery charge")
    tax: Amount = Field(description="Tax")
    total_amount: Amount = Field(description="Subtotal plus delivery charge plus tax")
    order_notes: str | None = Field(default=None, description="Order notes")
    delivery_boy: str | None = Field(default=None, description="Assigned delivery person")
    delivery_phone: str | None = Field(default=None, description="Delivery person's phone")
    estimated_delivery: datetime | None = Field(default=None, description="Estimated delivery time")
    delivered_at: datetime | None = Field(default=None, description="Delivery timestamp")
    cancelled_at: datetime | None = Field(default=None, description="Cancellation timestamp")
    cancellation_reason: str | None = Field(default=None, description="Cancellation reason")
    status_history: list[StatusChangeResponse] = Field(default_factory=list, description="Status changes")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")


class OrderListResponse(BaseModel):
    """Schema for a customer's order history."""

    model_config = ConfigDict(from_attributes=True)

    items: list[OrderResponse] = Field(description="List of orders")


class Pagination(BaseModel):
    """Pagination info for admin listings."""

    current: int = Field(description="Current page")
    pages: int = Field(description="Total number of pages")
    total: int = Field(description="Total number of matching orders")


class AdminOrderListResponse(BaseModel):
    """Schema for GET /orders (admin)."""

    orders: list[OrderResponse] = Field(description="Orders on this page")
    pagination: Pagination


class TotalStats(BaseModel):
    """All-time order count and delivered revenue."""

    orders: int
    revenue: Amount


class OrderStatsResponse(BaseModel):
    """Schema for GET /orders/stats."""

    period: StatsPeriod = Field(description="Requested period")
    start: datetime | None = Field(default=None, description="Window start (inclusive)")
    end: datetime | None = Field(default=None, description="Window end (exclusive)")
    orders: int = Field(description="Orders created in the window")
    by_status: dict[str, int] = Field(description="Orders in the window per status")
    revenue: Amount = Field(description="Total of delivered orders in the window")
    total: TotalStats = Field(description="All-time figures")


class DashboardStats(BaseModel):
    """Headline numbers for the admin dashboard."""

    total_orders: int
    pending_orders: int
    today_orders: int
    total_revenue: Amount


class DashboardResponse(BaseModel):
    """Schema for GET /orders/dashboard."""

    orders: list[OrderResponse]
    orders_by_status: dict[str, list[OrderResponse]]
    stats: DashboardStats
