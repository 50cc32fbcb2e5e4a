"""Order lifecycle business logic: creation, status changes, cancellation and reporting."""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any

from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt

from src.api.middleware.error_handler import (
    AuthorizationError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from src.core.config import Settings, get_settings
from src.core.store import get_store
from src.models.order import (
    AddressType,
    DeliveryAddress,
    Order,
    OrderCreate,
    OrderLineItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    StatusChange,
    aggregate_order_stats,
    parse_timestamp,
)
from src.models.product import DELETED_PRODUCT_PLACEHOLDER, UNKNOWN_USER_PLACEHOLDER
from src.repositories.base import OrderNumberConflictError, OrderStore, ProductRepository, UserRepository
from src.services.order_pricing import calculate_totals, generate_order_number, line_total
from src.services.order_status import build_transition_update, ensure_transition, parse_status

logger = logging.getLogger(__name__)

REQUIRED_ADDRESS_FIELDS = ("name", "phone", "address")

# Client-facing labels accepted for payment methods and address types
PAYMENT_METHOD_ALIASES: dict[str, PaymentMethod] = {
    "upi": PaymentMethod.ONLINE,
    "card": PaymentMethod.ONLINE,
    "netbanking": PaymentMethod.ONLINE,
    "online": PaymentMethod.ONLINE,
    "wallet": PaymentMethod.WALLET,
    "cod": PaymentMethod.COD,
}

ADDRESS_TYPE_ALIASES: dict[str, AddressType] = {
    "home": AddressType.HOME,
    "work": AddressType.OFFICE,
    "office": AddressType.OFFICE,
    "other": AddressType.OTHER,
}

STATS_PERIODS = ("today", "week", "month", "all")


def normalize_payment_method(value: str | None) -> PaymentMethod:
    """Map a client payment label to a stored method. Unknown labels mean cash on delivery."""
    if not value:
        return PaymentMethod.COD
    return PAYMENT_METHOD_ALIASES.get(value.strip().lower(), PaymentMethod.COD)


def normalize_delivery_address(address: dict[str, Any] | None) -> DeliveryAddress:
    """Validate and complete a delivery address.

    Name, phone and address are required. Other fields fall back to
    placeholders so the stored snapshot always has every key.

    Raises:
        ValidationError: If the address or a required field is missing.
    """
    if not address:
        raise ValidationError(
            "Delivery address is required",
            details=[{"loc": ["delivery_address"], "msg": "field required", "type": "missing"}],
        )

    missing = [name for name in REQUIRED_ADDRESS_FIELDS if not str(address.get(name) or "").strip()]
    if missing:
        raise ValidationError(
            "Complete delivery address is required (name, phone, address)",
            details=[
                {"loc": ["delivery_address", name], "msg": "field required", "type": "missing"}
                for name in missing
            ],
        )

    raw_type = str(address.get("address_type") or address.get("type") or "").strip().lower()
    return {
        "name": str(address["name"]).strip(),
        "phone": "".join(ch for ch in str(address["phone"]) if ch.isdigit() or ch == "+"),
        "address": str(address["address"]).strip(),
        "landmark": address.get("landmark") or "",
        "pincode": str(address.get("pincode") or address.get("pinCode") or "000000"),
        "city": address.get("city") or "Unknown",
        "state": address.get("state") or "Unknown",
        "address_type": ADDRESS_TYPE_ALIASES.get(raw_type, AddressType.HOME).value,
    }


def _validate_items(items: list[dict[str, Any]] | None) -> list[tuple[str, int]]:
    if not items:
        raise ValidationError(
            "Order must contain at least one item",
            details=[{"loc": ["items"], "msg": "at least one item is required", "type": "too_short"}],
        )

    requested: list[tuple[str, int]] = []
    for index, item in enumerate(items):
        product_id = item.get("product_id")
        if not product_id:
            raise ValidationError(
                "Product ID is required for all items",
                details=[{"loc": ["items", str(index), "product_id"], "msg": "field required", "type": "missing"}],
            )
        quantity = item.get("quantity")
        quantity = 1 if quantity is None else quantity
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError(
                f"Invalid quantity for product {product_id}",
                details=[
                    {"loc": ["items", str(index), "quantity"], "msg": "must be an integer >= 1", "type": "value_error"}
                ],
            )
        requested.append((str(product_id), quantity))
    return requested


def stats_window(period: str, now: datetime | None = None) -> tuple[datetime | None, datetime | None]:
    """Resolve a stats period name to a half-open ``[start, end)`` UTC window.

    `today` is the current UTC day, `week` the last seven days including
    today, `month` the current calendar month and `all` is unbounded.
    """
    if period not in STATS_PERIODS:
        raise ValidationError(
            f"Invalid period. Must be one of: {', '.join(STATS_PERIODS)}",
            details=[{"loc": ["period"], "msg": f"unknown period '{period}'", "type": "enum"}],
        )

    now = now or datetime.now(timezone.utc)
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    end_of_day = start_of_day + timedelta(days=1)

    if period == "today":
        return start_of_day, end_of_day
    if period == "week":
        return start_of_day - timedelta(days=6), end_of_day
    if period == "month":
        return start_of_day.replace(day=1), end_of_day
    return None, None


class OrderService:
    """Service for the order lifecycle and stock reservation."""

    def __init__(
        self,
        products: ProductRepository | None = None,
        users: UserRepository | None = None,
        orders: OrderStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize order service.

        Args:
            products: Optional product repository for testing.
            users: Optional user repository for testing.
            orders: Optional order store for testing.
            settings: Optional settings for testing.
        """
        self._products = products
        self._users = users
        self._orders = orders
        self._settings = settings

    @property
    def products(self) -> ProductRepository:
        """Get product repository."""
        if self._products is None:
            self._products = get_store()
        return self._products

    @property
    def users(self) -> UserRepository:
        """Get user repository."""
        if self._users is None:
            self._users = get_store()
        return self._users

    @property
    def orders(self) -> OrderStore:
        """Get order store."""
        if self._orders is None:
            self._orders = get_store()
        return self._orders

    @property
    def settings(self) -> Settings:
        """Get application settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    async def create_order(
        self,
        user_id: str,
        items: list[dict[str, Any]] | None,
        delivery_address: dict[str, Any] | None,
        payment_method: str | None = None,
        order_notes: str | None = None,
    ) -> dict[str, Any]:
        """Create an order, reserving stock for every item.

        Prices are taken from the catalog now and frozen into the order.

        Args:
            user_id: Owning customer.
            items: Sequence of ``{product_id, quantity}``.
            delivery_address: Address with at least name, phone and address.
            payment_method: Client payment label, defaults to cash on delivery.
            order_notes: Optional free-text notes.

        Returns:
            dict: The created order with product and user details joined in.

        Raises:
            ValidationError: If items or the address are missing or malformed.
            NotFoundError: If a product does not exist.
            InsufficientStockError: If any product lacks stock.
            InternalError: If no unique order number could be allocated.
        """
        requested = _validate_items(items)
        address = normalize_delivery_address(delivery_address)
        method = normalize_payment_method(payment_method)

        catalog = await self.products.find_many([product_id for product_id, _ in requested])
        line_items: list[OrderLineItem] = []
        for product_id, quantity in requested:
            product = catalog.get(product_id)
            if product is None:
                raise NotFoundError(f"Product with ID {product_id} not found")
            line_items.append(
                {
                    "product_id": product_id,
                    "quantity": quantity,
                    "price": product["price"],
                    "total": line_total(product["price"], quantity),
                }
            )

        totals = calculate_totals(
            line_items,
            free_delivery_threshold=self.settings.free_delivery_threshold,
            delivery_charge=self.settings.delivery_charge,
            tax_rate=self.settings.tax_rate,
        )

        initial: StatusChange = {
            "status": OrderStatus.PENDING.value,
            "changed_at": datetime.now(timezone.utc).isoformat(),
            "notes": "Order placed",
        }
        order_data: OrderCreate = {
            "user_id": user_id,
            "items": line_items,
            "delivery_address": address,
            "payment_method": method.value,
            "payment_status": PaymentStatus.PENDING.value,
            "order_status": OrderStatus.PENDING.value,
            "order_notes": order_notes or f"Payment via {payment_method or 'COD'}",
            "status_history": [initial],
            **totals,
        }

        order = await self.reserve_stock_and_create_order(order_data)
        logger.info(
            "Order %s created for user %s: subtotal %s, delivery %s, tax %s, total %s",
            order["order_number"],
            user_id,
            order["subtotal"],
            order["delivery_charge"],
            order["tax"],
            order["total_amount"],
        )
        return (await self.populate_orders([order]))[0]

    async def reserve_stock_and_create_order(self, order_data: OrderCreate) -> Order:
        """Debit stock and persist the order as one unit, retrying order number clashes.

        A fresh order number is generated for each attempt.

        Args:
            order_data: Order fields without an order number.

        Returns:
            Order: The persisted order.

        Raises:
            InternalError: If every attempt collided with an existing order number.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(OrderNumberConflictError),
            stop=stop_after_attempt(self.settings.order_number_max_attempts),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    data: OrderCreate = {
                        **order_data,
                        "order_number": generate_order_number(self.settings.order_number_prefix),
                    }
                    return await self.orders.reserve_stock_and_create_order(data)
        except OrderNumberConflictError as e:
            logger.error(
                "Could not allocate a unique order number after %d attempts (last: %s)",
                self.settings.order_number_max_attempts,
                e.order_number,
            )
            raise InternalError("Failed to create order. Please try again.") from e

        raise InternalError("Failed to create order. Please try again.")

    async def update_status(
        self,
        order_id: str,
        status: str,
        notes: str = "",
        delivery_boy: str | None = None,
        delivery_phone: str | None = None,
    ) -> dict[str, Any]:
        """Move an order to a new status.

        Re-applying the current status changes nothing. Moving to
        `cancelled` restores stock the same way cancel_order does.

        Raises:
            ValidationError: If `status` is not a known status.
            NotFoundError: If the order does not exist.
            InvalidStateError: If the transition is not allowed.
        """
        target = parse_status(status)
        order = await self._require_order(order_id)
        current = OrderStatus(order["order_status"])

        if target is current:
            logger.info("Order %s already %s; nothing to update", order["order_number"], current.value)
            return (await self.populate_orders([order]))[0]

        ensure_transition(current, target)

        if target is OrderStatus.CANCELLED:
            updated = await self._cancel(order, notes)
        else:
            update = build_transition_update(
                order,
                target,
                notes=notes,
                delivery_boy=delivery_boy,
                delivery_phone=delivery_phone,
                estimated_delivery_minutes=self.settings.estimated_delivery_minutes,
            )
            updated = await self.orders.update_order(order_id, update, expected_status=current.value)

        logger.info("Order %s status updated: %s -> %s", order["order_number"], current.value, target.value)
        return (await self.populate_orders([updated]))[0]

    async def cancel_order(
        self,
        order_id: str,
        reason: str = "",
        user_id: str | None = None,
        is_admin: bool = False,
    ) -> dict[str, Any]:
        """Cancel an order and restore the stock it reserved.

        Args:
            order_id: Order to cancel.
            reason: Cancellation reason stored on the order.
            user_id: Acting customer; must own the order unless `is_admin`.
            is_admin: Whether the caller may cancel any order.

        Raises:
            NotFoundError: If the order does not exist.
            AuthorizationError: If the caller does not own the order.
            InvalidStateError: If the order is delivered or already cancelled.
        """
        order = await self._require_order(order_id)
        if not is_admin and user_id is not None and str(order["user_id"]) != str(user_id):
            raise AuthorizationError("Access denied. This order does not belong to you.")

        current = OrderStatus(order["order_status"])
        if current in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
            raise InvalidStateError(f"Cannot cancel this order: it is already {current.value}")

        updated = await self._cancel(order, reason)
        logger.info("Order %s cancelled (was %s)", order["order_number"], current.value)
        return (await self.populate_orders([updated]))[0]

    async def _cancel(self, order: Order, reason: str) -> Order:
        ensure_transition(order["order_status"], OrderStatus.CANCELLED)
        update = build_transition_update(order, OrderStatus.CANCELLED, notes=reason or "")
        return await self.orders.cancel_order_and_restore_stock(
            order["id"], update, expected_status=order["order_status"]
        )

    async def get_order(self, order_id: str, user_id: str | None = None, is_admin: bool = False) -> dict[str, Any]:
        """Get a populated order visible to the caller.

        Raises:
            NotFoundError: If the order does not exist.
            AuthorizationError: If a non-admin caller does not own it.
        """
        order = await self._require_order(order_id)
        if not is_admin and str(order["user_id"]) != str(user_id):
            raise AuthorizationError("Access denied. This order does not belong to you.")
        return (await self.populate_orders([order]))[0]

    async def list_user_orders(self, user_id: str, status: str | None = None) -> list[dict[str, Any]]:
        """List a customer's orders newest first. `all` or empty status means no filter."""
        status_filter = None if not status or status == "all" else parse_status(status).value
        orders = await self.orders.list_orders(status=status_filter, user_id=user_id)
        return await self.populate_orders(orders, include_user=False)

    async def list_orders(
        self, status: str | None = None, page: int = 1, limit: int | None = None
    ) -> dict[str, Any]:
        """List all orders for admins, newest first, with pagination info."""
        status_filter = parse_status(status).value if status else None
        page = max(page, 1)
        limit = min(max(limit or self.settings.default_page_size, 1), self.settings.max_page_size)

        total = await self.orders.count_orders(status=status_filter)
        orders = await self.orders.list_orders(status=status_filter, offset=(page - 1) * limit, limit=limit)

        return {
            "orders": await self.populate_orders(orders),
            "pagination": {
                "current": page,
                "pages": math.ceil(total / limit),
                "total": total,
            },
        }

    async def get_dashboard(self, now: datetime | None = None) -> dict[str, Any]:
        """Latest orders grouped by status with headline numbers."""
        now = now or datetime.now(timezone.utc)
        orders = await self.orders.list_orders(limit=self.settings.dashboard_order_limit)
        populated = await self.populate_orders(orders)

        grouped: dict[str, list[dict[str, Any]]] = {status.value: [] for status in OrderStatus}
        for order in populated:
            grouped.setdefault(order["order_status"], []).append(order)

        start, end = stats_window("today", now)
        today = [
            order for order in orders
            if start <= parse_timestamp(order["created_at"]) < end
        ]
        summary = aggregate_order_stats(orders)

        return {
            "orders": populated,
            "orders_by_status": grouped,
            "stats": {
                "total_orders": summary["orders"],
                "pending_orders": summary["by_status"][OrderStatus.PENDING.value],
                "today_orders": len(today),
                "total_revenue": summary["revenue"],
            },
        }

    async def get_order_stats(self, period: str = "today", now: datetime | None = None) -> dict[str, Any]:
        """Aggregate order counts and delivered revenue for a period and all time.

        Raises:
            ValidationError: If the period is unknown.
        """
        start, end = stats_window(period, now)
        window_stats = await self.orders.summarize_orders(start, end)

        if start is None and end is None:
            all_stats = window_stats
        else:
            all_stats = await self.orders.summarize_orders()

        return {
            "period": period,
            "start": start,
            "end": end,
            **window_stats,
            "total": {"orders": all_stats["orders"], "revenue": all_stats["revenue"]},
        }

    async def populate_orders(self, orders: list[Order], include_user: bool = True) -> list[dict[str, Any]]:
        """Join product details into items and the customer into each order.

        Products or users that no longer exist are replaced by placeholders.
        """
        if not orders:
            return []

        product_ids = sorted({item["product_id"] for order in orders for item in order["items"]})
        catalog = await self.products.find_many(product_ids)
        accounts = {}
        if include_user:
            accounts = await self.users.find_users(sorted({str(order["user_id"]) for order in orders}))

        populated = []
        for order in orders:
            items = []
            for item in order["items"]:
                product = catalog.get(item["product_id"])
                if product is None:
                    product = {**DELETED_PRODUCT_PLACEHOLDER, "id": item["product_id"], "price": item["price"]}
                else:
                    product = {key: value for key, value in product.items() if key != "stock"}
                items.append({**item, "product": product})

            result: dict[str, Any] = {**order, "items": items}
            if include_user:
                user_id = str(order["user_id"])
                result["user"] = accounts.get(user_id) or {**UNKNOWN_USER_PLACEHOLDER, "id": user_id}
            populated.append(result)
        return populated

    async def _require_order(self, order_id: str) -> Order:
        order = await self.orders.get_order(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order
