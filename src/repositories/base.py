"""Storage interfaces used by the order service.

Products and users belong to the catalog and account services; the order
flow only reads them and adjusts product stock. Orders are owned here.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from src.models.order import Order, OrderCreate, OrderSummary, OrderUpdate
from src.models.product import Product, User


class OrderNumberConflictError(Exception):
    """Raised when an insert collides with an existing order number."""

    def __init__(self, order_number: str) -> None:
        self.order_number = order_number
        super().__init__(f"Order number already exists: {order_number}")


class ProductRepository(ABC):
    """Read access to products plus stock adjustment."""

    @abstractmethod
    async def find_by_id(self, product_id: str) -> Product | None:
        """Get a product by ID, or None if it does not exist."""

    @abstractmethod
    async def find_many(self, product_ids: list[str]) -> dict[str, Product]:
        """Get products keyed by ID. Missing IDs are absent from the result."""

    @abstractmethod
    async def adjust_stock(self, product_id: str, delta: int) -> Product:
        """Atomically add `delta` to a product's stock.

        A negative delta only applies when enough stock is available.

        Raises:
            NotFoundError: If the product does not exist.
            InsufficientStockError: If the result would be negative.
        """


class UserRepository(ABC):
    """Read access to customer accounts."""

    @abstractmethod
    async def find_user(self, user_id: str) -> User | None:
        """Get a user by ID, or None if it does not exist."""

    @abstractmethod
    async def find_users(self, user_ids: list[str]) -> dict[str, User]:
        """Get users keyed by ID. Missing IDs are absent from the result."""


class OrderStore(ABC):
    """Order persistence.

    Order numbers are unique. The two stock-touching operations are single
    atomic units: either every write happens or none does.
    """

    @abstractmethod
    async def reserve_stock_and_create_order(self, data: OrderCreate) -> Order:
        """Decrement stock for every item and insert the order, atomically.

        Raises:
            NotFoundError: If an item's product does not exist.
            InsufficientStockError: If any product lacks stock.
            OrderNumberConflictError: If the order number is taken.
        """

    @abstractmethod
    async def cancel_order_and_restore_stock(
        self, order_id: str, update: OrderUpdate, expected_status: str
    ) -> Order:
        """Apply a cancellation update and credit back item stock, atomically.

        The update only applies while the order is still in `expected_status`.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidStateError: If the status changed in the meantime.
        """

    @abstractmethod
    async def update_order(self, order_id: str, update: OrderUpdate, expected_status: str) -> Order:
        """Apply a status update while the order is still in `expected_status`.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidStateError: If the status changed in the meantime.
        """

    @abstractmethod
    async def get_order(self, order_id: str) -> Order | None:
        """Get an order by ID, or None if it does not exist."""

    @abstractmethod
    async def list_orders(
        self,
        status: str | None = None,
        user_id: str | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Order]:
        """List orders newest first, optionally filtered and paginated."""

    @abstractmethod
    async def count_orders(self, status: str | None = None, user_id: str | None = None) -> int:
        """Count orders matching the filters."""

    @abstractmethod
    async def summarize_orders(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> OrderSummary:
        """Aggregate orders with `start <= created_at < end`. None leaves a side open.

        Counts and revenue cover every matching order, however many there are.
        """

    @abstractmethod
    async def check_connection(self) -> dict[str, Any]:
        """Check store health. Returns a dict with 'healthy' and optional 'error'."""
