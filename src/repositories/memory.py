"""In-memory store for local development and tests.

Products, users and orders live in process memory behind one lock, so each
atomic unit of the OrderStore interface runs without interleaving.
"""

import copy
import logging
from collections import Counter
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Iterable
from uuid import uuid4

from src.api.middleware.error_handler import InsufficientStockError, InvalidStateError, NotFoundError
from src.models.order import (
    Order,
    OrderCreate,
    OrderSummary,
    OrderUpdate,
    aggregate_order_stats,
    parse_timestamp,
)
from src.models.product import Product, User
from src.repositories.base import OrderNumberConflictError, OrderStore, ProductRepository, UserRepository

logger = logging.getLogger(__name__)


class InMemoryStore(ProductRepository, UserRepository, OrderStore):
    """Thread-safe in-memory implementation of all three store interfaces."""

    def __init__(
        self,
        products: Iterable[Product] = (),
        users: Iterable[User] = (),
    ) -> None:
        self._products: dict[str, Product] = {}
        self._users: dict[str, User] = {}
        self._orders: dict[str, Order] = {}
        self._order_numbers: set[str] = set()
        self._lock = Lock()

        for product in products:
            self.add_product(product)
        for user in users:
            self.add_user(user)

    # Seeding

    def add_product(self, product: Product) -> Product:
        """Insert or replace a product. Returns the stored copy."""
        if product.get("stock", 0) < 0:
            raise ValueError("Product stock cannot be negative")
        with self._lock:
            stored = copy.deepcopy(product)
            stored.setdefault("id", str(uuid4()))
            self._products[stored["id"]] = stored
            return copy.deepcopy(stored)

    def add_user(self, user: User) -> User:
        """Insert or replace a user. Returns the stored copy."""
        with self._lock:
            stored = copy.deepcopy(user)
            stored.setdefault("id", str(uuid4()))
            self._users[stored["id"]] = stored
            return copy.deepcopy(stored)

    # ProductRepository / UserRepository

    async def find_by_id(self, product_id: str) -> Product | None:
        with self._lock:
            product = self._products.get(product_id)
            return copy.deepcopy(product) if product else None

    async def find_many(self, product_ids: list[str]) -> dict[str, Product]:
        with self._lock:
            return {pid: copy.deepcopy(self._products[pid]) for pid in product_ids if pid in self._products}

    async def find_user(self, user_id: str) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            return copy.deepcopy(user) if user else None

    async def find_users(self, user_ids: list[str]) -> dict[str, User]:
        with self._lock:
            return {uid: copy.deepcopy(self._users[uid]) for uid in user_ids if uid in self._users}

    async def adjust_stock(self, product_id: str, delta: int) -> Product:
        with self._lock:
            product = self._products.get(product_id)
            if product is None:
                raise NotFoundError(f"Product with ID {product_id} not found")
            if product["stock"] + delta < 0:
                raise InsufficientStockError(product_id, -delta, product["stock"], product.get("name"))
            product["stock"] += delta
            return copy.deepcopy(product)

    # OrderStore

    async def reserve_stock_and_create_order(self, data: OrderCreate) -> Order:
        requested = Counter()
        for item in data["items"]:
            requested[item["product_id"]] += item["quantity"]

        with self._lock:
            # Validate everything before the first write
            for product_id, quantity in requested.items():
                product = self._products.get(product_id)
                if product is None:
                    raise NotFoundError(f"Product with ID {product_id} not found")
                if product["stock"] < quantity:
                    raise InsufficientStockError(product_id, quantity, product["stock"], product.get("name"))

            if data["order_number"] in self._order_numbers:
                raise OrderNumberConflictError(data["order_number"])

            for product_id, quantity in requested.items():
                self._products[product_id]["stock"] -= quantity

            now = datetime.now(timezone.utc).isoformat()
            order: Order = {
                **copy.deepcopy(data),
                "id": str(uuid4()),
                "created_at": now,
                "updated_at": now,
            }
            self._orders[order["id"]] = order
            self._order_numbers.add(order["order_number"])
            return copy.deepcopy(order)

    async def cancel_order_and_restore_stock(
        self, order_id: str, update: OrderUpdate, expected_status: str
    ) -> Order:
        with self._lock:
            order = self._get_for_update(order_id, expected_status)
            for item in order["items"]:
                product = self._products.get(item["product_id"])
                if product is None:
                    # Product removed from the catalog since ordering; nothing to credit
                    logger.warning("Skipping stock restore for missing product %s", item["product_id"])
                    continue
                product["stock"] += item["quantity"]
            order.update(copy.deepcopy(update))
            return copy.deepcopy(order)

    async def update_order(self, order_id: str, update: OrderUpdate, expected_status: str) -> Order:
        with self._lock:
            order = self._get_for_update(order_id, expected_status)
            order.update(copy.deepcopy(update))
            return copy.deepcopy(order)

    async def get_order(self, order_id: str) -> Order | None:
        with self._lock:
            order = self._orders.get(order_id)
            return copy.deepcopy(order) if order else None

    async def list_orders(
        self,
        status: str | None = None,
        user_id: str | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Order]:
        end = None if limit is None else offset + limit
        with self._lock:
            return copy.deepcopy(self._filter(status, user_id)[offset:end])

    async def count_orders(self, status: str | None = None, user_id: str | None = None) -> int:
        with self._lock:
            return len(self._filter(status, user_id))

    async def summarize_orders(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> OrderSummary:
        with self._lock:
            matches = []
            for order in self._orders.values():
                created = parse_timestamp(order["created_at"])
                if start is not None and created < start:
                    continue
                if end is not None and created >= end:
                    continue
                matches.append(order)
            return aggregate_order_stats(matches)

    async def check_connection(self) -> dict[str, Any]:
        return {"healthy": True}

    def _filter(self, status: str | None, user_id: str | None) -> list[Order]:
        """Matching orders newest first. Caller must hold the lock."""
        orders = [
            order
            for order in self._orders.values()
            if (status is None or order["order_status"] == status)
            and (user_id is None or order["user_id"] == user_id)
        ]
        return sorted(orders, key=lambda o: o["created_at"], reverse=True)

    def _get_for_update(self, order_id: str, expected_status: str) -> Order:
        """Return the live order row if still in `expected_status`. Caller must hold the lock."""
        order = self._orders.get(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if order["order_status"] != expected_status:
            raise InvalidStateError(
                f"Order status changed to {order['order_status']} while updating; retry the request"
            )
        return order
