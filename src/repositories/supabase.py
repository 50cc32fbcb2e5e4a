"""Supabase (PostgREST) implementation of the order stores.

Reads go through the table API. The stock-touching units run as Postgres
functions called via RPC so each executes in a single transaction; see
supabase/migrations for their definitions.
"""

import json
import logging
from datetime import datetime
from typing import Any

from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client

from src.api.middleware.error_handler import (
    InsufficientStockError,
    InternalError,
    InvalidStateError,
    NotFoundError,
)
from src.core.supabase import get_supabase_client
from src.models.order import Order, OrderCreate, OrderSummary, OrderUpdate, empty_status_counts
from src.models.product import PRODUCT_DISPLAY_FIELDS, USER_DISPLAY_FIELDS, Product, User
from src.repositories.base import OrderNumberConflictError, OrderStore, ProductRepository, UserRepository

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
INVALID_TEXT_REPRESENTATION = "22P02"

PRODUCT_COLUMNS = ",".join((*PRODUCT_DISPLAY_FIELDS, "stock"))
USER_COLUMNS = ",".join(USER_DISPLAY_FIELDS)


def _parse_details(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def translate_database_error(error: PostgrestAPIError, order_number: str | None = None) -> Exception:
    """Map a PostgREST error raised by the order functions to a domain error.

    The functions raise with a message key and a JSON detail payload.

    Args:
        error: The PostgREST error.
        order_number: Order number being inserted, for conflict reporting.

    Returns:
        Exception: The error to raise in its place.
    """
    message = error.message or ""
    details = _parse_details(error.details)

    if error.code == UNIQUE_VIOLATION:
        return OrderNumberConflictError(order_number or details.get("order_number", ""))
    if message == "insufficient_stock":
        return InsufficientStockError(
            product_id=str(details.get("product_id", "")),
            requested=int(details.get("requested", 0)),
            available=int(details.get("available", 0)),
            product_name=details.get("product_name"),
        )
    if message == "product_not_found":
        return NotFoundError(f"Product with ID {details.get('product_id')} not found")
    if message == "order_not_found":
        return NotFoundError("Order not found")
    if message == "stale_order_status":
        return InvalidStateError(
            f"Order status changed to {details.get('current_status')} while updating; retry the request"
        )

    logger.error("Unexpected database error %s: %s (%s)", error.code, message, error.details)
    return InternalError()


class SupabaseStore(ProductRepository, UserRepository, OrderStore):
    """Store backed by the shared Supabase database."""

    def __init__(self, supabase_client: Client | None = None) -> None:
        """Initialize the store.

        Args:
            supabase_client: Optional Supabase client for testing.
        """
        self._supabase_client = supabase_client

    @property
    def client(self) -> Client:
        """Get Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = get_supabase_client()
        return self._supabase_client

    # ProductRepository

    async def find_by_id(self, product_id: str) -> Product | None:
        try:
            response = (
                self.client.table("products")
                .select(PRODUCT_COLUMNS)
                .eq("id", product_id)
                .maybe_single()
                .execute()
            )
        except PostgrestAPIError as e:
            if e.code == INVALID_TEXT_REPRESENTATION:
                return None
            raise translate_database_error(e) from e

        return response.data if response and response.data else None

    async def find_many(self, product_ids: list[str]) -> dict[str, Product]:
        if not product_ids:
            return {}
        try:
            response = (
                self.client.table("products")
                .select(PRODUCT_COLUMNS)
                .in_("id", list(set(product_ids)))
                .execute()
            )
        except PostgrestAPIError as e:
            if e.code != INVALID_TEXT_REPRESENTATION:
                raise translate_database_error(e) from e
            # A malformed id fails the whole batch; look up one by one so only it goes missing
            found = {}
            for product_id in dict.fromkeys(product_ids):
                product = await self.find_by_id(product_id)
                if product is not None:
                    found[str(product["id"])] = product
            return found

        return {str(row["id"]): row for row in response.data or []}

    async def adjust_stock(self, product_id: str, delta: int) -> Product:
        try:
            response = self.client.rpc(
                "adjust_product_stock",
                {"p_product_id": product_id, "p_delta": delta},
            ).execute()
        except PostgrestAPIError as e:
            raise translate_database_error(e) from e

        return response.data

    # UserRepository

    async def find_user(self, user_id: str) -> User | None:
        try:
            response = (
                self.client.table("users")
                .select(USER_COLUMNS)
                .eq("id", user_id)
                .maybe_single()
                .execute()
            )
        except PostgrestAPIError as e:
            if e.code == INVALID_TEXT_REPRESENTATION:
                return None
            raise translate_database_error(e) from e

        return response.data if response and response.data else None

    async def find_users(self, user_ids: list[str]) -> dict[str, User]:
        if not user_ids:
            return {}
        try:
            response = (
                self.client.table("users")
                .select(USER_COLUMNS)
                .in_("id", list(set(user_ids)))
                .execute()
            )
        except PostgrestAPIError as e:
            if e.code != INVALID_TEXT_REPRESENTATION:
                raise translate_database_error(e) from e
            found = {}
            for user_id in dict.fromkeys(user_ids):
                user = await self.find_user(user_id)
                if user is not None:
                    found[str(user["id"])] = user
            return found

        return {str(row["id"]): row for row in response.data or []}

    # OrderStore

    async def reserve_stock_and_create_order(self, data: OrderCreate) -> Order:
        try:
            response = self.client.rpc(
                "reserve_stock_and_create_order",
                {"p_order": dict(data)},
            ).execute()
        except PostgrestAPIError as e:
            raise translate_database_error(e, data.get("order_number")) from e

        return response.data

    async def cancel_order_and_restore_stock(
        self, order_id: str, update: OrderUpdate, expected_status: str
    ) -> Order:
        try:
            response = self.client.rpc(
                "cancel_order_and_restore_stock",
                {
                    "p_order_id": order_id,
                    "p_update": dict(update),
                    "p_expected_status": expected_status,
                },
            ).execute()
        except PostgrestAPIError as e:
            raise translate_database_error(e) from e

        return response.data

    async def update_order(self, order_id: str, update: OrderUpdate, expected_status: str) -> Order:
        response = (
            self.client.table("orders")
            .update(dict(update))
            .eq("id", order_id)
            .eq("order_status", expected_status)
            .execute()
        )
        if response.data:
            return response.data[0]

        # Zero rows: either the order is gone or another request moved it on
        current = await self.get_order(order_id)
        if current is None:
            raise NotFoundError("Order not found")
        raise InvalidStateError(
            f"Order status changed to {current['order_status']} while updating; retry the request"
        )

    async def get_order(self, order_id: str) -> Order | None:
        try:
            response = (
                self.client.table("orders")
                .select("*")
                .eq("id", order_id)
                .maybe_single()
                .execute()
            )
        except PostgrestAPIError as e:
            if e.code == INVALID_TEXT_REPRESENTATION:
                return None
            raise translate_database_error(e) from e

        return response.data if response and response.data else None

    async def list_orders(
        self,
        status: str | None = None,
        user_id: str | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Order]:
        query = self.client.table("orders").select("*")
        if status:
            query = query.eq("order_status", status)
        if user_id:
            query = query.eq("user_id", user_id)
        query = query.order("created_at", desc=True)
        if limit is not None:
            query = query.range(offset, offset + limit - 1)

        response = query.execute()
        return response.data or []

    async def count_orders(self, status: str | None = None, user_id: str | None = None) -> int:
        query = self.client.table("orders").select("id", count="exact")
        if status:
            query = query.eq("order_status", status)
        if user_id:
            query = query.eq("user_id", user_id)

        response = query.limit(1).execute()
        return response.count or 0

    async def summarize_orders(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> OrderSummary:
        """Aggregate through the `order_stats` database function rather than fetching rows."""
        try:
            response = self.client.rpc(
                "order_stats",
                {
                    "p_start": start.isoformat() if start is not None else None,
                    "p_end": end.isoformat() if end is not None else None,
                },
            ).execute()
        except PostgrestAPIError as e:
            raise translate_database_error(e) from e

        row = response.data or {}
        by_status = empty_status_counts()
        by_status.update({status: int(count) for status, count in (row.get("by_status") or {}).items()})
        return {
            "orders": int(row.get("orders") or 0),
            "by_status": by_status,
            "revenue": row.get("revenue") or 0,
        }

    async def check_connection(self) -> dict[str, Any]:
        try:
            self.client.table("orders").select("id").limit(1).execute()
            return {"healthy": True}
        except Exception as e:
            return {"healthy": False, "error": str(e)}
