"""Integration tests for order API endpoints."""

import asyncio
from collections.abc import Callable
from typing import Any

import pytest
from fastapi.testclient import TestClient

from src.repositories.memory import InMemoryStore
from src.schemas.auth import UserContext

ORDERS_URL = "/api/v1/orders"


def _stock(store: InMemoryStore, product_id: str) -> int:
    return asyncio.run(store.find_by_id(product_id))["stock"]


@pytest.fixture
def checkout_body(delivery_address: dict[str, Any]) -> dict[str, Any]:
    """Checkout payload as sent by the mobile app."""
    return {
        "items": [{"productId": "prod-rice", "quantity": 3}],
        "deliveryAddress": {**delivery_address, "pinCode": delivery_address["pincode"]},
        "paymentMethod": "UPI",
    }


@pytest.fixture
def placed_order(
    client: TestClient,
    login: Callable[[UserContext], None],
    customer: UserContext,
    checkout_body: dict[str, Any],
) -> dict[str, Any]:
    """An order placed by the customer; leaves the customer logged in."""
    login(customer)
    response = client.post(ORDERS_URL, json=checkout_body)
    assert response.status_code == 201
    return response.json()


class TestCreateOrder:
    """Tests for POST /api/v1/orders."""

    def test_creates_order(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        customer: UserContext,
        memory_store: InMemoryStore,
        checkout_body: dict[str, Any],
    ) -> None:
        """Test that checkout returns 201 with totals and reserves stock."""
        login(customer)

        response = client.post(ORDERS_URL, json=checkout_body)

        assert response.status_code == 201
        data = response.json()
        assert data["user_id"] == customer.user_id
        assert data["order_status"] == "pending"
        assert data["payment_method"] == "online"
        assert data["subtotal"] == 300
        assert data["delivery_charge"] == 30
        assert data["tax"] == 15
        assert data["total_amount"] == 345
        assert data["delivery_address"]["phone"] == "+919876543210"
        assert data["items"][0]["product"]["name"] == "Basmati Rice 1kg"
        assert data["user"]["name"] == "Asha Verma"
        assert _stock(memory_store, "prod-rice") == 7

    def test_requires_token(self, client: TestClient, checkout_body: dict[str, Any]) -> None:
        response = client.post(ORDERS_URL, json=checkout_body)

        assert response.status_code == 401
        assert response.json()["message"] == "Access denied. No token provided."

    def test_insufficient_stock(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        customer: UserContext,
        memory_store: InMemoryStore,
        checkout_body: dict[str, Any],
    ) -> None:
        """Test that a short item fails with 400 and no stock moves."""
        login(customer)
        checkout_body["items"] = [
            {"productId": "prod-rice", "quantity": 2},
            {"productId": "prod-oil", "quantity": 9},
        ]

        response = client.post(ORDERS_URL, json=checkout_body)

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "insufficient_stock"
        assert data["message"] == "Insufficient stock for Sunflower Oil 1L. Requested: 9, Available: 5"
        assert _stock(memory_store, "prod-rice") == 10

    def test_unknown_product(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        customer: UserContext,
        checkout_body: dict[str, Any],
    ) -> None:
        login(customer)
        checkout_body["items"] = [{"productId": "prod-missing", "quantity": 1}]

        response = client.post(ORDERS_URL, json=checkout_body)

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_empty_items(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        customer: UserContext,
        checkout_body: dict[str, Any],
    ) -> None:
        login(customer)
        checkout_body["items"] = []

        response = client.post(ORDERS_URL, json=checkout_body)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert response.json()["message"] == "Order must contain at least one item"

    def test_missing_address(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        customer: UserContext,
        checkout_body: dict[str, Any],
    ) -> None:
        login(customer)
        del checkout_body["deliveryAddress"]

        response = client.post(ORDERS_URL, json=checkout_body)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_malformed_body_is_400(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        customer: UserContext,
        checkout_body: dict[str, Any],
    ) -> None:
        """Test that schema failures use the standard error format."""
        login(customer)
        checkout_body["items"] = [{"productId": "prod-rice", "quantity": "lots"}]

        response = client.post(ORDERS_URL, json=checkout_body)

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "validation_error"
        assert data["details"]


class TestCustomerReads:
    """Tests for GET /api/v1/orders/me and GET /api/v1/orders/{id}."""

    def test_lists_own_orders(
        self, client: TestClient, placed_order: dict[str, Any], customer: UserContext
    ) -> None:
        response = client.get(f"{ORDERS_URL}/me")

        assert response.status_code == 200
        items = response.json()["items"]
        assert [order["id"] for order in items] == [placed_order["id"]]

    def test_other_customer_sees_nothing(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        placed_order: dict[str, Any],
        other_customer: UserContext,
    ) -> None:
        login(other_customer)

        assert client.get(f"{ORDERS_URL}/me").json()["items"] == []
        assert client.get(f"{ORDERS_URL}/{placed_order['id']}").status_code == 403

    def test_get_own_order(self, client: TestClient, placed_order: dict[str, Any]) -> None:
        response = client.get(f"{ORDERS_URL}/{placed_order['id']}")

        assert response.status_code == 200
        assert response.json()["order_number"] == placed_order["order_number"]

    def test_unknown_order(
        self, client: TestClient, login: Callable[[UserContext], None], customer: UserContext
    ) -> None:
        login(customer)

        response = client.get(f"{ORDERS_URL}/does-not-exist")

        assert response.status_code == 404
        assert response.json() | {"timestamp": None} == {
            "error": "not_found",
            "message": "Order not found",
            "timestamp": None,
        }


class TestUpdateStatus:
    """Tests for PUT /api/v1/orders/{id}/status."""

    def test_customer_cannot_update(self, client: TestClient, placed_order: dict[str, Any]) -> None:
        response = client.put(f"{ORDERS_URL}/{placed_order['id']}/status", json={"status": "confirmed"})

        assert response.status_code == 403

    def test_admin_moves_order_forward(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        admin: UserContext,
        placed_order: dict[str, Any],
    ) -> None:
        login(admin)
        url = f"{ORDERS_URL}/{placed_order['id']}/status"

        for status in ("confirmed", "preparing", "ready"):
            assert client.put(url, json={"status": status}).status_code == 200
        response = client.put(
            url, json={"status": "out_for_delivery", "deliveryBoy": "Vikram", "deliveryPhone": "9000000001"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["order_status"] == "out_for_delivery"
        assert data["delivery_boy"] == "Vikram"
        assert data["estimated_delivery"] is not None

    def test_invalid_transition(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        admin: UserContext,
        placed_order: dict[str, Any],
    ) -> None:
        login(admin)

        response = client.put(f"{ORDERS_URL}/{placed_order['id']}/status", json={"status": "delivered"})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_state"

    def test_unknown_status(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        admin: UserContext,
        placed_order: dict[str, Any],
    ) -> None:
        login(admin)

        response = client.put(f"{ORDERS_URL}/{placed_order['id']}/status", json={"status": "shipped"})

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_unknown_order(
        self, client: TestClient, login: Callable[[UserContext], None], admin: UserContext
    ) -> None:
        login(admin)

        response = client.put(f"{ORDERS_URL}/does-not-exist/status", json={"status": "confirmed"})

        assert response.status_code == 404


class TestCancelOrder:
    """Tests for PUT /api/v1/orders/{id}/cancel."""

    def test_customer_cancels_and_stock_returns(
        self, client: TestClient, placed_order: dict[str, Any], memory_store: InMemoryStore
    ) -> None:
        response = client.put(f"{ORDERS_URL}/{placed_order['id']}/cancel", json={"reason": "Ordered twice"})

        assert response.status_code == 200
        data = response.json()
        assert data["order_status"] == "cancelled"
        assert data["cancellation_reason"] == "Ordered twice"
        assert data["cancelled_at"] is not None
        assert _stock(memory_store, "prod-rice") == 10

    def test_second_cancel_rejected(
        self, client: TestClient, placed_order: dict[str, Any], memory_store: InMemoryStore
    ) -> None:
        url = f"{ORDERS_URL}/{placed_order['id']}/cancel"
        client.put(url, json={})

        response = client.put(url, json={})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_state"
        assert _stock(memory_store, "prod-rice") == 10

    def test_delivered_order_cannot_be_cancelled(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        admin: UserContext,
        customer: UserContext,
        placed_order: dict[str, Any],
    ) -> None:
        login(admin)
        for status in ("confirmed", "preparing", "ready", "out_for_delivery", "delivered"):
            client.put(f"{ORDERS_URL}/{placed_order['id']}/status", json={"status": status})
        login(customer)

        response = client.put(f"{ORDERS_URL}/{placed_order['id']}/cancel", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_state"

    def test_other_customer_cannot_cancel(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        other_customer: UserContext,
        placed_order: dict[str, Any],
    ) -> None:
        login(other_customer)

        response = client.put(f"{ORDERS_URL}/{placed_order['id']}/cancel", json={})

        assert response.status_code == 403


class TestAdminReads:
    """Tests for admin listing, stats and dashboard."""

    def test_list_requires_admin(self, client: TestClient, placed_order: dict[str, Any]) -> None:
        assert client.get(ORDERS_URL).status_code == 403

    def test_list_paginates(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        admin: UserContext,
        customer: UserContext,
        checkout_body: dict[str, Any],
    ) -> None:
        login(customer)
        checkout_body["items"] = [{"productId": "prod-oil", "quantity": 1}]
        for _ in range(3):
            assert client.post(ORDERS_URL, json=checkout_body).status_code == 201
        login(admin)

        response = client.get(ORDERS_URL, params={"page": 2, "limit": 2})

        assert response.status_code == 200
        data = response.json()
        assert len(data["orders"]) == 1
        assert data["pagination"] == {"current": 2, "pages": 2, "total": 3}

    def test_list_filters_status(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        admin: UserContext,
        placed_order: dict[str, Any],
    ) -> None:
        login(admin)

        assert client.get(ORDERS_URL, params={"status": "pending"}).json()["pagination"]["total"] == 1
        assert client.get(ORDERS_URL, params={"status": "delivered"}).json()["orders"] == []

    def test_stats(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        admin: UserContext,
        placed_order: dict[str, Any],
    ) -> None:
        login(admin)

        response = client.get(f"{ORDERS_URL}/stats", params={"period": "week"})

        assert response.status_code == 200
        data = response.json()
        assert data["period"] == "week"
        assert data["orders"] == 1
        assert data["by_status"]["pending"] == 1
        assert data["revenue"] == 0
        assert data["total"] == {"orders": 1, "revenue": 0}

    def test_stats_unknown_period(
        self, client: TestClient, login: Callable[[UserContext], None], admin: UserContext
    ) -> None:
        login(admin)

        response = client.get(f"{ORDERS_URL}/stats", params={"period": "decade"})

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_dashboard(
        self,
        client: TestClient,
        login: Callable[[UserContext], None],
        admin: UserContext,
        placed_order: dict[str, Any],
    ) -> None:
        login(admin)

        response = client.get(f"{ORDERS_URL}/dashboard")

        assert response.status_code == 200
        data = response.json()
        assert data["stats"]["total_orders"] == 1
        assert data["stats"]["pending_orders"] == 1
        assert [order["id"] for order in data["orders_by_status"]["pending"]] == [placed_order["id"]]
