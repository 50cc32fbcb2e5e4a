"""Pytest configuration and fixtures."""

import os
from collections.abc import Callable, Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ORDER_STORE_BACKEND", "memory")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPABASE_SIGNING_KEY_JWK", "test-signing-key-jwk")

from src.core.config import Settings, get_settings  # noqa: E402
from src.repositories.memory import InMemoryStore  # noqa: E402
from src.schemas.auth import UserContext  # noqa: E402
from src.services.order_service import OrderService  # noqa: E402

CUSTOMER_ID = "64f1a2b3c4d5e6f7a8b9c0d1"
OTHER_CUSTOMER_ID = "64f1a2b3c4d5e6f7a8b9c0d2"
ADMIN_ID = "64f1a2b3c4d5e6f7a8b9c0ff"


@pytest.fixture(scope="session")
def test_settings() -> Generator[Settings, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    get_settings.cache_clear()
    settings = get_settings()
    yield settings
    get_settings.cache_clear()


@pytest.fixture
def sample_products() -> list[dict[str, Any]]:
    """Catalog rows used across order tests."""
    return [
        {
            "id": "prod-rice",
            "name": "Basmati Rice 1kg",
            "price": 100,
            "stock": 10,
            "images": ["https://cdn.example.com/rice.jpg"],
            "brand": "India Gate",
            "main_category": "Grocery",
            "subcategory": "Rice",
        },
        {
            "id": "prod-oil",
            "name": "Sunflower Oil 1L",
            "price": 150,
            "stock": 5,
            "images": [],
            "brand": "Fortune",
            "main_category": "Grocery",
            "subcategory": "Oil",
        },
        {
            "id": "prod-lipstick",
            "name": "Matte Lipstick",
            "price": 49.5,
            "stock": 20,
            "images": [],
            "brand": "Lakme",
            "main_category": "Cosmetics",
            "subcategory": "Lips",
        },
    ]


@pytest.fixture
def sample_users() -> list[dict[str, Any]]:
    """Customer rows used across order tests."""
    return [
        {"id": CUSTOMER_ID, "name": "Asha Verma", "phone": "9876543210", "email": "asha@example.com"},
        {"id": OTHER_CUSTOMER_ID, "name": "Ravi Kumar", "phone": "9123456780", "email": None},
    ]


@pytest.fixture
def delivery_address() -> dict[str, Any]:
    """A complete delivery address."""
    return {
        "name": "Asha Verma",
        "phone": "+91 98765-43210",
        "address": "12 MG Road",
        "pincode": "560001",
        "city": "Bengaluru",
        "state": "Karnataka",
        "address_type": "Home",
    }


@pytest.fixture
def memory_store(sample_products: list[dict[str, Any]], sample_users: list[dict[str, Any]]) -> InMemoryStore:
    """Provide a seeded in-memory store."""
    return InMemoryStore(products=sample_products, users=sample_users)


@pytest.fixture
def order_service(memory_store: InMemoryStore, test_settings: Settings) -> OrderService:
    """Provide an OrderService backed by the seeded in-memory store."""
    return OrderService(
        products=memory_store,
        users=memory_store,
        orders=memory_store,
        settings=test_settings,
    )


@pytest.fixture
def customer() -> UserContext:
    """An authenticated customer."""
    return UserContext(user_id=CUSTOMER_ID, email="asha@example.com", role="authenticated")


@pytest.fixture
def other_customer() -> UserContext:
    """A second customer who owns none of the first customer's orders."""
    return UserContext(user_id=OTHER_CUSTOMER_ID, role="authenticated")


@pytest.fixture
def admin() -> UserContext:
    """An authenticated admin."""
    return UserContext(user_id=ADMIN_ID, email="admin@example.com", role="admin")


@pytest.fixture
def client(order_service: OrderService) -> Generator[TestClient, None, None]:
    """Provide a test client whose order service uses the seeded store.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.api.deps import get_order_service
    from src.main import app

    app.dependency_overrides[get_order_service] = lambda: order_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login(client: TestClient) -> Callable[[UserContext], None]:
    """Return a function that authenticates subsequent requests as a user."""
    from src.api.deps import get_current_user
    from src.main import app

    def _login(user: UserContext) -> None:
        app.dependency_overrides[get_current_user] = lambda: user

    return _login
