"""Order store singleton selected by configuration."""

import json
import logging
from functools import lru_cache
from pathlib import Path

from src.core.config import get_settings
from src.repositories.memory import InMemoryStore
from src.repositories.supabase import SupabaseStore

logger = logging.getLogger(__name__)


def load_memory_seed(path: str) -> InMemoryStore:
    """Build an in-memory store seeded from a JSON file.

    The file holds ``{"products": [...], "users": [...]}``.

    Args:
        path: Path to the seed file.

    Returns:
        InMemoryStore: Store containing the seeded rows.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    store = InMemoryStore(products=data.get("products", []), users=data.get("users", []))
    logger.info(
        "Seeded in-memory store with %d products and %d users",
        len(data.get("products", [])),
        len(data.get("users", [])),
    )
    return store


@lru_cache
def get_store() -> SupabaseStore | InMemoryStore:
    """Get the cached store for the configured backend.

    Returns:
        The store implementing the product, user and order interfaces.

    Note:
        Call get_store.cache_clear() after changing settings.
    """
    settings = get_settings()
    if settings.order_store_backend == "memory":
        if settings.memory_seed_path:
            return load_memory_seed(settings.memory_seed_path)
        logger.warning("Using empty in-memory order store; data is lost on restart")
        return InMemoryStore()
    return SupabaseStore()
