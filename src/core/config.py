"""Application configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="storefront-orders", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    max_request_body_size: int = Field(default=1_048_576, description="Maximum request body size in bytes")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_secret_key: str = Field(default="", description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(default="", description="Signing key JWK (JSON string) for JWT token verification")

    # Auth
    jwt_algorithms: str = Field(default="ES256", description="Comma-separated list of accepted JWT algorithms")
    admin_role: str = Field(default="admin", description="JWT role claim granting admin access")

    # Order storage
    order_store_backend: Literal["supabase", "memory"] = Field(
        default="supabase",
        description="Order/product storage backend",
    )
    memory_seed_path: str = Field(default="", description="JSON file with products and users for the memory backend")

    # Order pricing (business constants, configurable)
    free_delivery_threshold: int = Field(default=500, ge=0, description="Subtotal at or above which delivery is free")
    delivery_charge: int = Field(default=30, ge=0, description="Delivery charge below the free-delivery threshold")
    tax_rate: float = Field(default=0.05, ge=0, lt=1, description="Flat tax rate applied to the subtotal")

    # Order numbers
    order_number_prefix: str = Field(default="ORD", description="Prefix for generated order numbers")
    order_number_max_attempts: int = Field(default=3, ge=1, description="Attempts before giving up on a unique order number")

    # Fulfilment
    estimated_delivery_minutes: int = Field(default=30, ge=0, description="ETA added when an order goes out for delivery")

    # Listings
    default_page_size: int = Field(default=20, ge=1, description="Default admin order page size")
    max_page_size: int = Field(default=100, ge=1, description="Maximum admin order page size")
    dashboard_order_limit: int = Field(default=50, ge=1, description="Orders shown on the admin dashboard")

    @model_validator(mode="after")
    def require_supabase_credentials(self) -> "Settings":
        """Require Supabase credentials when the Supabase backend is selected.

        The memory backend runs without a database, so the credentials are
        only checked when they are actually needed.
        """
        if self.order_store_backend == "supabase" and not (self.supabase_url and self.supabase_secret_key):
            raise ValueError("SUPABASE_URL and SUPABASE_SECRET_KEY are required for the supabase order store backend")
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def jwt_algorithms_list(self) -> list[str]:
        """Parse accepted JWT algorithms into a list."""
        return [alg.strip() for alg in self.jwt_algorithms.split(",") if alg.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
