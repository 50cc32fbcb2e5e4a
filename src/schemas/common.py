"""Health and error envelopes shared by every route."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Liveness payload. Never touches the order store."""

    status: HealthStatus = Field(description="Current health status")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check timestamp")
    version: str = Field(default="0.1.0", description="API version")


class CheckResult(BaseModel):
    name: str = Field(description="Checked dependency, e.g. database")
    healthy: bool = Field(description="Whether the dependency answered")
    latency_ms: float | None = Field(default=None, description="Round trip in milliseconds")
    error: str | None = Field(default=None, description="Failure reason when unhealthy")


class ReadinessResponse(BaseModel):
    """Readiness payload. Unhealthy when any store check fails."""

    status: HealthStatus = Field(description="Overall readiness status")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check timestamp")
    checks: list[CheckResult] = Field(default_factory=list, description="Per-dependency results")


class ErrorDetail(BaseModel):
    """One field-level problem, such as a short-stocked line item."""

    loc: list[str] | None = Field(default=None, description="Path to the offending field or item")
    msg: str = Field(description="Human-readable problem")
    type: str = Field(description="Machine-readable problem code")


class ErrorResponse(BaseModel):
    """Body of every 4xx/5xx response."""

    error: str = Field(description="Error code, e.g. insufficient_stock or invalid_state")
    message: str = Field(description="Human-readable error description")
    details: list[ErrorDetail] | None = Field(default=None, description="Field-level problems")
    request_id: str | None = Field(default=None, description="X-Request-ID echoed back for tracing")
    timestamp: datetime = Field(default_factory=_utcnow, description="Error timestamp")
