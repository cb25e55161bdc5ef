"""Subscriber endpoint model.

An Endpoint is owned by the registry. The delivery worker receives a
read-only snapshot per dispatch and only ever changes the counters
through the registry's increment operations.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from .base import generate_id, utcnow

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

# Methods accepted by the endpoint registry
HTTP_METHODS: tuple[HttpMethod, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE")


class Endpoint(BaseModel):
    """A registered webhook subscriber.

    Attributes:
        id: Opaque identifier, immutable.
        name: Optional human-readable label.
        url: Target URL for deliveries.
        method: HTTP method used for deliveries.
        headers: Extra headers merged into every request.
        events: Event names this endpoint subscribes to (exact match).
        is_active: Inactive endpoints are never dispatched to.
        secret: Shared secret; when set, requests carry a signature header.
        max_retries: Retries after the first attempt (total = max_retries + 1).
        timeout_seconds: Per-attempt HTTP timeout.
        success_count: Deliveries that succeeded.
        failure_count: Deliveries that exhausted their retries.
        last_triggered_at: Time of the most recent terminal outcome.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("whk"))
    name: str | None = Field(default=None, description="Human-readable label")
    url: HttpUrl = Field(description="Endpoint receiving deliveries")
    method: HttpMethod = Field(default="POST", description="HTTP method for deliveries")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers merged into every request",
    )
    events: set[str] = Field(
        default_factory=set,
        description="Subscribed event names, e.g. {'review.created'}",
    )
    is_active: bool = Field(default=True, description="Whether the endpoint receives events")
    secret: str | None = Field(default=None, description="Shared secret for HMAC-SHA256")
    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    timeout_seconds: float = Field(
        default=30.0, gt=0.0, description="Per-attempt HTTP timeout"
    )
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    last_triggered_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @property
    def total_attempts(self) -> int:
        """Maximum number of HTTP attempts for one dispatch."""
        return self.max_retries + 1

    def subscribes_to(self, event: str) -> bool:
        """Check if this endpoint is active and subscribed to the event."""
        return self.is_active and event in self.events


__all__ = ["HTTP_METHODS", "Endpoint", "HttpMethod"]
