"""Wire payload sent to webhook endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .base import isoformat_z, utcnow


class WebhookPayload(BaseModel):
    """Event payload sent to webhook endpoints.

    One payload is built per dispatch and shared by every matched endpoint.
    It is frozen so no delivery can change what another one sends.

    Attributes:
        event: Event name (e.g. "review.created").
        timestamp: ISO-8601 generation time.
        data: Caller-supplied JSON-serializable value.
        source: Identifier of the emitting system.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    event: str = Field(min_length=1, description="Event name")
    timestamp: str = Field(
        default_factory=lambda: isoformat_z(utcnow()),
        description="ISO-8601 generation time",
    )
    data: Any = Field(default=None, description="Event-specific payload")
    source: str = Field(default="performai", description="Emitting system")

    def to_body(self) -> bytes:
        """Serialize to the exact bytes that are signed and transmitted."""
        return self.model_dump_json().encode("utf-8")

    def detached(self) -> "WebhookPayload":
        """Copy whose data no longer shares objects with the caller.

        Raises:
            PydanticSerializationError: If data is not JSON-serializable.
        """
        return type(self).model_validate_json(self.to_body())

    def to_log_dict(self) -> dict[str, Any]:
        """JSON-compatible dict stored as the log's request payload."""
        return self.model_dump(mode="json")


__all__ = ["WebhookPayload"]
