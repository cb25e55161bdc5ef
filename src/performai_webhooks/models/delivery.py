"""Delivery log models.

One DeliveryAttemptLog is written per dispatch and captures the final
outcome of the whole retry sequence.
"""

import traceback
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .base import generate_id, utcnow

DeliveryOutcome = Literal["success", "warning", "error"]

# Operation name recorded on every delivery log row
DELIVERY_OPERATION = "webhook_delivery"


class ErrorDetail(BaseModel):
    """Error information attached to a failed delivery."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    message: str = Field(description="Last error message")
    stack: str | None = Field(default=None, description="Formatted traceback, if any")

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorDetail":
        """Build from an exception, keeping its formatted traceback."""
        stack = None
        if exc.__traceback__ is not None:
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return cls(message=str(exc) or type(exc).__name__, stack=stack)


class DeliveryAttemptLog(BaseModel):
    """Append-only record of a dispatch outcome.

    Attributes:
        id: Unique identifier for this log row.
        endpoint_id: Endpoint the event was delivered to.
        event: Event name that was delivered.
        operation: Always "webhook_delivery".
        outcome: success, warning (delivered but non-2xx) or error.
        message: Human-readable summary.
        request_payload: The serialized event payload that was sent.
        error_detail: Present only when outcome is error.
        duration_ms: Wall-clock time for the entire retry sequence.
        attempts: HTTP attempts made.
        response_status: Last HTTP status code received, if any.
        created_at: When the row was written.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=lambda: generate_id("dlv"))
    endpoint_id: str = Field(description="Endpoint the delivery targeted")
    event: str = Field(description="Event name")
    operation: str = Field(default=DELIVERY_OPERATION)
    outcome: DeliveryOutcome = Field(description="Final outcome")
    message: str = Field(description="Human-readable summary")
    request_payload: dict[str, Any] = Field(description="Payload that was sent")
    error_detail: ErrorDetail | None = Field(default=None)
    duration_ms: int = Field(ge=0, description="Duration of the whole retry sequence")
    attempts: int = Field(ge=1, description="HTTP attempts made")
    response_status: int | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _error_detail_only_on_error(self) -> "DeliveryAttemptLog":
        if self.outcome == "error" and self.error_detail is None:
            raise ValueError("error outcome requires error_detail")
        if self.outcome != "error" and self.error_detail is not None:
            raise ValueError(f"{self.outcome} outcome must not carry error_detail")
        return self

    @property
    def succeeded(self) -> bool:
        """True for success and warning outcomes."""
        return self.outcome != "error"


__all__ = [
    "DELIVERY_OPERATION",
    "DeliveryAttemptLog",
    "DeliveryOutcome",
    "ErrorDetail",
]
