"""Webhook delivery exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from WebhookError for easy catching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from performai_webhooks.models import DeliveryAttemptLog


class WebhookError(Exception):
    """Base exception for all webhook delivery errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code for API responses.
    """

    code: str = "webhook_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class NotFoundError(WebhookError):
    """Resource not found.

    Raised when a requested resource (endpoint, delivery log) doesn't exist.

    Attributes:
        resource_type: Type of resource (e.g., "endpoint").
        resource_id: ID of the missing resource.
    """

    code: str = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "message": self.message,
            }
        }


class StorageError(WebhookError):
    """Storage operation failed.

    Raised when the endpoint registry or a delivery log sink fails.
    """

    code: str = "storage_error"


class TransportError(WebhookError):
    """A single delivery attempt failed and may be retried.

    Wraps connection failures, DNS errors and timeouts. Under the
    ``status`` success policy it also wraps non-2xx responses.

    Attributes:
        endpoint_id: Endpoint the attempt was sent to.
        attempt: 1-indexed attempt number.
        status_code: HTTP status when a response was received.
    """

    code: str = "transport_error"

    def __init__(
        self,
        message: str,
        endpoint_id: str,
        attempt: int,
        status_code: int | None = None,
    ) -> None:
        self.endpoint_id = endpoint_id
        self.attempt = attempt
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "endpoint_id": self.endpoint_id,
                "attempt": self.attempt,
                "status_code": self.status_code,
                "message": self.message,
            }
        }


class DeliveryExhaustedError(WebhookError):
    """Every delivery attempt to an endpoint failed.

    Attributes:
        endpoint_id: Endpoint that could not be reached.
        attempts: Number of HTTP attempts made.
        log: The error-outcome log entry written for this dispatch.
    """

    code: str = "delivery_exhausted"

    def __init__(
        self,
        endpoint_id: str,
        attempts: int,
        log: DeliveryAttemptLog,
    ) -> None:
        self.endpoint_id = endpoint_id
        self.attempts = attempts
        self.log = log
        detail = log.error_detail.message if log.error_detail else "unknown error"
        super().__init__(
            f"Webhook delivery to {endpoint_id} failed after {attempts} attempts: {detail}"
        )

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "endpoint_id": self.endpoint_id,
                "attempts": self.attempts,
                "message": self.message,
            }
        }
