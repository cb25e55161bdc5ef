"""Delivery log recording.

Writes exactly one DeliveryAttemptLog per dispatch. A failing sink is
reported through the structured logger and never changes the delivery
outcome that was already decided.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from performai_webhooks.logging import get_logger
from performai_webhooks.models import DeliveryAttemptLog, ErrorDetail

if TYPE_CHECKING:
    from performai_webhooks.models import Endpoint, WebhookPayload
    from performai_webhooks.storage import DeliveryLogStore

logger = get_logger(__name__)


class DeliveryLogger:
    """Records dispatch outcomes to a DeliveryLogStore."""

    def __init__(self, store: DeliveryLogStore) -> None:
        self._store = store

    @property
    def store(self) -> DeliveryLogStore:
        return self._store

    async def record(self, entry: DeliveryAttemptLog) -> None:
        """Append an entry; sink errors are logged, never raised."""
        try:
            await self._store.append(entry)
        except Exception:
            logger.exception(
                "delivery_log_write_failed",
                log_id=entry.id,
                endpoint_id=entry.endpoint_id,
                outcome=entry.outcome,
            )

    @staticmethod
    def build_success(
        endpoint: Endpoint,
        payload: WebhookPayload,
        attempts: int,
        duration_ms: int,
        response_status: int | None = None,
    ) -> DeliveryAttemptLog:
        """Build the log row for a delivered payload.

        A completed exchange with a non-2xx status is recorded with the
        warning outcome so it stands out in reports.
        """
        if response_status is not None and not 200 <= response_status < 300:
            outcome = "warning"
            message = f"Webhook delivered but endpoint responded with HTTP {response_status}"
        else:
            outcome = "success"
            message = "Webhook delivered successfully"
        return DeliveryAttemptLog(
            endpoint_id=endpoint.id,
            event=payload.event,
            outcome=outcome,
            message=message,
            request_payload=payload.to_log_dict(),
            duration_ms=duration_ms,
            attempts=attempts,
            response_status=response_status,
        )

    @staticmethod
    def build_failure(
        endpoint: Endpoint,
        payload: WebhookPayload,
        error: BaseException,
        attempts: int,
        duration_ms: int,
        response_status: int | None = None,
    ) -> DeliveryAttemptLog:
        """Build the log row for an exhausted delivery."""
        return DeliveryAttemptLog(
            endpoint_id=endpoint.id,
            event=payload.event,
            outcome="error",
            message=f"Webhook delivery failed after {attempts} attempts",
            request_payload=payload.to_log_dict(),
            error_detail=ErrorDetail.from_exception(error),
            duration_ms=duration_ms,
            attempts=attempts,
            response_status=response_status,
        )


__all__ = ["DeliveryLogger"]
