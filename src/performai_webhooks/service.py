"""Webhook service layer.

Wires settings, storage, the HTTP client, the delivery worker and the
dispatcher into one object with a managed lifecycle.

Example:
    ```python
    from performai_webhooks.service import WebhookService

    async with WebhookService.create(registry=registry) as webhooks:
        # Fire-and-forget fan-out
        await webhooks.trigger("review.created", {"review_id": "rev_42"})

        # Synchronous check of a single endpoint
        result = await webhooks.test_endpoint("whk_abc123")
        print(result.success, result.message)
    ```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from performai_webhooks.config import Settings
from performai_webhooks.exceptions import DeliveryExhaustedError
from performai_webhooks.logging import configure_logging, get_logger
from performai_webhooks.models import DeliveryAttemptLog, WebhookPayload
from performai_webhooks.storage import (
    DeliveryLogStore,
    EndpointRegistry,
    InMemoryDeliveryLogStore,
    InMemoryEndpointRegistry,
    JsonlDeliveryLogStore,
)
from performai_webhooks.webhooks import DeliveryLogger, DeliveryWorker, EventDispatcher

logger = get_logger(__name__)

# Event name and data used by test_endpoint
TEST_EVENT = "test"
TEST_EVENT_DATA = {"message": "This is a test webhook"}


class EndpointTestResult(BaseModel):
    """Outcome of a synchronous test delivery."""

    model_config = ConfigDict(extra="forbid")

    success: bool = Field(description="Whether the test payload was delivered")
    message: str = Field(description="Human-readable result")
    log: DeliveryAttemptLog | None = Field(default=None, description="Delivery log row, if any")


@dataclass
class WebhookService:
    """High-level webhook service.

    This service provides:
    - trigger(): fire-and-forget fan-out of an event
    - test_endpoint(): deliver a test event to one endpoint and wait
    - delivery_logs(): recent delivery log rows for an endpoint

    Attributes:
        registry: Endpoint registry.
        log_store: Delivery log sink.
        client: HTTP client shared by every delivery.
        settings: Configuration settings.
    """

    registry: EndpointRegistry
    log_store: DeliveryLogStore
    client: httpx.AsyncClient
    settings: Settings
    owns_client: bool = False

    delivery_logger: DeliveryLogger = field(init=False, repr=False)
    worker: DeliveryWorker = field(init=False, repr=False)
    dispatcher: EventDispatcher = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Build the delivery pipeline from the injected dependencies."""
        self.delivery_logger = DeliveryLogger(self.log_store)
        self.worker = DeliveryWorker(
            self.client,
            self.registry,
            self.delivery_logger,
            self.settings,
        )
        self.dispatcher = EventDispatcher(self.registry, self.worker, self.settings)

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        registry: EndpointRegistry | None = None,
        log_store: DeliveryLogStore | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> WebhookService:
        """Create a WebhookService with default dependencies.

        Also configures structured logging from ``settings.log_level`` and
        ``settings.log_format``.

        Args:
            settings: Optional settings. Uses defaults if None.
            registry: Endpoint registry. Defaults to an empty in-memory one.
            log_store: Delivery log sink. Defaults to a JSON-lines file when
                ``settings.delivery_log_path`` is set, else in-memory.
            client: HTTP client. When omitted, one is created and closed
                with the service.

        Returns:
            Configured WebhookService instance.
        """
        if settings is None:
            settings = Settings()

        configure_logging(level=settings.log_level, format=settings.log_format)

        if log_store is None:
            if settings.delivery_log_path:
                log_store = JsonlDeliveryLogStore(settings.delivery_log_path)
            else:
                log_store = InMemoryDeliveryLogStore()

        owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                timeout=settings.default_timeout_seconds,
                follow_redirects=False,
            )

        return cls(
            registry=registry if registry is not None else InMemoryEndpointRegistry(),
            log_store=log_store,
            client=client,
            settings=settings,
            owns_client=owns_client,
        )

    async def initialize(self) -> None:
        """Start the delivery worker pool."""
        await self.dispatcher.start()

    async def close(self) -> None:
        """Finish queued deliveries and release the HTTP client."""
        await self.dispatcher.close()
        if self.owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> WebhookService:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def trigger(self, event: str, data: Any = None) -> None:
        """Queue an event for every subscribed endpoint (never raises)."""
        await self.dispatcher.trigger(event, data)

    async def test_endpoint(self, endpoint_id: str) -> EndpointTestResult:
        """Deliver a test event to one endpoint and wait for the outcome.

        Goes through the regular delivery path, so retries, counters and
        the delivery log apply as for any other event.

        Args:
            endpoint_id: Endpoint to test.

        Returns:
            EndpointTestResult describing the outcome.
        """
        endpoint = await self.registry.get(endpoint_id)
        if endpoint is None:
            logger.warning("webhook_test_endpoint_not_found", endpoint_id=endpoint_id)
            return EndpointTestResult(success=False, message="Webhook endpoint not found")

        payload = WebhookPayload(
            event=TEST_EVENT,
            data=dict(TEST_EVENT_DATA),
            source=self.settings.source,
        )

        try:
            log = await self.worker.deliver(endpoint, payload)
        except DeliveryExhaustedError as e:
            return EndpointTestResult(
                success=False,
                message=f"Test webhook failed: {e.message}",
                log=e.log,
            )

        return EndpointTestResult(
            success=True,
            message="Test webhook delivered successfully",
            log=log,
        )

    async def delivery_logs(self, endpoint_id: str, limit: int = 100) -> list[DeliveryAttemptLog]:
        """Recent delivery log rows for an endpoint, newest first."""
        return await self.log_store.list_for_endpoint(endpoint_id, limit=limit)


__all__ = ["EndpointTestResult", "TEST_EVENT", "WebhookService"]
