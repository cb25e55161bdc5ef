"""Event fan-out to subscribed endpoints.

trigger() resolves the active subscribers of an event, builds one shared
payload and queues one delivery job per endpoint. A fixed pool of worker
tasks drains the queue, so a burst of events or a long subscriber list
never produces more than ``max_concurrent_deliveries`` concurrent
requests. Each job is isolated: its outcome is only observable through
the delivery log and the endpoint counters.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from performai_webhooks.config import Settings
from performai_webhooks.exceptions import DeliveryExhaustedError
from performai_webhooks.logging import get_logger
from performai_webhooks.models import WebhookPayload

if TYPE_CHECKING:
    from performai_webhooks.models import Endpoint
    from performai_webhooks.storage import EndpointRegistry

    from .worker import DeliveryWorker

logger = get_logger(__name__)

DeliveryJob = tuple["Endpoint", WebhookPayload]


class EventDispatcher:
    """Dispatches events to every active, subscribed endpoint.

    Example:
        ```python
        async with EventDispatcher(registry, worker) as dispatcher:
            await dispatcher.trigger("review.created", {"review_id": "rev_1"})
            await dispatcher.drain()  # optional: wait for deliveries
        ```
    """

    def __init__(
        self,
        registry: EndpointRegistry,
        worker: DeliveryWorker,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            registry: Source of subscriber endpoints.
            worker: Delivers one payload to one endpoint.
            settings: Pool size and payload source.
        """
        self._registry = registry
        self._worker = worker
        self._settings = settings or Settings()
        self._queue: asyncio.Queue[DeliveryJob] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._in_flight = 0

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        """Deliveries queued or currently in progress."""
        return self._queue.qsize() + self._in_flight

    async def start(self) -> None:
        """Start the delivery worker pool. Safe to call more than once."""
        if self._workers:
            return
        for i in range(self._settings.max_concurrent_deliveries):
            task = asyncio.create_task(self._run_worker(), name=f"webhook-worker-{i}")
            self._workers.append(task)
        logger.info("webhook_dispatcher_started", workers=len(self._workers))

    async def trigger(self, event: str, data: Any = None) -> None:
        """Queue delivery of an event to every subscribed endpoint.

        Returns once the jobs are queued; it never waits for delivery and
        never raises on delivery or lookup failures.

        Args:
            event: Event name, matched exactly against endpoint subscriptions.
            data: JSON-serializable event data.
        """
        await self.start()

        try:
            endpoints = await self._registry.find_active_subscribers(event)
        except Exception:
            logger.exception("webhook_subscriber_lookup_failed", event_name=event)
            return

        if not endpoints:
            logger.debug("webhook_no_subscribers", event_name=event)
            return

        # Jobs run after trigger returns; later changes to data must not reach them
        payload = WebhookPayload(event=event, data=data, source=self._settings.source)
        try:
            payload = payload.detached()
        except (TypeError, ValueError):
            logger.exception("webhook_payload_not_serializable", event_name=event)
            return

        for endpoint in endpoints:
            self._queue.put_nowait((endpoint, payload))

        logger.info("webhooks_triggered", event_name=event, endpoints=len(endpoints))

    async def drain(self) -> None:
        """Wait until every queued delivery has finished."""
        await self._queue.join()

    async def close(self) -> None:
        """Finish queued deliveries, then stop the worker pool."""
        if not self._workers:
            return
        await self.drain()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        logger.info("webhook_dispatcher_stopped")

    async def __aenter__(self) -> EventDispatcher:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _run_worker(self) -> None:
        while True:
            endpoint, payload = await self._queue.get()
            self._in_flight += 1
            try:
                await self._worker.deliver(endpoint, payload)
            except DeliveryExhaustedError as e:
                logger.warning(
                    "webhook_dispatch_exhausted",
                    endpoint_id=e.endpoint_id,
                    event_name=payload.event,
                    attempts=e.attempts,
                )
            except Exception:
                # Isolate this job; the pool keeps serving other endpoints
                logger.exception(
                    "webhook_dispatch_crashed",
                    endpoint_id=endpoint.id,
                    event_name=payload.event,
                )
            finally:
                self._in_flight -= 1
                self._queue.task_done()


__all__ = ["EventDispatcher"]
