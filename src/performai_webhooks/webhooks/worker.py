"""Bounded-retry delivery of one payload to one endpoint.

Each dispatch moves through Attempting -> Succeeded | Retrying | Exhausted:
- Attempts run strictly one after another, at most max_retries + 1 times
- Retry delays double: 2s, 4s, 8s, ... (configurable base and cap)
- Transport failures are retried; unexpected errors end the dispatch
- Exactly one delivery log row and one counter update per dispatch
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from performai_webhooks.config import Settings
from performai_webhooks.exceptions import DeliveryExhaustedError, TransportError, WebhookError
from performai_webhooks.logging import bind_context, get_logger, unbind_context
from performai_webhooks.models import utcnow

from .signature import sign

if TYPE_CHECKING:
    from performai_webhooks.models import DeliveryAttemptLog, Endpoint, WebhookPayload
    from performai_webhooks.storage import EndpointRegistry

    from .logger import DeliveryLogger

logger = get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]
ClockFn = Callable[[], float]


class DeliveryWorker:
    """Delivers a payload to an endpoint with exponential backoff.

    Example:
        ```python
        worker = DeliveryWorker(client, registry, DeliveryLogger(store))
        try:
            log = await worker.deliver(endpoint, payload)
        except DeliveryExhaustedError as e:
            print(e.log.error_detail)
        ```
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        registry: EndpointRegistry,
        delivery_logger: DeliveryLogger,
        settings: Settings | None = None,
        *,
        sleep: SleepFn = asyncio.sleep,
        clock: ClockFn = time.monotonic,
    ) -> None:
        """Initialize the worker.

        Args:
            client: Shared HTTP client used for every attempt.
            registry: Registry receiving counter updates.
            delivery_logger: Records the final outcome of each dispatch.
            settings: Wire identity, backoff and success policy.
            sleep: Coroutine used for backoff delays.
            clock: Monotonic clock in seconds used for durations.
        """
        self._client = client
        self._registry = registry
        self._delivery_logger = delivery_logger
        self._settings = settings or Settings()
        self._sleep = sleep
        self._clock = clock

    def build_headers(self, endpoint: Endpoint, body: bytes) -> httpx.Headers:
        """Build request headers for an endpoint.

        Endpoint headers override the defaults case-insensitively but cannot
        remove them. The signature header is added last so it always
        reflects the body.
        """
        headers = httpx.Headers(
            {
                "Content-Type": "application/json",
                "User-Agent": self._settings.user_agent,
            }
        )
        for name, value in endpoint.headers.items():
            headers[name] = value
        if endpoint.secret:
            headers[self._settings.signature_header] = sign(body, endpoint.secret)
        return headers

    async def deliver(self, endpoint: Endpoint, payload: WebhookPayload) -> DeliveryAttemptLog:
        """Deliver a payload, retrying transport failures.

        Args:
            endpoint: Snapshot of the target endpoint.
            payload: Payload shared by every endpoint of the dispatch.

        Returns:
            The success (or warning) log entry.

        Raises:
            DeliveryExhaustedError: If every attempt failed.
        """
        body = payload.to_body()
        headers = self.build_headers(endpoint, body)
        started = self._clock()
        attempts = 0

        bind_context(endpoint_id=endpoint.id, event_name=payload.event)
        try:
            try:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(endpoint.total_attempts),
                    wait=wait_exponential(
                        multiplier=self._settings.backoff_base_seconds,
                        max=self._settings.backoff_max_seconds,
                    ),
                    retry=retry_if_exception_type(TransportError),
                    before_sleep=self._log_retry,
                    sleep=self._sleep,
                    reraise=True,
                ):
                    with attempt:
                        attempts = attempt.retry_state.attempt_number
                        response = await self._send(endpoint, body, headers, attempts)
            except TransportError as e:
                await self._fail(endpoint, payload, e, attempts, started, e.status_code)
            except Exception as e:
                logger.exception("webhook_delivery_unexpected_error", attempt=attempts)
                await self._fail(endpoint, payload, e, attempts, started, None)

            return await self._succeed(endpoint, payload, response, attempts, started)
        finally:
            unbind_context("endpoint_id", "event_name")

    async def _send(
        self,
        endpoint: Endpoint,
        body: bytes,
        headers: httpx.Headers,
        attempt: int,
    ) -> httpx.Response:
        """Send one HTTP attempt, translating failures into TransportError."""
        logger.debug(
            "webhook_attempt",
            url=str(endpoint.url),
            method=endpoint.method,
            attempt=attempt,
        )
        try:
            response = await self._client.request(
                endpoint.method,
                str(endpoint.url),
                content=body,
                headers=headers,
                timeout=endpoint.timeout_seconds,
            )
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Request timeout after {endpoint.timeout_seconds}s",
                endpoint_id=endpoint.id,
                attempt=attempt,
            ) from e
        except httpx.RequestError as e:
            raise TransportError(
                str(e) or type(e).__name__,
                endpoint_id=endpoint.id,
                attempt=attempt,
            ) from e

        if self._settings.success_policy == "status" and not response.is_success:
            raise TransportError(
                f"HTTP {response.status_code}",
                endpoint_id=endpoint.id,
                attempt=attempt,
                status_code=response.status_code,
            )
        return response

    async def _succeed(
        self,
        endpoint: Endpoint,
        payload: WebhookPayload,
        response: httpx.Response,
        attempts: int,
        started: float,
    ) -> DeliveryAttemptLog:
        duration_ms = self._elapsed_ms(started)
        await self._update_counter(self._registry.increment_success, endpoint.id, utcnow())

        entry = self._delivery_logger.build_success(
            endpoint,
            payload,
            attempts=attempts,
            duration_ms=duration_ms,
            response_status=response.status_code,
        )
        await self._delivery_logger.record(entry)

        logger.info(
            "webhook_delivered",
            attempts=attempts,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        return entry

    async def _fail(
        self,
        endpoint: Endpoint,
        payload: WebhookPayload,
        error: Exception,
        attempts: int,
        started: float,
        response_status: int | None,
    ) -> None:
        duration_ms = self._elapsed_ms(started)
        await self._update_counter(self._registry.increment_failure, endpoint.id, utcnow())

        entry = self._delivery_logger.build_failure(
            endpoint,
            payload,
            error,
            attempts=attempts,
            duration_ms=duration_ms,
            response_status=response_status,
        )
        await self._delivery_logger.record(entry)

        logger.error(
            "webhook_delivery_failed",
            attempts=attempts,
            error=str(error),
            duration_ms=duration_ms,
        )
        raise DeliveryExhaustedError(endpoint.id, attempts, entry) from error

    async def _update_counter(
        self,
        increment: Callable[[str, datetime], Awaitable[None]],
        endpoint_id: str,
        triggered_at: datetime,
    ) -> None:
        # The outcome is already decided; a registry failure must not hide it
        try:
            await increment(endpoint_id, triggered_at)
        except WebhookError as e:
            logger.error(
                "endpoint_counter_update_failed",
                counter=increment.__name__,
                error=e.message,
            )

    def _elapsed_ms(self, started: float) -> int:
        return max(0, round((self._clock() - started) * 1000))

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        """Log a failed attempt before the backoff sleep."""
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else None
        logger.warning(
            "webhook_attempt_failed",
            attempt=retry_state.attempt_number,
            retry_in_seconds=delay,
            error=str(exception) if exception else None,
        )


__all__ = ["DeliveryWorker"]
