"""In-process implementations of the storage contracts.

Suitable for tests, single-process deployments and as a reference for
database-backed registries.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

from performai_webhooks.exceptions import NotFoundError
from performai_webhooks.models import utcnow

if TYPE_CHECKING:
    from performai_webhooks.models import DeliveryAttemptLog, Endpoint


class InMemoryEndpointRegistry:
    """Endpoint registry backed by a dict.

    Reads hand out deep copies so callers never hold the live record.
    Counter updates mutate the stored record under a lock, which makes
    concurrent increments for the same endpoint lossless.
    """

    def __init__(self, endpoints: Iterable[Endpoint] = ()) -> None:
        self._endpoints: dict[str, Endpoint] = {
            endpoint.id: endpoint.model_copy(deep=True) for endpoint in endpoints
        }
        self._lock = asyncio.Lock()

    async def add(self, endpoint: Endpoint) -> str:
        """Store an endpoint, replacing any record with the same ID."""
        async with self._lock:
            self._endpoints[endpoint.id] = endpoint.model_copy(deep=True)
        return endpoint.id

    async def get(self, endpoint_id: str) -> Endpoint | None:
        endpoint = self._endpoints.get(endpoint_id)
        if endpoint is None:
            return None
        return endpoint.model_copy(deep=True)

    async def list_endpoints(self) -> list[Endpoint]:
        """All endpoints, active or not."""
        return [endpoint.model_copy(deep=True) for endpoint in self._endpoints.values()]

    async def find_active_subscribers(self, event: str) -> list[Endpoint]:
        return [
            endpoint.model_copy(deep=True)
            for endpoint in self._endpoints.values()
            if endpoint.subscribes_to(event)
        ]

    async def increment_success(self, endpoint_id: str, triggered_at: datetime) -> None:
        async with self._lock:
            endpoint = self._require(endpoint_id)
            endpoint.success_count += 1
            endpoint.last_triggered_at = triggered_at
            endpoint.updated_at = utcnow()

    async def increment_failure(self, endpoint_id: str, triggered_at: datetime) -> None:
        async with self._lock:
            endpoint = self._require(endpoint_id)
            endpoint.failure_count += 1
            endpoint.last_triggered_at = triggered_at
            endpoint.updated_at = utcnow()

    def _require(self, endpoint_id: str) -> Endpoint:
        endpoint = self._endpoints.get(endpoint_id)
        if endpoint is None:
            raise NotFoundError("endpoint", endpoint_id)
        return endpoint


class InMemoryDeliveryLogStore:
    """Delivery log sink that keeps entries in a list."""

    def __init__(self) -> None:
        self._entries: list[DeliveryAttemptLog] = []

    @property
    def entries(self) -> list[DeliveryAttemptLog]:
        """All entries in append order."""
        return list(self._entries)

    async def append(self, entry: DeliveryAttemptLog) -> str:
        self._entries.append(entry)
        return entry.id

    async def list_for_endpoint(
        self, endpoint_id: str, limit: int = 100
    ) -> list[DeliveryAttemptLog]:
        matching = [e for e in reversed(self._entries) if e.endpoint_id == endpoint_id]
        return matching[:limit]
