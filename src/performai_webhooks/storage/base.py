"""Storage contracts consumed by the delivery core.

The endpoint registry and the delivery log sink are owned by the
surrounding application. These protocols pin down the operations the
dispatcher, worker and logger depend on.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from performai_webhooks.models import DeliveryAttemptLog, Endpoint


@runtime_checkable
class EndpointRegistry(Protocol):
    """Read access to subscriber records plus atomic counter updates."""

    @abstractmethod
    async def find_active_subscribers(self, event: str) -> list[Endpoint]:
        """Return active endpoints whose subscribed events contain ``event``.

        Matching is exact string membership; no wildcards or prefixes.
        The returned endpoints are snapshots and may be read concurrently.
        """
        ...

    @abstractmethod
    async def get(self, endpoint_id: str) -> Endpoint | None:
        """Return a snapshot of one endpoint, or None if unknown."""
        ...

    @abstractmethod
    async def increment_success(self, endpoint_id: str, triggered_at: datetime) -> None:
        """Atomically add one to success_count and set last_triggered_at.

        Raises:
            NotFoundError: If the endpoint does not exist.
            StorageError: If the update could not be persisted.
        """
        ...

    @abstractmethod
    async def increment_failure(self, endpoint_id: str, triggered_at: datetime) -> None:
        """Atomically add one to failure_count and set last_triggered_at.

        Raises:
            NotFoundError: If the endpoint does not exist.
            StorageError: If the update could not be persisted.
        """
        ...


@runtime_checkable
class DeliveryLogStore(Protocol):
    """Append-only sink for delivery log rows."""

    @abstractmethod
    async def append(self, entry: DeliveryAttemptLog) -> str:
        """Durably append one entry and return its ID.

        Raises:
            StorageError: If the entry could not be written.
        """
        ...

    @abstractmethod
    async def list_for_endpoint(
        self, endpoint_id: str, limit: int = 100
    ) -> list[DeliveryAttemptLog]:
        """Return the endpoint's log rows, newest first."""
        ...
