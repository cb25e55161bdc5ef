"""JSON-lines delivery log sink.

Each delivery log entry becomes one line in an append-only file. Writes
run in a worker thread so the event loop never blocks on disk I/O.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from performai_webhooks.exceptions import StorageError
from performai_webhooks.models import DeliveryAttemptLog

from .retry import sink_retry


class JsonlDeliveryLogStore:
    """Append delivery log entries to a JSON-lines file.

    Example:
        ```python
        store = JsonlDeliveryLogStore("/var/log/performai/webhook-deliveries.jsonl")
        await store.append(entry)
        recent = await store.list_for_endpoint("whk_abc123", limit=20)
        ```
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def append(self, entry: DeliveryAttemptLog) -> str:
        line = entry.model_dump_json() + "\n"
        async with self._lock:
            try:
                await asyncio.to_thread(self._write_line, line)
            except OSError as e:
                raise StorageError(f"Failed to append delivery log {entry.id}: {e}") from e
        return entry.id

    async def list_for_endpoint(
        self, endpoint_id: str, limit: int = 100
    ) -> list[DeliveryAttemptLog]:
        try:
            lines = await asyncio.to_thread(self._read_lines)
        except OSError as e:
            raise StorageError(f"Failed to read delivery logs from {self._path}: {e}") from e

        entries = [DeliveryAttemptLog.model_validate_json(line) for line in lines if line.strip()]
        matching = [e for e in entries if e.endpoint_id == endpoint_id]
        matching.sort(key=lambda e: e.created_at, reverse=True)
        return matching[:limit]

    @sink_retry
    def _write_line(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(line)

    def _read_lines(self) -> list[str]:
        if not self._path.exists():
            return []
        return self._path.read_text(encoding="utf-8").splitlines()
