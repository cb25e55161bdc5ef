"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

# Add tests directory to path so helpers can be imported
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from performai_webhooks.config import Settings  # noqa: E402
from performai_webhooks.models import Endpoint  # noqa: E402
from performai_webhooks.storage import (  # noqa: E402
    InMemoryDeliveryLogStore,
    InMemoryEndpointRegistry,
)
from performai_webhooks.webhooks import DeliveryLogger, DeliveryWorker  # noqa: E402

Responder = Callable[[httpx.Request], httpx.Response]


class FakeClock:
    """Monotonic clock whose time only moves when sleep() is awaited.

    Lets backoff tests run instantly while durations still add up to the
    real backoff schedule.
    """

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it receives.

    Routes by host: ``responders`` maps a host to a callable producing the
    response (or raising an httpx error). Unknown hosts get a 200.
    """

    def __init__(self, responders: dict[str, Responder] | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.responders = dict(responders or {})
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.responders.get(request.url.host)
        if responder is None:
            return httpx.Response(200, text="OK")
        return responder(request)

    def requests_to(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]


def connection_refused(request: httpx.Request) -> httpx.Response:
    """Responder simulating an unreachable endpoint."""
    raise httpx.ConnectError("Connection refused", request=request)


def status(code: int) -> Responder:
    """Responder always answering with the given status."""

    def respond(request: httpx.Request) -> httpx.Response:
        return httpx.Response(code, text=f"status {code}")

    return respond


def sequence(*responders: Responder) -> Responder:
    """Responder that plays the given responders in order, repeating the last."""
    calls = {"n": 0}

    def respond(request: httpx.Request) -> httpx.Response:
        index = min(calls["n"], len(responders) - 1)
        calls["n"] += 1
        return responders[index](request)

    return respond


def make_endpoint(host: str = "hooks.example.com", **overrides: object) -> Endpoint:
    """Create an active endpoint subscribed to review.created."""
    fields: dict[str, object] = {
        "id": f"whk_{host.split('.')[0]}",
        "url": f"https://{host}/webhook",
        "events": {"review.created"},
        "max_retries": 3,
        "timeout_seconds": 5.0,
    }
    fields.update(overrides)
    return Endpoint(**fields)


@pytest.fixture
def settings() -> Settings:
    """Test settings with the default wire identity."""
    return Settings(env="test")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def log_store() -> InMemoryDeliveryLogStore:
    return InMemoryDeliveryLogStore()


@pytest.fixture
def registry() -> InMemoryEndpointRegistry:
    return InMemoryEndpointRegistry()


@pytest.fixture
def worker_factory(
    transport: RecordingTransport,
    registry: InMemoryEndpointRegistry,
    log_store: InMemoryDeliveryLogStore,
    clock: FakeClock,
    settings: Settings,
) -> Callable[..., DeliveryWorker]:
    """Build a DeliveryWorker wired to the shared fakes.

    The returned worker's HTTP client uses the recording transport and
    its sleeps advance the fake clock.
    """

    def factory(settings_override: Settings | None = None) -> DeliveryWorker:
        client = httpx.AsyncClient(transport=transport)
        return DeliveryWorker(
            client,
            registry,
            DeliveryLogger(log_store),
            settings_override or settings,
            sleep=clock.sleep,
            clock=clock,
        )

    return factory
