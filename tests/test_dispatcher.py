"""Tests for EventDispatcher fan-out, isolation and the worker pool."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from conftest import connection_refused, make_endpoint

from performai_webhooks.config import Settings
from performai_webhooks.storage import InMemoryDeliveryLogStore
from performai_webhooks.webhooks import (
    DeliveryLogger,
    DeliveryWorker,
    EventDispatcher,
    verify,
)


@pytest_asyncio.fixture
async def dispatcher(registry, worker_factory, settings):
    """Started dispatcher using the shared fakes; closed after the test."""
    dispatcher = EventDispatcher(registry, worker_factory(), settings)
    await dispatcher.start()
    yield dispatcher
    await dispatcher.close()


class TestSubscriptionFiltering:
    """Only active endpoints subscribed to the exact event receive it."""

    @pytest.mark.asyncio
    async def test_only_active_subscribers_receive(self, dispatcher, registry, transport):
        await registry.add(make_endpoint("a.example.com", events={"review.created"}))
        await registry.add(
            make_endpoint("b.example.com", events={"review.created"}, is_active=False)
        )
        await registry.add(make_endpoint("c.example.com", events={"feedback.submitted"}))

        await dispatcher.trigger("review.created", {"review_id": "rev_1"})
        await dispatcher.drain()

        assert len(transport.requests_to("a.example.com")) == 1
        assert transport.requests_to("b.example.com") == []
        assert transport.requests_to("c.example.com") == []

    @pytest.mark.asyncio
    async def test_event_names_match_exactly(self, dispatcher, registry, transport):
        await registry.add(make_endpoint("a.example.com", events={"review.created"}))

        await dispatcher.trigger("review", {})
        await dispatcher.trigger("REVIEW.CREATED", {})
        await dispatcher.trigger("review.*", {})
        await dispatcher.drain()

        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_no_subscribers_is_a_noop(self, dispatcher, transport, log_store):
        await dispatcher.trigger("review.created", {"review_id": "rev_1"})
        await dispatcher.drain()

        assert transport.requests == []
        assert log_store.entries == []
        assert dispatcher.pending == 0


class TestFanOut:
    """One shared payload, one job per subscriber."""

    @pytest.mark.asyncio
    async def test_all_subscribers_get_identical_body(self, dispatcher, registry, transport):
        hosts = ["a.example.com", "b.example.com", "c.example.com"]
        for host in hosts:
            await registry.add(make_endpoint(host))

        await dispatcher.trigger("review.created", {"review_id": "rev_1"})
        await dispatcher.drain()

        assert sorted(r.url.host for r in transport.requests) == hosts
        bodies = {r.content for r in transport.requests}
        assert len(bodies) == 1
        body = json.loads(bodies.pop())
        assert body["event"] == "review.created"
        assert body["source"] == "performai"
        assert body["data"] == {"review_id": "rev_1"}

    @pytest.mark.asyncio
    async def test_source_comes_from_settings(self, registry, worker_factory, transport):
        settings = Settings(env="test", source="staging-performai")
        await registry.add(make_endpoint())

        async with EventDispatcher(registry, worker_factory(), settings) as dispatcher:
            await dispatcher.trigger("review.created", None)

        assert json.loads(transport.requests[0].content)["source"] == "staging-performai"

    @pytest.mark.asyncio
    async def test_trigger_returns_before_delivery(self, registry, settings, log_store):
        """trigger() only queues; delivery happens on the pool."""
        release = asyncio.Event()

        async def slow(request: httpx.Request) -> httpx.Response:
            await release.wait()
            return httpx.Response(200)

        worker = DeliveryWorker(
            httpx.AsyncClient(transport=httpx.MockTransport(slow)),
            registry,
            DeliveryLogger(log_store),
            settings,
        )
        await registry.add(make_endpoint())

        async with EventDispatcher(registry, worker, settings) as dispatcher:
            await dispatcher.trigger("review.created", {})
            assert log_store.entries == []
            assert dispatcher.pending == 1
            release.set()

        assert dispatcher.pending == 0
        assert [e.outcome for e in log_store.entries] == ["success"]


    @pytest.mark.asyncio
    async def test_later_changes_to_data_not_sent(self, dispatcher, registry, transport):
        """Deliveries carry the data as it was when trigger was called."""
        await registry.add(make_endpoint("a.example.com", secret="abc"))
        await registry.add(make_endpoint("b.example.com"))
        data = {"score": 4}

        await dispatcher.trigger("review.created", data)
        data["score"] = 999
        await dispatcher.drain()

        assert len(transport.requests) == 2
        for request in transport.requests:
            assert json.loads(request.content)["data"] == {"score": 4}
        signed = transport.requests_to("a.example.com")[0]
        assert verify(signed.content, signed.headers["X-PerformAI-Signature"], "abc")


class TestIsolation:
    """A failing endpoint never affects the others."""

    @pytest.mark.asyncio
    async def test_failure_does_not_affect_siblings(
        self, dispatcher, registry, transport, log_store
    ):
        await registry.add(make_endpoint("bad.example.com", max_retries=2))
        await registry.add(make_endpoint("good.example.com"))
        transport.responders["bad.example.com"] = connection_refused

        await dispatcher.trigger("review.created", {"review_id": "rev_1"})
        await dispatcher.drain()

        bad = await registry.get("whk_bad")
        good = await registry.get("whk_good")
        assert (bad.success_count, bad.failure_count) == (0, 1)
        assert (good.success_count, good.failure_count) == (1, 0)

        outcomes = {e.endpoint_id: e.outcome for e in log_store.entries}
        assert outcomes == {"whk_bad": "error", "whk_good": "success"}
        assert len(transport.requests_to("bad.example.com")) == 3
        assert len(transport.requests_to("good.example.com")) == 1

    @pytest.mark.asyncio
    async def test_trigger_returns_normally_with_subscribers(
        self, dispatcher, registry, transport
    ):
        await registry.add(make_endpoint("bad.example.com", max_retries=0))
        await registry.add(make_endpoint("good.example.com"))
        transport.responders["bad.example.com"] = connection_refused

        result = await dispatcher.trigger("review.created", {"review_id": "rev_1"})
        await dispatcher.drain()

        assert result is None
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_pool_survives_exhausted_deliveries(
        self, registry, worker_factory, transport, log_store
    ):
        """Exhausted deliveries leave every pool task running."""
        settings = Settings(env="test", max_concurrent_deliveries=1)
        await registry.add(make_endpoint("bad.example.com", max_retries=0))
        transport.responders["bad.example.com"] = connection_refused

        async with EventDispatcher(registry, worker_factory(), settings) as dispatcher:
            for _ in range(3):
                await dispatcher.trigger("review.created", {})
                await dispatcher.drain()
            assert not any(task.done() for task in dispatcher._workers)

            await registry.add(make_endpoint("good.example.com"))
            await dispatcher.trigger("review.created", {})
            await dispatcher.drain()

        assert len(transport.requests_to("good.example.com")) == 1
        assert [e.outcome for e in log_store.entries] == ["error"] * 4 + ["success"]

    @pytest.mark.asyncio
    async def test_pool_survives_worker_crash(self, registry, settings):
        """An exception escaping the worker does not kill the pool."""
        worker = AsyncMock(spec=DeliveryWorker)
        worker.deliver.side_effect = [RuntimeError("boom"), None]
        settings = Settings(env="test", max_concurrent_deliveries=1)
        await registry.add(make_endpoint())

        async with EventDispatcher(registry, worker, settings) as dispatcher:
            await dispatcher.trigger("review.created", {})
            await dispatcher.drain()
            await dispatcher.trigger("review.created", {})
            await dispatcher.drain()
            assert dispatcher.running

        assert worker.deliver.await_count == 2

    @pytest.mark.asyncio
    async def test_lookup_failure_does_not_raise(self, worker_factory, settings):
        registry = AsyncMock()
        registry.find_active_subscribers.side_effect = ConnectionError("db down")

        async with EventDispatcher(registry, worker_factory(), settings) as dispatcher:
            await dispatcher.trigger("review.created", {})
            assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_unserializable_data_is_dropped(self, dispatcher, registry, transport):
        await registry.add(make_endpoint())

        await dispatcher.trigger("review.created", {"blob": object()})
        await dispatcher.drain()

        assert transport.requests == []


class TestWorkerPool:
    """Concurrency is bounded by max_concurrent_deliveries."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("pool_size", [1, 2, 4])
    async def test_concurrency_bounded(self, pool_size, registry):
        settings = Settings(env="test", max_concurrent_deliveries=pool_size)
        active = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return httpx.Response(200)

        log_store = InMemoryDeliveryLogStore()
        worker = DeliveryWorker(
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            registry,
            DeliveryLogger(log_store),
            settings,
        )
        for i in range(10):
            await registry.add(make_endpoint(f"host{i}.example.com"))

        async with EventDispatcher(registry, worker, settings) as dispatcher:
            await dispatcher.trigger("review.created", {})

        assert peak == pool_size
        assert len(log_store.entries) == 10

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, registry, worker_factory):
        settings = Settings(env="test", max_concurrent_deliveries=3)
        dispatcher = EventDispatcher(registry, worker_factory(), settings)

        await dispatcher.start()
        await dispatcher.start()

        assert len(dispatcher._workers) == 3
        await dispatcher.close()
        assert not dispatcher.running

    @pytest.mark.asyncio
    async def test_trigger_starts_pool(self, registry, worker_factory, settings, transport):
        dispatcher = EventDispatcher(registry, worker_factory(), settings)
        await registry.add(make_endpoint())

        await dispatcher.trigger("review.created", {})
        assert dispatcher.running

        await dispatcher.close()
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_close_without_start(self, registry, worker_factory, settings):
        dispatcher = EventDispatcher(registry, worker_factory(), settings)

        await dispatcher.close()

        assert not dispatcher.running
