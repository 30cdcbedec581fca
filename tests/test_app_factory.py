"""Tests for app construction and the expired-counter sweeper."""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

from mentorgate.adapters.counter_store.base import AbstractCounterStore
from mentorgate.adapters.counter_store.in_memory import InMemoryCounterStore
from mentorgate.core.app_factory import create_app, sweep_expired_counters
from mentorgate.core.config import settings
from mentorgate.throttling import build_guard


async def _inline_threadpool(fn, *args):
    return fn(*args)


@pytest.mark.asyncio
async def test_sweeper_purges_each_interval() -> None:
    store = Mock(spec=AbstractCounterStore)
    store.backend = "memory"
    store.purge_expired.return_value = 0

    sleep = AsyncMock(side_effect=[None, None, asyncio.CancelledError()])
    with patch("mentorgate.core.app_factory.asyncio.sleep", sleep), patch(
        "mentorgate.core.app_factory.run_in_threadpool", _inline_threadpool
    ):
        with pytest.raises(asyncio.CancelledError):
            await sweep_expired_counters(store, 60)

    assert store.purge_expired.call_count == 2
    sleep.assert_awaited_with(60)


@pytest.mark.asyncio
async def test_sweeper_survives_purge_failure() -> None:
    store = Mock(spec=AbstractCounterStore)
    store.backend = "memory"
    store.purge_expired.side_effect = [RuntimeError("boom"), 3]

    sleep = AsyncMock(side_effect=[None, None, asyncio.CancelledError()])
    with patch("mentorgate.core.app_factory.asyncio.sleep", sleep), patch(
        "mentorgate.core.app_factory.run_in_threadpool", _inline_threadpool
    ):
        with pytest.raises(asyncio.CancelledError):
            await sweep_expired_counters(store, 1)

    assert store.purge_expired.call_count == 2


def test_lifespan_closes_store(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.throttle, "sweep_interval_seconds", 3600)
    store = InMemoryCounterStore()
    store.close = Mock()
    app = create_app(build_guard(settings.throttle, store=store))

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        store.close.assert_not_called()

    store.close.assert_called_once()


def test_create_app_builds_guard_from_settings() -> None:
    app = create_app()

    guard = app.state.throttle_guard
    assert guard.store.backend == "memory"
    assert guard.failure_mode == "closed"
    assert guard.binder.registry.frozen is True
