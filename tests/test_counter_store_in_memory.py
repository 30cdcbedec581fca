"""Unit tests for the in-memory fixed-window counter store."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from mentorgate.adapters.counter_store.in_memory import InMemoryCounterStore


def test_first_request_starts_window() -> None:
    store = InMemoryCounterStore()

    result = store.increment_and_check("k", 3, 60, now=1000.0)

    assert result.count == 1
    assert result.admitted is True
    assert result.window_start == 1000.0
    assert result.reset_at == 1060.0


def test_admits_up_to_limit_then_rejects() -> None:
    store = InMemoryCounterStore()

    results = [store.increment_and_check("k", 3, 60, now=1000.0 + i) for i in range(4)]

    assert [r.admitted for r in results] == [True, True, True, False]
    assert [r.count for r in results] == [1, 2, 3, 4]
    # The window is anchored at the first request, not the latest
    assert {r.reset_at for r in results} == {1060.0}


def test_resets_when_window_expires() -> None:
    store = InMemoryCounterStore()

    assert store.increment_and_check("k", 1, 10, now=1000.0).admitted is True
    assert store.increment_and_check("k", 1, 10, now=1009.9).admitted is False

    fresh = store.increment_and_check("k", 1, 10, now=1010.0)
    assert fresh.admitted is True
    assert fresh.count == 1
    assert fresh.window_start == 1010.0


def test_stale_counter_never_read_without_reset() -> None:
    store = InMemoryCounterStore()
    store.increment_and_check("k", 1, 10, now=0.0)

    result = store.increment_and_check("k", 1, 10, now=10_000.0)

    assert result.count == 1
    assert result.window_start == 10_000.0


def test_boundary_burst_admits_up_to_twice_the_limit() -> None:
    store = InMemoryCounterStore()

    late = [store.increment_and_check("k", 2, 10, now=5.0) for _ in range(2)]
    early = [store.increment_and_check("k", 2, 10, now=15.0) for _ in range(2)]

    # window starts at 5, so 15 opens the next one: four admits in quick succession
    assert all(r.admitted for r in late + early)


def test_isolated_by_key() -> None:
    store = InMemoryCounterStore()

    assert store.increment_and_check("k1", 1, 60, now=1000.0).admitted is True
    assert store.increment_and_check("k1", 1, 60, now=1000.0).admitted is False

    assert store.increment_and_check("k2", 1, 60, now=1000.0).admitted is True


def test_reset_drops_counter() -> None:
    store = InMemoryCounterStore()
    store.increment_and_check("k", 1, 60, now=1000.0)

    assert store.reset("k") is True
    assert store.reset("k") is False
    assert store.increment_and_check("k", 1, 60, now=1001.0).count == 1


def test_purge_expired_removes_only_expired() -> None:
    store = InMemoryCounterStore()
    store.increment_and_check("old", 5, 10, now=0.0)
    store.increment_and_check("new", 5, 10, now=95.0)

    removed = store.purge_expired(now=100.0)

    assert removed == 1
    assert len(store) == 1
    assert store.increment_and_check("new", 5, 10, now=100.0).count == 2


def test_purge_skips_counter_in_use() -> None:
    store = InMemoryCounterStore()
    store.increment_and_check("busy", 5, 10, now=0.0)

    counter = store._counters["busy"]
    with counter.lock:
        assert store.purge_expired(now=100.0) == 0

    assert store.purge_expired(now=100.0) == 1


@pytest.mark.parametrize(
    "args",
    [
        ("", 1, 60),
        ("k", 0, 60),
        ("k", 1, 0),
    ],
)
def test_invalid_args(args: tuple) -> None:
    store = InMemoryCounterStore()
    with pytest.raises(ValueError):
        store.increment_and_check(*args, now=0.0)


def test_concurrent_increments_admit_exactly_limit() -> None:
    store = InMemoryCounterStore()
    limit = 10
    n = 10 * limit
    barrier = threading.Barrier(n)

    def hit(_: int):
        barrier.wait()
        return store.increment_and_check("shared", limit, 60, now=1000.0)

    with ThreadPoolExecutor(max_workers=n) as pool:
        results = list(pool.map(hit, range(n)))

    assert sum(r.admitted for r in results) == limit
    # No lost updates: every caller saw a distinct count
    assert sorted(r.count for r in results) == list(range(1, n + 1))


def test_concurrent_increments_with_sweeper_running() -> None:
    store = InMemoryCounterStore()
    limit = 25
    n = 10 * limit
    stop = threading.Event()

    def sweep() -> None:
        while not stop.is_set():
            store.purge_expired(now=1000.0)

    sweeper = threading.Thread(target=sweep)
    sweeper.start()
    try:
        with ThreadPoolExecutor(max_workers=32) as pool:
            results = list(
                pool.map(lambda _: store.increment_and_check("k", limit, 60, now=1000.0), range(n))
            )
    finally:
        stop.set()
        sweeper.join()

    assert sum(r.admitted for r in results) == limit
