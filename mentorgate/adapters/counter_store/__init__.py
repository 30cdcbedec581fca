"""Counter store adapters.

This package keeps the throttle guard independent of where counters live:
an in-process store for single-worker deployments and tests, and a Redis
store for limits shared across workers.
"""

from __future__ import annotations

from mentorgate.adapters.counter_store.base import AbstractCounterStore, CounterResult
from mentorgate.adapters.counter_store.in_memory import InMemoryCounterStore
from mentorgate.adapters.counter_store.redis_store import RedisCounterStore
from mentorgate.core.config import ThrottleSettings

__all__ = [
    "AbstractCounterStore",
    "CounterResult",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "build_counter_store",
]


def build_counter_store(throttle_settings: ThrottleSettings) -> AbstractCounterStore:
    """Create the counter store selected by ``THROTTLE_BACKEND``."""
    if throttle_settings.backend == "redis":
        return RedisCounterStore.from_url(
            throttle_settings.redis_url,
            socket_timeout=throttle_settings.redis_socket_timeout_seconds,
            key_prefix=throttle_settings.redis_key_prefix,
        )
    return InMemoryCounterStore()
