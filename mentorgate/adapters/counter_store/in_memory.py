"""In-memory fixed-window counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe with per-key locks; a short registry lock only guards finding
  or creating the entry for a key, so different keys never wait on each
  other's counting.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from mentorgate.adapters.counter_store.base import (
    AbstractCounterStore,
    CounterResult,
    validate_counter_args,
)

logger = logging.getLogger(__name__)


@dataclass
class _Counter:
    count: int = 0
    window_start: float = 0.0
    window_seconds: int = 0
    # Set by the sweeper once the entry is unlinked; holders must look up again.
    retired: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def expired(self, now: float) -> bool:
        return now - self.window_start >= self.window_seconds


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store keeping fixed-window state in a dict.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker enforces its own
        independent limits. Use the Redis store for shared limits.
    """

    backend = "memory"

    def __init__(self) -> None:
        self._counters: dict[str, _Counter] = {}
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._counters)

    def _entry(self, key: str) -> _Counter:
        with self._registry_lock:
            counter = self._counters.get(key)
            if counter is None:
                counter = _Counter()
                self._counters[key] = counter
            return counter

    def increment_and_check(
        self,
        key: str,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> CounterResult:
        """Count one request for ``key`` under its per-key lock.

        Raises:
            ValueError: If key is empty or limit/window are invalid.
        """
        validate_counter_args(key, limit, window_seconds)

        while True:
            counter = self._entry(key)
            with counter.lock:
                if counter.retired:
                    continue

                if counter.count == 0 or now - counter.window_start >= window_seconds:
                    counter.count = 1
                    counter.window_start = now
                else:
                    counter.count += 1
                counter.window_seconds = window_seconds

                return CounterResult(
                    count=counter.count,
                    admitted=counter.count <= limit,
                    window_start=counter.window_start,
                    reset_at=counter.window_start + window_seconds,
                )

    def reset(self, key: str) -> bool:
        with self._registry_lock:
            counter = self._counters.pop(key, None)
        if counter is None:
            return False
        with counter.lock:
            counter.retired = True
        return True

    def purge_expired(self, now: float) -> int:
        """Unlink expired counters without waiting on busy keys.

        A counter whose lock is held is in use by a request and is left for
        the next sweep.
        """
        with self._registry_lock:
            candidates = list(self._counters.items())

        removed = 0
        for key, counter in candidates:
            if not counter.lock.acquire(blocking=False):
                continue
            try:
                if counter.retired or not counter.expired(now):
                    continue
                with self._registry_lock:
                    if self._counters.get(key) is counter:
                        del self._counters[key]
                counter.retired = True
                removed += 1
            finally:
                counter.lock.release()

        if removed:
            logger.debug(
                "counter_store.purged",
                extra={"backend": self.backend, "removed": removed, "remaining": len(self._counters)},
            )
        return removed
