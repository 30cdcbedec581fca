"""Redis-backed fixed-window counter store.

Each call runs one Lua script against a single hash key, so the
read-reset-increment sequence is atomic on the server and concurrent workers
share one linearizable counter per key. Keys carry a TTL of twice the window
so Redis collects abandoned counters on its own.
"""

from __future__ import annotations

import logging

import redis
from redis.exceptions import RedisError

from mentorgate.adapters.counter_store.base import (
    AbstractCounterStore,
    CounterResult,
    validate_counter_args,
)
from mentorgate.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


# KEYS[1] counter hash; ARGV[1] now (seconds, float); ARGV[2] window seconds.
# The window start is returned as a string so fractional seconds survive the
# Lua number -> Redis integer reply conversion.
INCREMENT_SCRIPT = """
local state = redis.call('HMGET', KEYS[1], 'count', 'start')
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local count = tonumber(state[1])
local start = tonumber(state[2])
if count == nil or start == nil or now - start >= window then
  count = 1
  start = now
  redis.call('HSET', KEYS[1], 'count', 1, 'start', ARGV[1])
  redis.call('EXPIRE', KEYS[1], window * 2)
  return {count, ARGV[1]}
end
count = redis.call('HINCRBY', KEYS[1], 'count', 1)
return {count, state[2]}
"""


class RedisCounterStore(AbstractCounterStore):
    """Counter store shared by every worker connected to the same Redis."""

    backend = "redis"

    def __init__(self, client: redis.Redis, *, key_prefix: str = "mentorgate") -> None:
        self._client = client
        self._key_prefix = key_prefix
        self._script = client.register_script(INCREMENT_SCRIPT)

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        socket_timeout: float,
        key_prefix: str = "mentorgate",
    ) -> "RedisCounterStore":
        client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )
        return cls(client, key_prefix=key_prefix)

    def _redis_key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    def _unavailable(self, exc: RedisError, operation: str) -> StoreUnavailableError:
        logger.error(
            "counter_store.unavailable",
            extra={
                "backend": self.backend,
                "operation": operation,
                "error_type": type(exc).__name__,
            },
        )
        return StoreUnavailableError(
            code="store_unavailable",
            message="Rate limit counter store is unavailable",
            details={"backend": self.backend, "hint": type(exc).__name__},
        )

    def increment_and_check(
        self,
        key: str,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> CounterResult:
        validate_counter_args(key, limit, window_seconds)

        try:
            count, start = self._script(
                keys=[self._redis_key(key)],
                args=[repr(float(now)), window_seconds],
            )
        except RedisError as exc:
            raise self._unavailable(exc, "increment_and_check") from exc

        count = int(count)
        window_start = float(start)
        return CounterResult(
            count=count,
            admitted=count <= limit,
            window_start=window_start,
            reset_at=window_start + window_seconds,
        )

    def reset(self, key: str) -> bool:
        try:
            return bool(self._client.delete(self._redis_key(key)))
        except RedisError as exc:
            raise self._unavailable(exc, "reset") from exc

    def close(self) -> None:
        self._client.close()
