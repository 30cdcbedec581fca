"""Counter store interfaces.

The throttle guard depends on this abstraction (not the concrete
implementation) so the storage backend (in-process or Redis) can be swapped
through configuration.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CounterResult:
    """Outcome of a single increment-and-check.

    Attributes:
        count: Post-increment request count within the current window.
        admitted: Whether ``count`` is within the limit.
        window_start: UNIX epoch seconds when the current window started.
        reset_at: UNIX epoch seconds when the current window ends.
    """

    count: int
    admitted: bool
    window_start: float
    reset_at: float


class AbstractCounterStore(ABC):
    """Fixed-window counters keyed by ``(identity, scope)``.

    A counter starts at ``window_start = now`` on the first request for its
    key and is reset by the first request arriving at or after
    ``window_start + window_seconds``. Requests straddling a boundary can
    therefore admit up to ``2 * limit`` in a short burst.
    """

    backend: str = "abstract"

    @abstractmethod
    def increment_and_check(
        self,
        key: str,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> CounterResult:
        """Atomically count one request for ``key`` and report the verdict.

        Args:
            key: Counter key.
            limit: Maximum admitted requests per window.
            window_seconds: Window length in seconds.
            now: UNIX time in seconds of the request.

        Returns:
            CounterResult for the post-increment state.

        Raises:
            StoreUnavailableError: If the backing store cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str) -> bool:
        """Drop the counter for ``key``. Returns whether one existed."""
        raise NotImplementedError

    def purge_expired(self, now: float) -> int:
        """Remove counters whose window has ended. Returns how many went."""
        return 0

    def close(self) -> None:
        """Release backend resources."""


def validate_counter_args(key: str, limit: int, window_seconds: int) -> None:
    """Reject arguments no policy could have produced.

    Raises:
        ValueError: If key is empty or limit/window are not positive.
    """
    if not key:
        raise ValueError("key must be a non-empty string")
    if limit < 1:
        raise ValueError("limit must be >= 1")
    if window_seconds < 1:
        raise ValueError("window_seconds must be >= 1")
