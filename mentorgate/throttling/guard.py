"""Throttle guard: the per-request admission decision.

The guard resolves the route binding, derives the counter key from the
binding scope and caller identity, counts the request exactly once, and
returns a ``ThrottleDecision``. Turning a rejection into a wire response is
the caller's job.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Literal

from mentorgate.adapters.counter_store.base import AbstractCounterStore
from mentorgate.core.errors import StoreUnavailableError, ValidationAppError
from mentorgate.throttling.binder import PolicyBinder

logger = logging.getLogger(__name__)


FailureMode = Literal["open", "closed"]


class DecisionReason(str, Enum):
    ADMITTED = "admitted"
    QUOTA_EXCEEDED = "quota_exceeded"
    STORE_UNAVAILABLE = "store_unavailable"
    DEGRADED = "degraded"
    DISABLED = "disabled"


@dataclass(frozen=True)
class ThrottleDecision:
    """Admission verdict plus the values a response needs.

    Attributes:
        admitted: Whether the request may proceed.
        limit: Limit of the applied policy.
        remaining: Requests left in the current window (0 when rejected).
        reset_at: UNIX epoch seconds when the current window ends.
        reason: Why the request was admitted or rejected. A quota rejection
            and a store failure rejection differ only here.
        policy: Name of the applied policy.
        route_id: Route the decision applies to.
    """

    admitted: bool
    limit: int
    remaining: int
    reset_at: float
    reason: DecisionReason
    policy: str
    route_id: str

    @property
    def quota_exceeded(self) -> bool:
        return self.reason is DecisionReason.QUOTA_EXCEEDED

    @property
    def store_unavailable(self) -> bool:
        return self.reason is DecisionReason.STORE_UNAVAILABLE

    def retry_after_seconds(self, now: float) -> int:
        return max(0, int(math.ceil(self.reset_at - now)))


def hash_identity(identity: str) -> str:
    """Hash an identity for logging without exposing it."""
    return hashlib.sha256(identity.encode()).hexdigest()[:16]


def counter_key(scope_key: str, identity: str) -> str:
    return f"throttle:{scope_key}:{identity}"


class ThrottleGuard:
    """Admission decisions for bound routes.

    Args:
        binder: Route bindings built at startup.
        store: Counter store shared by all requests.
        failure_mode: ``open`` admits when the store is unavailable,
            ``closed`` rejects with reason ``store_unavailable``.
        retry_after_on_failure: Seconds a fail-closed rejection asks the
            client to wait.
        clock: Time source used when ``check`` gets no ``now``.
    """

    def __init__(
        self,
        binder: PolicyBinder,
        store: AbstractCounterStore,
        *,
        failure_mode: FailureMode = "closed",
        retry_after_on_failure: int = 30,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if failure_mode not in ("open", "closed"):
            raise ValueError("failure_mode must be 'open' or 'closed'")
        if retry_after_on_failure < 1:
            raise ValueError("retry_after_on_failure must be >= 1")

        self._binder = binder
        self._store = store
        self._failure_mode = failure_mode
        self._retry_after_on_failure = retry_after_on_failure
        self._clock = clock

    @property
    def binder(self) -> PolicyBinder:
        return self._binder

    @property
    def store(self) -> AbstractCounterStore:
        return self._store

    @property
    def failure_mode(self) -> FailureMode:
        return self._failure_mode

    def check(
        self,
        route_id: str,
        identity: str,
        now: float | None = None,
        *,
        tier: str | None = None,
    ) -> ThrottleDecision:
        """Count one request and decide whether it is admitted.

        Args:
            route_id: Route identifier from the routing layer.
            identity: Authenticated caller id (or IP) from the auth layer.
            now: UNIX time in seconds; defaults to the guard clock.
            tier: Optional subscription tier selecting a tier policy.

        Returns:
            ThrottleDecision for this request.

        Raises:
            PolicyNotFoundError: If the route has no binding.
            ValidationAppError: If identity is empty.
        """
        if not identity:
            raise ValidationAppError(
                code="invalid_identity",
                message="identity must be a non-empty string",
                details={"route_id": route_id},
            )

        binding = self._binder.binding_for(route_id)
        policy = binding.policy_for(tier)
        key = counter_key(binding.scope_key(policy), identity)
        if now is None:
            now = self._clock()

        log_extra = {
            "route_id": route_id,
            "policy": policy.name,
            "identity_hash": hash_identity(identity),
            "limit": policy.limit,
            "window_s": policy.window_seconds,
        }

        try:
            result = self._store.increment_and_check(
                key, policy.limit, policy.window_seconds, now
            )
        except StoreUnavailableError:
            return self._on_store_unavailable(route_id, policy.name, policy.limit, now, log_extra)

        if result.admitted:
            logger.debug(
                "throttle.admitted",
                extra={**log_extra, "count": result.count},
            )
            return ThrottleDecision(
                admitted=True,
                limit=policy.limit,
                remaining=max(0, policy.limit - result.count),
                reset_at=result.reset_at,
                reason=DecisionReason.ADMITTED,
                policy=policy.name,
                route_id=route_id,
            )

        logger.info(
            "throttle.rejected",
            extra={
                **log_extra,
                "count": result.count,
                "retry_after_s": max(0, int(math.ceil(result.reset_at - now))),
            },
        )
        return ThrottleDecision(
            admitted=False,
            limit=policy.limit,
            remaining=0,
            reset_at=result.reset_at,
            reason=DecisionReason.QUOTA_EXCEEDED,
            policy=policy.name,
            route_id=route_id,
        )

    def _on_store_unavailable(
        self,
        route_id: str,
        policy_name: str,
        limit: int,
        now: float,
        log_extra: dict,
    ) -> ThrottleDecision:
        if self._failure_mode == "open":
            logger.warning(
                "throttle.degraded",
                extra={**log_extra, "failure_mode": "open"},
            )
            return ThrottleDecision(
                admitted=True,
                limit=limit,
                remaining=limit,
                reset_at=now,
                reason=DecisionReason.DEGRADED,
                policy=policy_name,
                route_id=route_id,
            )

        logger.warning(
            "throttle.store_unavailable",
            extra={
                **log_extra,
                "failure_mode": "closed",
                "retry_after_s": self._retry_after_on_failure,
            },
        )
        return ThrottleDecision(
            admitted=False,
            limit=limit,
            remaining=0,
            reset_at=now + self._retry_after_on_failure,
            reason=DecisionReason.STORE_UNAVAILABLE,
            policy=policy_name,
            route_id=route_id,
        )

    def pass_through(
        self,
        route_id: str,
        now: float | None = None,
        *,
        tier: str | None = None,
    ) -> ThrottleDecision:
        """Admit without counting, for when throttling is switched off.

        Raises:
            PolicyNotFoundError: If the route has no binding.
        """
        policy = self._binder.binding_for(route_id).policy_for(tier)
        if now is None:
            now = self._clock()
        return ThrottleDecision(
            admitted=True,
            limit=policy.limit,
            remaining=policy.limit,
            reset_at=now,
            reason=DecisionReason.DISABLED,
            policy=policy.name,
            route_id=route_id,
        )

    def reset(self, route_id: str, identity: str, *, tier: str | None = None) -> bool:
        """Drop the caller's counter for a route. Returns whether one existed.

        Raises:
            PolicyNotFoundError: If the route has no binding.
            StoreUnavailableError: If the store cannot be reached.
        """
        binding = self._binder.binding_for(route_id)
        policy = binding.policy_for(tier)
        removed = self._store.reset(counter_key(binding.scope_key(policy), identity))
        logger.info(
            "throttle.counter_reset",
            extra={
                "route_id": route_id,
                "policy": policy.name,
                "identity_hash": hash_identity(identity),
                "removed": removed,
            },
        )
        return removed
