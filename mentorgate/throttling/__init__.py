"""Per-route, per-identity request throttling.

Typical startup wiring::

    registry = build_default_registry()
    binder = PolicyBinder(registry)
    binder.bind_all(ROUTE_POLICIES)
    registry.freeze(); binder.freeze()
    guard = ThrottleGuard(binder, InMemoryCounterStore())

and per request::

    decision = guard.check("POST /learning/roadmap", user_id)
"""

from __future__ import annotations

from typing import Any, Mapping

from mentorgate.adapters.counter_store import AbstractCounterStore, build_counter_store
from mentorgate.core.config import ThrottleSettings
from mentorgate.throttling.binder import InlinePolicy, PolicyBinder, RouteBinding
from mentorgate.throttling.catalogue import ROUTE_POLICIES
from mentorgate.throttling.guard import DecisionReason, ThrottleDecision, ThrottleGuard
from mentorgate.throttling.policies import (
    PRESETS,
    PolicyRegistry,
    RateLimitPolicy,
    build_default_registry,
)

__all__ = [
    "DecisionReason",
    "InlinePolicy",
    "PRESETS",
    "PolicyBinder",
    "PolicyRegistry",
    "ROUTE_POLICIES",
    "RateLimitPolicy",
    "RouteBinding",
    "ThrottleDecision",
    "ThrottleGuard",
    "build_default_registry",
    "build_guard",
]


def build_guard(
    throttle_settings: ThrottleSettings,
    *,
    routes: Mapping[str, Any] = ROUTE_POLICIES,
    store: AbstractCounterStore | None = None,
) -> ThrottleGuard:
    """Build a guard with presets, the given route table, and a frozen config.

    Raises:
        PolicyNotFoundError: If the route table names an unregistered policy.
        PolicyValidationError: If an inline policy in the table is invalid.
    """
    registry = build_default_registry()
    binder = PolicyBinder(registry)
    binder.bind_all(routes)
    registry.freeze()
    binder.freeze()

    return ThrottleGuard(
        binder,
        store if store is not None else build_counter_store(throttle_settings),
        failure_mode=throttle_settings.failure_mode,
        retry_after_on_failure=throttle_settings.retry_after_on_failure_seconds,
    )
