"""Route-to-policy binding, performed at route-declaration time.

Routes opt in to throttling by binding a route id (``"POST /learning/roadmap"``)
to either a preset name or an inline ``(limit, window_seconds)`` pair. The
resulting table is built once at startup and only read while serving.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal, Mapping, Union

from mentorgate.core.errors import (
    DuplicateBindingError,
    PolicyNotFoundError,
    PolicyValidationError,
    RegistryFrozenError,
)
from mentorgate.throttling.policies import PolicyRegistry, RateLimitPolicy

logger = logging.getLogger(__name__)


Scope = Literal["route", "policy"]


@dataclass(frozen=True)
class InlinePolicy:
    """A route-specific policy declared without a preset name."""

    limit: int
    window_seconds: int


PolicySpec = Union[str, InlinePolicy, tuple, Mapping[str, Any]]


@dataclass(frozen=True)
class RouteBinding:
    """The policy attached to a single route.

    Attributes:
        route_id: Route identifier supplied by the routing layer.
        policy: Policy applied to callers without a tier override.
        scope: ``route`` counts each route separately; ``policy`` shares one
            counter across every route bound to the same policy.
        tier_policies: Per-subscription-tier policy overrides.
    """

    route_id: str
    policy: RateLimitPolicy
    scope: Scope = "route"
    tier_policies: Mapping[str, RateLimitPolicy] = field(default_factory=dict)

    def policy_for(self, tier: str | None) -> RateLimitPolicy:
        if tier is not None:
            return self.tier_policies.get(tier.lower(), self.policy)
        return self.policy

    def scope_key(self, policy: RateLimitPolicy) -> str:
        if self.scope == "policy":
            return f"policy:{policy.name}"
        return f"route:{self.route_id}:{policy.name}"


def inline_policy_name(route_id: str) -> str:
    return f"inline:{route_id}"


class PolicyBinder:
    """Maps route ids to resolved policies."""

    def __init__(self, registry: PolicyRegistry) -> None:
        self._registry = registry
        self._bindings: dict[str, RouteBinding] = {}
        self._lock = threading.Lock()
        self._frozen = False

    def __contains__(self, route_id: object) -> bool:
        return route_id in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)

    @property
    def registry(self) -> PolicyRegistry:
        return self._registry

    def _resolve_spec(self, route_id: str, spec: PolicySpec) -> RateLimitPolicy:
        if isinstance(spec, str):
            return self._registry.resolve(spec)

        if isinstance(spec, InlinePolicy):
            limit, window_seconds = spec.limit, spec.window_seconds
        elif isinstance(spec, tuple) and len(spec) == 2:
            limit, window_seconds = spec
        elif isinstance(spec, Mapping):
            try:
                limit, window_seconds = spec["limit"], spec["window_seconds"]
            except KeyError as exc:
                raise PolicyValidationError(
                    code="invalid_policy",
                    message=f"Inline policy for '{route_id}' is missing '{exc.args[0]}'",
                    details={"route_id": route_id},
                ) from exc
        else:
            raise PolicyValidationError(
                code="invalid_policy",
                message=f"Unsupported policy declaration for '{route_id}'",
                details={"route_id": route_id, "hint": type(spec).__name__},
            )

        return RateLimitPolicy(
            name=inline_policy_name(route_id),
            limit=limit,
            window_seconds=window_seconds,
        )

    def bind(
        self,
        route_id: str,
        policy: PolicySpec,
        *,
        scope: Scope = "route",
        tier_policies: Mapping[str, PolicySpec] | None = None,
        overwrite: bool = False,
    ) -> RouteBinding:
        """Attach a policy to a route.

        Args:
            route_id: Route identifier.
            policy: Preset name, ``InlinePolicy``, ``(limit, window_seconds)``
                tuple, or ``{"limit": .., "window_seconds": ..}`` mapping.
            scope: Counter scope, ``route`` or ``policy``.
            tier_policies: Optional tier name -> policy spec overrides.
            overwrite: Replace an existing binding instead of failing.

        Returns:
            The new binding.

        Raises:
            PolicyNotFoundError: If a named policy is not registered.
            PolicyValidationError: If an inline policy is invalid.
            DuplicateBindingError: If the route is already bound and
                ``overwrite`` is false.
            RegistryFrozenError: If the binder has been frozen.
        """
        if not route_id:
            raise PolicyValidationError(
                code="invalid_route",
                message="route_id must be a non-empty string",
            )
        if scope not in ("route", "policy"):
            raise PolicyValidationError(
                code="invalid_scope",
                message=f"Unsupported binding scope '{scope}'",
                details={"route_id": route_id},
            )

        resolved = self._resolve_spec(route_id, policy)
        tiers = {
            tier.lower(): self._resolve_spec(route_id, spec)
            for tier, spec in (tier_policies or {}).items()
        }
        binding = RouteBinding(
            route_id=route_id,
            policy=resolved,
            scope=scope,
            tier_policies=MappingProxyType(tiers),
        )

        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    code="binder_frozen",
                    message="Route bindings are frozen; bind routes before startup completes",
                    details={"route_id": route_id},
                )
            if route_id in self._bindings and not overwrite:
                raise DuplicateBindingError(
                    code="duplicate_binding",
                    message=f"Route '{route_id}' is already bound",
                    details={
                        "route_id": route_id,
                        "policy": self._bindings[route_id].policy.name,
                        "hint": "pass overwrite=True to replace the binding",
                    },
                )
            self._bindings[route_id] = binding

        logger.debug(
            "route.bound",
            extra={
                "route_id": route_id,
                "policy": resolved.name,
                "limit": resolved.limit,
                "window_s": resolved.window_seconds,
                "scope": scope,
                "tiers": sorted(tiers),
            },
        )
        return binding

    def bind_all(self, table: Mapping[str, Any], *, overwrite: bool = False) -> None:
        """Bind a declarative route table.

        Values are either a policy spec or a mapping with a ``policy`` key and
        optional ``scope`` / ``tiers`` keys.
        """
        for route_id, entry in table.items():
            if isinstance(entry, Mapping) and "policy" in entry:
                self.bind(
                    route_id,
                    entry["policy"],
                    scope=entry.get("scope", "route"),
                    tier_policies=entry.get("tiers"),
                    overwrite=overwrite,
                )
            else:
                self.bind(route_id, entry, overwrite=overwrite)

    def binding_for(self, route_id: str) -> RouteBinding:
        """Return the binding for ``route_id``.

        Raises:
            PolicyNotFoundError: If the route has no binding.
        """
        try:
            return self._bindings[route_id]
        except KeyError:
            raise PolicyNotFoundError(
                code="route_not_bound",
                message=f"Route '{route_id}' has no rate limit binding",
                details={"route_id": route_id},
            ) from None

    def bindings(self) -> list[RouteBinding]:
        return [self._bindings[route_id] for route_id in sorted(self._bindings)]

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True
