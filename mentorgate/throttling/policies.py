"""Rate limit policies and the process-wide policy registry.

A policy is a ``(limit, window_seconds)`` pair under a name. The registry is
populated once at startup (presets plus any extras), frozen, and only read
afterwards.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterator

from mentorgate.core.errors import (
    PolicyNotFoundError,
    PolicyValidationError,
    RegistryFrozenError,
)

logger = logging.getLogger(__name__)


DEFAULT = "default"
AI_ENDPOINT = "ai_endpoint"
AUTH = "auth"
UPLOAD = "upload"
PREMIUM = "premium"

# name -> (limit, window_seconds)
PRESETS: dict[str, tuple[int, int]] = {
    DEFAULT: (100, 3600),
    AI_ENDPOINT: (20, 3600),
    AUTH: (5, 900),
    UPLOAD: (10, 3600),
    PREMIUM: (1000, 3600),
}


@dataclass(frozen=True)
class RateLimitPolicy:
    """Maximum admitted requests per fixed window.

    Attributes:
        name: Policy identifier, unique within a registry.
        limit: Maximum admitted requests per window.
        window_seconds: Window length in seconds.

    Raises:
        PolicyValidationError: If name is empty or limit/window are not positive.
    """

    name: str
    limit: int
    window_seconds: int

    def __post_init__(self) -> None:
        if not self.name:
            raise PolicyValidationError(
                code="invalid_policy",
                message="Policy name must be a non-empty string",
            )
        # bool is an int subclass; True as a limit is almost certainly a bug
        for field_name in ("limit", "window_seconds"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise PolicyValidationError(
                    code="invalid_policy",
                    message=f"{field_name} must be a positive integer",
                    details={
                        "policy": self.name,
                        "hint": f"got {value!r}",
                    },
                )


class PolicyRegistry:
    """Named policy table.

    ``register`` replaces a policy with the same name. Once ``freeze`` is
    called the registry is read-only; request-time code only calls
    ``resolve``.
    """

    def __init__(self) -> None:
        self._policies: dict[str, RateLimitPolicy] = {}
        self._lock = threading.Lock()
        self._frozen = False

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"PolicyRegistry(policies={sorted(self._policies)}, frozen={self._frozen})"

    def __contains__(self, name: object) -> bool:
        return name in self._policies

    def __iter__(self) -> Iterator[RateLimitPolicy]:
        return iter(list(self._policies.values()))

    def __len__(self) -> int:
        return len(self._policies)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, name: str, limit: int, window_seconds: int) -> RateLimitPolicy:
        """Add or replace a named policy.

        Args:
            name: Policy name.
            limit: Maximum admitted requests per window.
            window_seconds: Window length in seconds.

        Returns:
            The registered policy.

        Raises:
            PolicyValidationError: If the policy values are invalid.
            RegistryFrozenError: If the registry has been frozen.
        """
        policy = RateLimitPolicy(name=name, limit=limit, window_seconds=window_seconds)
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    code="registry_frozen",
                    message="Policy registry is frozen; register policies before startup completes",
                    details={"policy": name},
                )
            replaced = name in self._policies
            self._policies[name] = policy

        logger.debug(
            "policy.registered",
            extra={
                "policy": name,
                "limit": limit,
                "window_s": window_seconds,
                "replaced": replaced,
            },
        )
        return policy

    def resolve(self, name: str) -> RateLimitPolicy:
        """Return the policy registered under ``name``.

        Raises:
            PolicyNotFoundError: If no policy has that name.
        """
        try:
            return self._policies[name]
        except KeyError:
            raise PolicyNotFoundError(
                code="policy_not_found",
                message=f"Rate limit policy '{name}' is not registered",
                details={"policy": name, "hint": f"known policies: {', '.join(sorted(self._policies))}"},
            ) from None

    def names(self) -> list[str]:
        return sorted(self._policies)

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True


def build_default_registry() -> PolicyRegistry:
    """Create a registry holding the five preset policies."""
    registry = PolicyRegistry()
    for name, (limit, window_seconds) in PRESETS.items():
        registry.register(name, limit, window_seconds)
    return registry
