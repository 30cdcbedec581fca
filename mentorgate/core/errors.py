"""Application-level exception types.

Domain errors shared by the throttling core and the HTTP layer. Quota
exhaustion is deliberately absent: a rejected decision is a normal outcome,
not an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    route_id: str
    policy: str
    limit: int
    window_seconds: int
    backend: str
    retry_after: float
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class PolicyValidationError(ValidationAppError):
    """Raised when a policy violates ``limit > 0 and window_seconds > 0``."""


class RegistryFrozenError(ValidationAppError):
    """Raised when a frozen registry or binder is modified."""


class ConfigurationAppError(AppError):
    """Raised for policy declaration mistakes."""


class PolicyNotFoundError(ConfigurationAppError):
    """Raised when a policy name or route binding cannot be resolved."""


class DuplicateBindingError(ConfigurationAppError):
    """Raised when a route is bound twice without ``overwrite=True``."""


class StoreUnavailableError(AppError):
    """Raised when the counter store backing cannot be reached in time."""
