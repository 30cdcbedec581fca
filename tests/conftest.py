"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set here, before any test module imports
``mentorgate.core.config``, so the settings singleton sees them.
"""

import os

import pytest

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("THROTTLE_BACKEND", "memory")
os.environ.setdefault("THROTTLE_FAILURE_MODE", "closed")
os.environ.setdefault("THROTTLE_SWEEP_INTERVAL_SECONDS", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from mentorgate.adapters.counter_store.in_memory import InMemoryCounterStore  # noqa: E402
from mentorgate.throttling.binder import PolicyBinder  # noqa: E402
from mentorgate.throttling.guard import ThrottleGuard  # noqa: E402
from mentorgate.throttling.policies import build_default_registry  # noqa: E402


@pytest.fixture
def registry():
    """Fresh registry holding the five presets."""
    return build_default_registry()


@pytest.fixture
def binder(registry):
    return PolicyBinder(registry)


@pytest.fixture
def store() -> InMemoryCounterStore:
    return InMemoryCounterStore()


@pytest.fixture
def guard(binder, store) -> ThrottleGuard:
    """Fail-closed guard over an in-memory store with no routes bound yet."""
    return ThrottleGuard(binder, store, failure_mode="closed", retry_after_on_failure=30)
