"""Throttling dependency for FastAPI routes.

This module wires the throttle guard into the HTTP layer. Routes opt in at
declaration time::

    @router.post(
        "/learning/roadmap",
        dependencies=[Depends(throttle_route("POST /learning/roadmap"))],
    )

The guard itself lives on ``app.state.throttle_guard`` (set by the app
factory). Identity comes from the header set by the upstream auth layer,
falling back to the client IP.

Outcomes:
- admitted → X-RateLimit-* headers on the response
- quota exhausted → 429 with Retry-After
- store unavailable under fail-closed → 503 with Retry-After
- unbound route → admitted without headers
"""

from __future__ import annotations

import logging
import math
import time
from typing import Awaitable, Callable

from fastapi import HTTPException, Request, Response, status
from starlette.concurrency import run_in_threadpool

from mentorgate.core.config import settings
from mentorgate.core.errors import PolicyNotFoundError
from mentorgate.throttling.guard import ThrottleDecision, ThrottleGuard, hash_identity

logger = logging.getLogger(__name__)


ANONYMOUS = "anonymous"


def get_throttle_guard(request: Request) -> ThrottleGuard:
    """Return the guard built at startup."""
    return request.app.state.throttle_guard


def resolve_identity(request: Request) -> str:
    """Pick the identity a limit is enforced against.

    Authenticated user id first, then client IP, then ``anonymous``.
    """
    user_id = request.headers.get(settings.throttle.identity_header)
    if user_id:
        return f"user:{user_id}"
    if request.client and request.client.host:
        return f"ip:{request.client.host}"
    return ANONYMOUS


def resolve_tier(request: Request) -> str | None:
    return request.headers.get(settings.throttle.tier_header) or None


def decision_headers(decision: ThrottleDecision, now: float) -> dict[str, str]:
    """Build the rate limit response headers for a decision."""
    if not settings.throttle.include_headers:
        return {}

    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(math.ceil(decision.reset_at)),
    }
    if not decision.admitted:
        headers["Retry-After"] = str(decision.retry_after_seconds(now))
    return headers


def raise_for_decision(decision: ThrottleDecision, now: float) -> None:
    """Translate a rejection into an HTTPException.

    Raises:
        HTTPException: 429 for quota rejections, 503 for store failures.
    """
    if decision.admitted:
        return

    headers = decision_headers(decision, now)
    if decision.store_unavailable:
        headers.setdefault("Retry-After", str(decision.retry_after_seconds(now)))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiting is temporarily unavailable. Try again later.",
            headers=headers,
        )

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Too many requests. Please try again later.",
        headers=headers or None,
    )


async def run_check(
    guard: ThrottleGuard,
    route_id: str,
    identity: str,
    *,
    tier: str | None = None,
) -> tuple[ThrottleDecision, float]:
    """Run ``guard.check`` off the event loop (the Redis store blocks)."""
    now = time.time()
    decision = await run_in_threadpool(guard.check, route_id, identity, now, tier=tier)
    return decision, now


def throttle_route(route_id: str) -> Callable[[Request, Response], Awaitable[None]]:
    """Create the dependency enforcing the policy bound to ``route_id``."""

    async def enforce_throttle(request: Request, response: Response) -> None:
        if not settings.throttle.enabled:
            return

        guard = get_throttle_guard(request)
        identity = resolve_identity(request)
        try:
            decision, now = await run_check(
                guard, route_id, identity, tier=resolve_tier(request)
            )
        except PolicyNotFoundError:
            logger.debug(
                "throttle.unbound_route",
                extra={"route_id": route_id, "identity_hash": hash_identity(identity)},
            )
            return

        raise_for_decision(decision, now)
        for name, value in decision_headers(decision, now).items():
            response.headers[name] = value

    return enforce_throttle
