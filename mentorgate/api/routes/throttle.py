import time

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from mentorgate.core.config import settings
from mentorgate.core.rate_limit import (
    decision_headers,
    get_throttle_guard,
    run_check,
)
from mentorgate.schemas.throttle import (
    CheckRequest,
    DecisionResponse,
    PolicyResponse,
    ResetRequest,
    ResetResponse,
    RouteBindingResponse,
)
from mentorgate.throttling.guard import ThrottleGuard

router = APIRouter(prefix="/throttle", tags=["Throttle"])


@router.get("/policies", response_model=list[PolicyResponse])
async def list_policies(
    guard: ThrottleGuard = Depends(get_throttle_guard),
) -> list[PolicyResponse]:
    """List every registered policy, presets included."""
    registry = guard.binder.registry
    return [PolicyResponse.from_policy(registry.resolve(name)) for name in registry.names()]


@router.get("/routes", response_model=list[RouteBindingResponse])
async def list_routes(
    guard: ThrottleGuard = Depends(get_throttle_guard),
) -> list[RouteBindingResponse]:
    """List route bindings in route id order."""
    return [RouteBindingResponse.from_binding(b) for b in guard.binder.bindings()]


@router.post(
    "/check",
    response_model=DecisionResponse,
    responses={
        404: {"description": "Route has no binding"},
        429: {"model": DecisionResponse, "description": "Quota exhausted"},
        503: {"model": DecisionResponse, "description": "Counter store unavailable (fail-closed)"},
    },
)
async def check(
    body: CheckRequest,
    guard: ThrottleGuard = Depends(get_throttle_guard),
) -> JSONResponse:
    """Count one request for ``identity`` on ``route_id`` and return the verdict.

    The decision body is returned for rejections too, with 429 for an
    exhausted quota and 503 when the store failed closed. With throttling
    switched off nothing is counted and the verdict has reason ``disabled``.
    """
    if not settings.throttle.enabled:
        decision = guard.pass_through(body.route_id, time.time(), tier=body.tier)
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=DecisionResponse.from_decision(decision).model_dump(mode="json"),
        )

    decision, now = await run_check(guard, body.route_id, body.identity, tier=body.tier)

    headers = decision_headers(decision, now)
    status_code = status.HTTP_200_OK
    if not decision.admitted:
        headers.setdefault("Retry-After", str(decision.retry_after_seconds(now)))
    if decision.quota_exceeded:
        status_code = status.HTTP_429_TOO_MANY_REQUESTS
    elif decision.store_unavailable:
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content=DecisionResponse.from_decision(decision).model_dump(mode="json"),
        headers=headers,
    )


@router.delete("/counters", response_model=ResetResponse)
async def reset_counter(
    body: ResetRequest,
    guard: ThrottleGuard = Depends(get_throttle_guard),
) -> ResetResponse:
    """Drop the counter of one identity on one route."""
    removed = await run_in_threadpool(guard.reset, body.route_id, body.identity, tier=body.tier)
    return ResetResponse(removed=removed)
