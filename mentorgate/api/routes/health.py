from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness check for load balancers and monitoring.

    Returns:
        dict: ``status`` is always "ok"; ``throttle_backend`` names the
            counter store in use.
    """
    guard = request.app.state.throttle_guard
    return {"status": "ok", "throttle_backend": guard.store.backend}
