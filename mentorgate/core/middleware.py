"""HTTP middleware for request correlation and throttling outcomes.

Accepts an incoming request id header (``LOG_REQUEST_ID_HEADER``) or
generates a UUID, keeps it in contextvars for log correlation during the
request, and echoes it together with the request duration on the response.
Responses turned away by the throttle (429, or 503 with ``Retry-After``) are
logged as ``http.throttled`` so rejections can be counted per path.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response, status

from mentorgate.core.config import settings
from mentorgate.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

THROTTLED_STATUSES = (
    status.HTTP_429_TOO_MANY_REQUESTS,
    status.HTTP_503_SERVICE_UNAVAILABLE,
)


def _log_outcome(request: Request, response: Response, duration_ms: float) -> None:
    extra = {
        "method": request.method,
        "path": request.url.path,
        "status_code": response.status_code,
        "duration_ms": round(duration_ms, 2),
    }
    retry_after = response.headers.get("Retry-After")
    if response.status_code in THROTTLED_STATUSES and retry_after is not None:
        logger.info(
            "http.throttled",
            extra={
                **extra,
                "retry_after_s": retry_after,
                "limit": response.headers.get("X-RateLimit-Limit"),
            },
        )
        return
    logger.debug("http.request", extra=extra)


async def request_id_middleware(request: Request, call_next) -> Response:
    """Tag the request/response pair with a correlation id and duration.

    Side Effects:
        - Sets request_id in contextvars for the duration of the request
        - Adds the request id header and X-Request-Duration-ms to the response
        - Logs ``http.throttled`` for throttle rejections, ``http.request`` otherwise
    """
    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        _log_outcome(request, response, duration_ms)
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
