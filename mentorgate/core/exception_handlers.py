"""Global exception handlers for consistent error responses.

Domain errors map to HTTP statuses:
- ValidationAppError → 400 (client fault)
- PolicyNotFoundError → 404 (unknown route or policy)
- other ConfigurationAppError → 500 (declaration mistake)
- StoreUnavailableError → 503 with Retry-After (retryable infrastructure fault)
- unexpected Exception → generic 500 (safety net)

Every body has the shape ``{"error": {code, message, request_id, details?}}``.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from mentorgate.core.config import settings
from mentorgate.core.errors import (
    AppError,
    ConfigurationAppError,
    PolicyNotFoundError,
    StoreUnavailableError,
)
from mentorgate.core.logging import get_request_id

logger = logging.getLogger(__name__)


def status_for(exc: AppError) -> int:
    if isinstance(exc, PolicyNotFoundError):
        return 404
    if isinstance(exc, ConfigurationAppError):
        return 500
    if isinstance(exc, StoreUnavailableError):
        return 503
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an ``AppError`` with its mapped status code."""
    status_code = status_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    headers = None
    if isinstance(exc, StoreUnavailableError):
        headers = {"Retry-After": str(settings.throttle.retry_after_on_failure_seconds)}

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure for debugging and returns a generic message so no
    implementation details or stack traces reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
