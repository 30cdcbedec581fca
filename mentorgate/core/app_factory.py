"""Application factory for the FastAPI app.

Centralizes app construction (guard, middleware, handlers, routers) so tests
can build isolated instances with their own guard and clock.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool

from mentorgate.adapters.counter_store.base import AbstractCounterStore
from mentorgate.api.routes import health_router, throttle_router
from mentorgate.core.config import settings
from mentorgate.core.exception_handlers import setup_exception_handlers
from mentorgate.core.logging import configure_logging
from mentorgate.core.middleware import request_id_middleware
from mentorgate.throttling import ThrottleGuard, build_guard

logger = logging.getLogger(__name__)


async def sweep_expired_counters(store: AbstractCounterStore, interval_seconds: int) -> None:
    """Periodically drop expired counters until cancelled.

    Runs the purge in a worker thread; the store skips keys in use, so
    request-path checks never wait on the sweep.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await run_in_threadpool(store.purge_expired, time.time())
        except Exception:
            logger.exception("counter_sweep.failed", extra={"backend": store.backend})
            continue
        logger.debug("counter_sweep.completed", extra={"backend": store.backend, "removed": removed})


def create_app(guard: ThrottleGuard | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        guard: Pre-built guard (tests); by default one is built from settings,
            which fails fast on a route table naming an unknown policy.

    Returns:
        Configured FastAPI app.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    if guard is None:
        guard = build_guard(settings.throttle)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper: asyncio.Task | None = None
        interval = settings.throttle.sweep_interval_seconds
        if interval > 0:
            sweeper = asyncio.create_task(sweep_expired_counters(guard.store, interval))

        logger.info(
            "app.started",
            extra={
                "throttle_enabled": settings.throttle.enabled,
                "backend": guard.store.backend,
                "failure_mode": guard.failure_mode,
                "routes_bound": len(guard.binder),
            },
        )
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper
            guard.store.close()

    app = FastAPI(
        title="Mentorgate Throttle API",
        description=(
            "Per-route, per-identity request throttling for the career mentoring "
            "platform. Exposes policy and route binding listings and an admission "
            "check endpoint returning X-RateLimit-* headers."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.throttle_guard = guard

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(throttle_router, prefix="/v1")
    app.include_router(health_router)

    return app
