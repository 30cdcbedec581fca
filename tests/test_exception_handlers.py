"""Tests for global exception handlers.

Validates status code mapping, the error body shape, and that unexpected
errors never leak internals.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from mentorgate.core.errors import (
    AppError,
    DuplicateBindingError,
    PolicyNotFoundError,
    PolicyValidationError,
    StoreUnavailableError,
    ValidationAppError,
)
from mentorgate.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


@pytest.mark.parametrize(
    "error, expected_status",
    [
        (ValidationAppError(code="bad_input", message="bad"), 400),
        (PolicyValidationError(code="invalid_policy", message="limit must be positive"), 400),
        (PolicyNotFoundError(code="policy_not_found", message="missing"), 404),
        (DuplicateBindingError(code="duplicate_binding", message="twice"), 500),
        (StoreUnavailableError(code="store_unavailable", message="down"), 503),
    ],
)
def test_app_errors_map_to_status(
    client: TestClient, app_with_handlers: FastAPI, error: AppError, expected_status: int
) -> None:
    @app_with_handlers.get("/boom")
    async def boom():
        raise error

    resp = client.get("/boom")

    assert resp.status_code == expected_status
    body = resp.json()["error"]
    assert body["code"] == error.code
    assert body["message"] == error.message
    assert "request_id" in body


def test_details_included_when_present(client: TestClient, app_with_handlers: FastAPI) -> None:
    @app_with_handlers.get("/dup")
    async def dup():
        raise DuplicateBindingError(
            code="duplicate_binding",
            message="Route 'POST /a' is already bound",
            details={"route_id": "POST /a", "policy": "auth"},
        )

    body = client.get("/dup").json()["error"]

    assert body["details"] == {"route_id": "POST /a", "policy": "auth"}


def test_store_unavailable_sets_retry_after(client: TestClient, app_with_handlers: FastAPI) -> None:
    @app_with_handlers.get("/store")
    async def store():
        raise StoreUnavailableError(code="store_unavailable", message="down")

    resp = client.get("/store")

    assert resp.status_code == 503
    assert int(resp.headers["Retry-After"]) >= 1


def test_unexpected_error_returns_generic_500(client: TestClient, app_with_handlers: FastAPI) -> None:
    @app_with_handlers.get("/crash")
    async def crash():
        raise RuntimeError("redis password is hunter2")

    resp = client.get("/crash")

    assert resp.status_code == 500
    body = resp.json()["error"]
    assert body["code"] == "internal_server_error"
    assert "hunter2" not in resp.text


def test_general_exception_handler_never_leaks_stack_trace() -> None:
    request = AsyncMock()
    request.url.path = "/test"
    request.method = "GET"

    response = asyncio.run(general_exception_handler(request, ValueError("Test error with details")))

    text = bytes(response.body).decode()
    assert json.loads(text)["error"]["code"] == "internal_server_error"
    assert "Traceback" not in text
    assert "ValueError" not in text


def test_setup_registers_handlers_idempotently() -> None:
    app = FastAPI()
    setup_exception_handlers(app)
    setup_exception_handlers(app)

    assert AppError in app.exception_handlers
    assert Exception in app.exception_handlers
