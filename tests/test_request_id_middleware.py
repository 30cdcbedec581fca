from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from mentorgate.adapters.counter_store.in_memory import InMemoryCounterStore
from mentorgate.core.app_factory import create_app
from mentorgate.core.config import settings
from mentorgate.throttling import build_guard


@pytest.fixture
def client() -> TestClient:
    guard = build_guard(settings.throttle, store=InMemoryCounterStore())
    return TestClient(create_app(guard))


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_error_body_carries_request_id(client: TestClient):
    resp = client.post(
        "/v1/throttle/check",
        json={"route_id": "GET /unbound", "identity": "u"},
        headers={"X-Request-ID": "req-err-1"},
    )

    assert resp.status_code == 404
    assert resp.json()["error"]["request_id"] == "req-err-1"


def test_throttle_rejection_is_logged_with_retry_after(client: TestClient):
    body = {"route_id": "POST /auth/login", "identity": "user:mw"}
    for _ in range(5):
        assert client.post("/v1/throttle/check", json=body).status_code == 200

    with patch("mentorgate.core.middleware.logger") as logger:
        resp = client.post("/v1/throttle/check", json=body)

    assert resp.status_code == 429
    logger.info.assert_called_once()
    assert logger.info.call_args.args == ("http.throttled",)
    extra = logger.info.call_args.kwargs["extra"]
    assert extra["path"] == "/v1/throttle/check"
    assert extra["status_code"] == 429
    assert extra["retry_after_s"] == resp.headers["Retry-After"]
    assert extra["limit"] == "5"
    logger.debug.assert_not_called()


def test_ordinary_request_is_logged_at_debug(client: TestClient):
    with patch("mentorgate.core.middleware.logger") as logger:
        resp = client.get("/health")

    assert resp.status_code == 200
    logger.info.assert_not_called()
    logger.debug.assert_called_once()
    assert logger.debug.call_args.args == ("http.request",)
    assert logger.debug.call_args.kwargs["extra"]["status_code"] == 200
