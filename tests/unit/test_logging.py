"""Unit tests for request- and run-scoped logging context."""

from __future__ import annotations

import pytest
import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.middleware import REQUEST_ID_HEADER, RequestLoggingMiddleware
from src.utils.logging import bind_request_context, clear_request_context, run_context


@pytest.fixture(autouse=True)
def _clean_context():
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


class TestRequestContext:
    def test_bind_replaces_previous_request(self) -> None:
        structlog.contextvars.bind_contextvars(request_id="old", leftover=True)
        bind_request_context("r1", "GET", "/api/v1/health")

        assert structlog.contextvars.get_contextvars() == {
            "request_id": "r1",
            "method": "GET",
            "path": "/api/v1/health",
        }

    def test_clear_only_drops_request_fields(self) -> None:
        bind_request_context("r1", "GET", "/x")
        structlog.contextvars.bind_contextvars(run_id="abc")

        clear_request_context()

        assert structlog.contextvars.get_contextvars() == {"run_id": "abc"}


class TestRunContext:
    def test_binds_and_restores(self) -> None:
        structlog.contextvars.bind_contextvars(artist_id="outer")

        with run_context("run-1", "inner"):
            assert structlog.contextvars.get_contextvars() == {"artist_id": "inner", "run_id": "run-1"}

        assert structlog.contextvars.get_contextvars() == {"artist_id": "outer"}


def _app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/context")
    async def context() -> dict:
        return structlog.contextvars.get_contextvars()

    return app


class TestRequestLoggingMiddleware:
    def test_request_fields_visible_to_route(self) -> None:
        response = TestClient(_app()).get("/context", headers={REQUEST_ID_HEADER: "req-42"})

        assert response.status_code == 200
        assert response.json() == {"request_id": "req-42", "method": "GET", "path": "/context"}
        assert response.headers[REQUEST_ID_HEADER] == "req-42"

    def test_generates_request_id_when_absent(self) -> None:
        response = TestClient(_app()).get("/context")

        generated = response.headers[REQUEST_ID_HEADER]
        assert len(generated) == 32
        assert response.json()["request_id"] == generated
