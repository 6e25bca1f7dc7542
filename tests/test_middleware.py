"""
Tests for app/core/middleware.py

Covers:
- CorrelationIdMiddleware: correlation ID propagation
- RequestLoggingMiddleware: request logging
- Exception handlers: AppException and generic Exception
"""
import logging
from unittest.mock import AsyncMock

import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse, JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from app.core.middleware import (
    CorrelationIdMiddleware,
    RequestLoggingMiddleware,
    app_exception_handler,
    generic_exception_handler,
)
from app.core.exceptions import (
    EmptyProofError,
    TransactionNotFoundError,
    TransactionStatusError,
)


# ============================================================================
# Helpers
# ============================================================================


def _hello(request: Request) -> PlainTextResponse:
    return PlainTextResponse("ok")


def _error(request: Request) -> PlainTextResponse:
    raise ValueError("test failure")


def _build_app(*, middlewares: list[tuple] | None = None) -> Starlette:
    """Minimal Starlette app with the given middleware"""
    app = Starlette(routes=[Route("/test", _hello), Route("/health", _hello), Route("/error", _error)])
    for mw_class, kwargs in middlewares or []:
        app.add_middleware(mw_class, **kwargs)
    return app


def _mock_request(path: str) -> AsyncMock:
    request = AsyncMock(spec=Request)
    request.url.path = path
    return request


# ============================================================================
# CorrelationIdMiddleware
# ============================================================================


class TestCorrelationIdMiddleware:

    @pytest.mark.unit
    def test_generates_correlation_id_when_missing(self) -> None:
        app = _build_app(middlewares=[(CorrelationIdMiddleware, {})])
        with TestClient(app) as client:
            response = client.get("/test")
            assert response.status_code == 200
            assert response.headers["x-correlation-id"]

    @pytest.mark.unit
    def test_preserves_existing_correlation_id(self) -> None:
        app = _build_app(middlewares=[(CorrelationIdMiddleware, {})])
        with TestClient(app) as client:
            response = client.get("/test", headers={"X-Correlation-ID": "my-correlation-id"})
            assert response.headers["x-correlation-id"] == "my-correlation-id"

    @pytest.mark.unit
    def test_correlation_id_unique_per_request(self) -> None:
        app = _build_app(middlewares=[(CorrelationIdMiddleware, {})])
        with TestClient(app) as client:
            first = client.get("/test").headers["x-correlation-id"]
            second = client.get("/test").headers["x-correlation-id"]
            assert first != second


# ============================================================================
# RequestLoggingMiddleware
# ============================================================================


class TestRequestLoggingMiddleware:

    @pytest.mark.unit
    def test_successful_request_logged(self) -> None:
        app = _build_app(middlewares=[(RequestLoggingMiddleware, {})])
        with TestClient(app) as client:
            assert client.get("/test").status_code == 200

    @pytest.mark.unit
    def test_health_check_logged_at_debug(self, caplog) -> None:
        app = _build_app(middlewares=[(RequestLoggingMiddleware, {})])
        with caplog.at_level(logging.DEBUG, logger="app.core.middleware"):
            with TestClient(app) as client:
                client.get("/health")
                client.get("/test")

        levels = {r.getMessage(): r.levelno for r in caplog.records if r.name == "app.core.middleware"}
        assert levels["Request completed: GET /health"] == logging.DEBUG
        assert levels["Request completed: GET /test"] == logging.INFO

    @pytest.mark.unit
    def test_exception_in_handler_reraised(self) -> None:
        app = _build_app(middlewares=[(RequestLoggingMiddleware, {})])
        with TestClient(app, raise_server_exceptions=False) as client:
            assert client.get("/error").status_code == 500


# ============================================================================
# Exception handlers
# ============================================================================


class TestAppExceptionHandler:

    @pytest.mark.asyncio
    async def test_transaction_not_found_is_404(self) -> None:
        response = await app_exception_handler(
            _mock_request("/api/telegram/webhook"), TransactionNotFoundError(123)
        )

        assert isinstance(response, JSONResponse)
        assert response.status_code == 404
        assert "x-correlation-id" in response.headers
        assert "ERR_2001" in response.body.decode()

    @pytest.mark.asyncio
    async def test_status_conflict_is_409(self) -> None:
        response = await app_exception_handler(
            _mock_request("/api/telegram/webhook"),
            TransactionStatusError(5, "approved", "pending"),
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_empty_proof_is_400(self) -> None:
        response = await app_exception_handler(_mock_request("/api/telegram/webhook"), EmptyProofError(1))
        assert response.status_code == 400


class TestGenericExceptionHandler:

    @pytest.mark.asyncio
    async def test_handles_unexpected_exception(self) -> None:
        response = await generic_exception_handler(_mock_request("/api/x"), RuntimeError("boom"))

        assert isinstance(response, JSONResponse)
        assert response.status_code == 500
        assert "x-correlation-id" in response.headers

    @pytest.mark.asyncio
    async def test_does_not_leak_internal_details(self) -> None:
        exc = RuntimeError("database connection failed on host 10.0.0.1")

        response = await generic_exception_handler(_mock_request("/api/test"), exc)

        body = response.body.decode()
        assert "10.0.0.1" not in body
        assert "database connection" not in body
        assert "ERR_1000" in body
