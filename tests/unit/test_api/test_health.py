"""Tests for FastAPI bootstrap: health, routing, error handling."""

from collections.abc import AsyncGenerator, Generator
from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import Request
from httpx import ASGITransport, AsyncClient

from course_intel.api.app import app
from course_intel.storage.database import get_session


@contextmanager
def mock_health_deps(*, db_error: Exception | None = None) -> Generator[AsyncMock]:
    """Mock the DB session used by the health check.

    Args:
        db_error: If set, async_session __aenter__ raises this exception.
    """
    mock_db_session = AsyncMock()
    mock_db_session.execute = AsyncMock()

    with patch("course_intel.api.app.async_session") as mock_session_factory:
        if db_error:
            mock_session_factory.return_value.__aenter__ = AsyncMock(side_effect=db_error)
        else:
            mock_session_factory.return_value.__aenter__ = AsyncMock(
                return_value=mock_db_session
            )
        mock_session_factory.return_value.__aexit__ = AsyncMock(return_value=False)
        yield mock_db_session


@pytest.fixture()
async def client() -> AsyncGenerator[AsyncClient]:
    """AsyncClient that skips the real DB."""
    app.dependency_overrides[get_session] = lambda: AsyncMock()
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


class TestHealth:
    async def test_health_ok(self, client: AsyncClient) -> None:
        """GET /health returns 200 when the DB is reachable."""
        with mock_health_deps() as session:
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["checks"]["db"] == "ok"
        assert "timestamp" in data
        session.execute.assert_awaited_once()

    async def test_health_db_down(self, client: AsyncClient) -> None:
        """GET /health returns 503 when the DB is unreachable."""
        with mock_health_deps(db_error=TimeoutError("db timeout")):
            response = await client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["checks"]["db"] == "error: TimeoutError"

    async def test_health_unexpected_error(self, client: AsyncClient) -> None:
        with mock_health_deps(db_error=RuntimeError("weird")):
            response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["checks"]["db"] == "error: RuntimeError"

    async def test_health_method_not_allowed(self, client: AsyncClient) -> None:
        """POST /health returns 405."""
        response = await client.post("/health")
        assert response.status_code == 405


class TestRouting:
    async def test_unknown_route_returns_404(self, client: AsyncClient) -> None:
        response = await client.get("/nonexistent")
        assert response.status_code == 404


class TestErrorHandling:
    async def test_unhandled_exception_handler_returns_500(self) -> None:
        """Global exception handler returns 500 JSON response."""
        from course_intel.api.app import unhandled_exception_handler

        mock_request = Request(
            scope={"type": "http", "method": "GET", "path": "/test", "headers": []}
        )
        response = await unhandled_exception_handler(mock_request, RuntimeError("boom"))
        assert response.status_code == 500
        assert response.body == b'{"detail":"Internal server error"}'


class TestLifespan:
    async def test_lifespan_creates_service(self) -> None:
        """Lifespan wires the router into a CourseIntelService."""
        from course_intel.api.app import lifespan

        with (
            patch("course_intel.api.app.configure_logging"),
            patch("course_intel.api.app.create_model_router") as mock_create,
            patch("course_intel.api.app.CourseIntelService") as mock_service_cls,
            patch("course_intel.api.app.engine") as mock_engine,
        ):
            mock_create.return_value = MagicMock()
            mock_engine.dispose = AsyncMock()

            async with lifespan(app):
                assert app.state.intel_service is mock_service_cls.return_value

            mock_create.assert_called_once()
            mock_engine.dispose.assert_awaited_once()
