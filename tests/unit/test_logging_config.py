"""Tests for structured logging configuration and request middleware."""

import json
import logging
import re
from collections.abc import Iterator
from io import StringIO
from unittest.mock import patch

import pytest
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from course_intel.api.middleware import RequestLoggingMiddleware
from course_intel.logging_config import MAX_VALUE_CHARS, NOISY_LOGGERS, configure_logging


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Reset structlog state after each test."""
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


def _capture_log_output(environment: str, **event: object) -> str:
    """Configure logging, emit a message, return captured output."""
    configure_logging(environment=environment, log_level="DEBUG")

    stream = StringIO()
    handler = logging.getLogger().handlers[0]
    assert isinstance(handler, logging.StreamHandler)
    original_stream = handler.stream
    handler.stream = stream

    structlog.get_logger().info("test_event", **(event or {"key": "value"}))

    handler.stream = original_stream
    return stream.getvalue()


class TestConfigureLogging:
    def test_configure_production_json(self) -> None:
        parsed = json.loads(_capture_log_output("production"))
        assert parsed["event"] == "test_event"
        assert parsed["key"] == "value"
        assert parsed["level"] == "info"
        assert "T" in parsed["timestamp"]

    def test_configure_development_console(self) -> None:
        plain = re.sub(r"\x1b\[[0-9;]*m", "", _capture_log_output("development"))
        assert "test_event" in plain
        assert "key=value" in plain

    def test_configure_sets_log_level(self) -> None:
        configure_logging(log_level="WARNING")
        assert logging.getLogger().level == logging.WARNING

    def test_sensitive_keys_redacted(self) -> None:
        parsed = json.loads(_capture_log_output("production", api_key="sk-live-123"))
        assert parsed["api_key"] == "***REDACTED***"

    def test_provider_key_names_redacted(self) -> None:
        parsed = json.loads(
            _capture_log_output("production", perplexity_api_key="pplx-1", x_token="t")
        )
        assert parsed["perplexity_api_key"] == "***REDACTED***"
        assert parsed["x_token"] == "***REDACTED***"

    def test_token_counters_kept(self) -> None:
        parsed = json.loads(_capture_log_output("production", tokens_in=120, tokens_out=40))
        assert parsed["tokens_in"] == 120
        assert parsed["tokens_out"] == 40

    def test_long_values_clipped(self) -> None:
        parsed = json.loads(_capture_log_output("production", raw="x" * 2000))
        assert parsed["raw"].startswith("x" * MAX_VALUE_CHARS)
        assert parsed["raw"].endswith("...[2000 chars]")

    def test_noisy_loggers_quieted(self) -> None:
        configure_logging(log_level="DEBUG")
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING


class TestRequestLoggingMiddleware:
    @pytest.fixture()
    def test_app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware)

        @app.post("/api/v1/courses/abc/intel")
        async def _intel() -> dict[str, str]:
            return {"ok": "true"}

        @app.get("/health")
        async def _health() -> dict[str, str]:
            return {"status": "ok"}

        return app

    async def test_middleware_logs_request(self, test_app: FastAPI) -> None:
        with patch("course_intel.api.middleware.logger") as mock_logger:
            async with AsyncClient(
                transport=ASGITransport(app=test_app), base_url="http://test"
            ) as client:
                await client.post("/api/v1/courses/abc/intel", headers={"X-User-Id": "u-1"})

        mock_logger.info.assert_called_once()
        args, kwargs = mock_logger.info.call_args
        assert args[0] == "http_request"
        assert kwargs["method"] == "POST"
        assert kwargs["path"] == "/api/v1/courses/abc/intel"
        assert kwargs["status_code"] == 200
        assert kwargs["user_id"] == "u-1"
        assert "latency_ms" in kwargs

    async def test_middleware_skips_health(self, test_app: FastAPI) -> None:
        with patch("course_intel.api.middleware.logger") as mock_logger:
            async with AsyncClient(
                transport=ASGITransport(app=test_app), base_url="http://test"
            ) as client:
                await client.get("/health")

        mock_logger.info.assert_not_called()
