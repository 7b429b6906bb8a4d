"""Tests for ModelRouter -- explicit selection, retries, error classification."""

from unittest.mock import AsyncMock

import pytest

from course_intel.errors import ConfigurationError, ModelCallError
from course_intel.llm.providers.base import LLMProvider
from course_intel.llm.registry import ModelRegistryConfig
from course_intel.llm.router import ModelRouter
from course_intel.llm.schemas import LLMRequest, LLMResponse, ModelSelection

# -- test helpers -------------------------------------------------------

SEL_A = ModelSelection(provider="p_a", model_id="model-a")


def _resp(provider: str = "p_a", model: str = "model-a") -> LLMResponse:
    return LLMResponse(
        content="ok",
        provider=provider,
        model_id=model,
        tokens_in=10,
        tokens_out=20,
        latency_ms=100,
    )


def _registry() -> ModelRegistryConfig:
    """Create a minimal catalog with two models and one action."""
    return ModelRegistryConfig.model_validate(
        {
            "models": {
                "model-a": {
                    "provider": "p_a",
                    "capabilities": ["structured_output"],
                    "max_context": 100000,
                    "cost_per_1k": {"input": 0.001, "output": 0.002},
                },
                "model-b": {
                    "provider": "p_b",
                    "capabilities": ["structured_output"],
                    "max_context": 100000,
                    "cost_per_1k": {"input": 0.0001, "output": 0.0002},
                },
            },
            "actions": {
                "act": {
                    "description": "Test action",
                    "requires": ["structured_output"],
                },
            },
        }
    )


def _ok_provider(response: LLMResponse | None = None) -> LLMProvider:
    p = AsyncMock(spec=LLMProvider)
    p.complete = AsyncMock(return_value=response or _resp())
    p.enabled = True
    return p  # type: ignore[return-value]


def _fail_provider(exc: Exception | None = None) -> LLMProvider:
    p = AsyncMock(spec=LLMProvider)
    p.complete = AsyncMock(side_effect=exc or Exception("API error"))
    p.enabled = True
    return p  # type: ignore[return-value]


def _disabled_provider() -> LLMProvider:
    p = AsyncMock(spec=LLMProvider)
    p.enabled = False
    return p  # type: ignore[return-value]


# -- tests --------------------------------------------------------------


class TestSelection:
    async def test_selected_provider_is_used(self) -> None:
        p_b = _ok_provider(_resp("p_b", "model-b"))
        r = await ModelRouter({"p_a": _ok_provider(), "p_b": p_b}, _registry()).complete(
            "act", "hi", selection=ModelSelection(provider="p_b", model_id="model-b")
        )
        assert r.provider == "p_b"
        assert r.action == "act"
        p_b.complete.assert_called_once()  # type: ignore[union-attr]

    async def test_model_and_budget_set_on_request(self) -> None:
        captured: list[LLMRequest] = []

        async def capture(req: LLMRequest) -> LLMResponse:
            captured.append(req)
            return _resp()

        p = AsyncMock(spec=LLMProvider)
        p.enabled = True
        p.complete = AsyncMock(side_effect=capture)

        await ModelRouter({"p_a": p}, _registry()).complete(  # type: ignore[dict-item]
            "act", "hi", selection=SEL_A, system_prompt="sys", max_tokens=12000
        )

        assert captured[0].model == "model-a"
        assert captured[0].max_tokens == 12000
        assert captured[0].system_prompt == "sys"

    async def test_no_fallback_to_other_provider(self) -> None:
        p_b = _ok_provider(_resp("p_b", "model-b"))
        with pytest.raises(ModelCallError):
            await ModelRouter(
                {"p_a": _fail_provider(), "p_b": p_b}, _registry(), max_attempts=1
            ).complete("act", "hi", selection=SEL_A)
        p_b.complete.assert_not_called()  # type: ignore[union-attr]

    def test_available_providers(self) -> None:
        router = ModelRouter({"p_a": _ok_provider()}, _registry())
        assert router.available_providers == ["p_a"]


class TestConfigurationErrors:
    async def test_unknown_action(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown action"):
            await ModelRouter({"p_a": _ok_provider()}, _registry()).complete(
                "nope", "hi", selection=SEL_A
            )

    async def test_missing_provider(self) -> None:
        with pytest.raises(ConfigurationError, match="missing API key"):
            await ModelRouter({}, _registry()).complete("act", "hi", selection=SEL_A)

    async def test_disabled_provider(self) -> None:
        with pytest.raises(ModelCallError):
            await ModelRouter({"p_a": _disabled_provider()}, _registry()).complete(
                "act", "hi", selection=SEL_A
            )


class TestCostEnrichment:
    async def test_cost_calculated_when_tokens_present(self) -> None:
        resp = _resp()
        resp.tokens_in = 1000
        resp.tokens_out = 500
        r = await ModelRouter({"p_a": _ok_provider(resp)}, _registry()).complete(
            "act", "hi", selection=SEL_A
        )
        assert r.cost_usd == pytest.approx(0.001 + 0.001)

    async def test_cost_none_when_tokens_missing(self) -> None:
        resp = _resp()
        resp.tokens_in = None
        resp.tokens_out = None
        r = await ModelRouter({"p_a": _ok_provider(resp)}, _registry()).complete(
            "act", "hi", selection=SEL_A
        )
        assert r.cost_usd is None

    async def test_cost_none_for_uncatalogued_model(self) -> None:
        r = await ModelRouter({"p_a": _ok_provider()}, _registry()).complete(
            "act", "hi", selection=ModelSelection(provider="p_a", model_id="custom")
        )
        assert r.cost_usd is None


class TestLogCallback:
    async def test_callback_called_on_success(self) -> None:
        cb = AsyncMock()
        await ModelRouter({"p_a": _ok_provider()}, _registry(), log_callback=cb).complete(
            "act", "hi", selection=SEL_A
        )
        cb.assert_called_once()
        assert cb.call_args[0][1] is True

    async def test_callback_called_on_failure(self) -> None:
        cb = AsyncMock()
        with pytest.raises(ModelCallError):
            await ModelRouter(
                {"p_a": _fail_provider()}, _registry(), log_callback=cb, max_attempts=1
            ).complete("act", "hi", selection=SEL_A)
        cb.assert_called_once()
        assert cb.call_args[0][1] is False
        assert cb.call_args[0][2] == "API error"


class TestRetryBehavior:
    async def test_retries_up_to_max_attempts(self) -> None:
        failing = _fail_provider()
        with pytest.raises(ModelCallError) as exc_info:
            await ModelRouter({"p_a": failing}, _registry(), max_attempts=3).complete(
                "act", "hi", selection=SEL_A
            )
        assert failing.complete.call_count == 3  # type: ignore[union-attr]
        assert exc_info.value.provider == "p_a"
        assert len(exc_info.value.errors) == 3

    async def test_retry_then_success(self) -> None:
        p = AsyncMock(spec=LLMProvider)
        p.enabled = True
        p.complete = AsyncMock(side_effect=[Exception("transient"), _resp()])
        r = await ModelRouter({"p_a": p}, _registry(), max_attempts=2).complete(  # type: ignore[dict-item]
            "act", "hi", selection=SEL_A
        )
        assert r.content == "ok"
        assert p.complete.call_count == 2

    async def test_permanent_error_skips_retries(self) -> None:
        class FakeAuthError(Exception):
            status_code = 401

        p = _fail_provider(FakeAuthError("unauthorized"))
        with pytest.raises(ModelCallError):
            await ModelRouter({"p_a": p}, _registry(), max_attempts=3).complete(
                "act", "hi", selection=SEL_A
            )
        assert p.complete.call_count == 1  # type: ignore[union-attr]


class TestIsRetryable:
    def test_401_is_permanent(self) -> None:
        class AuthError(Exception):
            status_code = 401

        assert ModelRouter._is_retryable(AuthError()) is False

    def test_404_code_is_permanent(self) -> None:
        class GenaiError(Exception):
            code = 404

        assert ModelRouter._is_retryable(GenaiError()) is False

    def test_429_is_retryable(self) -> None:
        class RateLimitError(Exception):
            status_code = 429

        assert ModelRouter._is_retryable(RateLimitError()) is True

    def test_500_is_retryable(self) -> None:
        class ServerError(Exception):
            status_code = 500

        assert ModelRouter._is_retryable(ServerError()) is True

    def test_generic_exception_is_retryable(self) -> None:
        assert ModelRouter._is_retryable(Exception("network timeout")) is True
