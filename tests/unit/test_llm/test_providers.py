"""Tests for LLM providers and the provider factory."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from course_intel.config import Settings
from course_intel.llm.factory import create_providers, provider_kwargs
from course_intel.llm.providers import PROVIDER_REGISTRY
from course_intel.llm.providers.anthropic import AnthropicProvider
from course_intel.llm.providers.base import LLMProvider
from course_intel.llm.providers.openai_compat import OpenAICompatProvider
from course_intel.llm.schemas import LLMRequest, LLMResponse


class _DummyProvider(LLMProvider):
    provider_name = "dummy"

    async def complete(self, request: LLMRequest) -> LLMResponse:
        return LLMResponse(content="", provider="dummy", model_id="d")


class TestLLMProviderInterface:
    def test_cannot_instantiate_abc(self) -> None:
        with pytest.raises(TypeError):
            LLMProvider()  # type: ignore[abstract]

    def test_enabled_by_default(self) -> None:
        assert _DummyProvider().enabled is True

    def test_disable_enable(self) -> None:
        p = _DummyProvider()
        p.disable(reason="rate limit")
        assert p.enabled is False
        p.enable()
        assert p.enabled is True


class TestOpenAICompatProvider:
    def _provider(
        self, content: str = '{"schedule": []}'
    ) -> tuple[OpenAICompatProvider, AsyncMock]:
        p = OpenAICompatProvider(
            api_key="test",
            default_model="sonar",
            provider_name="perplexity",
            base_url="https://api.perplexity.ai",
        )
        create = AsyncMock(
            return_value=SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
                usage=SimpleNamespace(prompt_tokens=120, completion_tokens=40),
            )
        )
        p._client = MagicMock()
        p._client.chat.completions.create = create
        return p, create

    async def test_request_model_is_honored(self) -> None:
        p, create = self._provider()
        r = await p.complete(LLMRequest(prompt="hi", model="sonar-pro", max_tokens=12000))
        assert create.call_args.kwargs["model"] == "sonar-pro"
        assert create.call_args.kwargs["max_tokens"] == 12000
        assert r.model_id == "sonar-pro"
        assert r.provider == "perplexity"
        assert r.tokens_in == 120
        assert r.tokens_out == 40

    async def test_default_model_when_unset(self) -> None:
        p, create = self._provider()
        r = await p.complete(LLMRequest(prompt="hi"))
        assert create.call_args.kwargs["model"] == "sonar"
        assert r.model_id == "sonar"

    async def test_system_prompt_first(self) -> None:
        p, create = self._provider()
        await p.complete(LLMRequest(prompt="hi", system_prompt="be strict"))
        messages = create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "be strict"}
        assert messages[1] == {"role": "user", "content": "hi"}


class TestAnthropicProvider:
    async def test_text_blocks_joined(self) -> None:
        p = AnthropicProvider(api_key="test", default_model="claude-sonnet-4-20250514")
        p._client = MagicMock()
        p._client.messages.create = AsyncMock(
            return_value=SimpleNamespace(
                content=[
                    SimpleNamespace(type="text", text='{"a":'),
                    SimpleNamespace(type="tool_use"),
                    SimpleNamespace(type="text", text="1}"),
                ],
                usage=SimpleNamespace(input_tokens=5, output_tokens=3),
            )
        )
        r = await p.complete(LLMRequest(prompt="hi", system_prompt="sys"))
        assert r.content == '{"a":1}'
        assert p._client.messages.create.call_args.kwargs["system"] == "sys"


class TestProviderRegistry:
    def test_registry_contains_all_providers(self) -> None:
        assert set(PROVIDER_REGISTRY) == {"gemini", "anthropic", "openai", "perplexity"}

    def test_registry_values_are_provider_subclasses(self) -> None:
        for name, cls in PROVIDER_REGISTRY.items():
            assert issubclass(cls, LLMProvider), f"{name} is not LLMProvider subclass"


class TestProviderFactory:
    def test_no_keys_returns_empty(self) -> None:
        assert create_providers(Settings(_env_file=None)) == {}  # type: ignore[call-arg]

    def test_anthropic_key_creates_provider(self) -> None:
        s = Settings(anthropic_api_key="test-key", _env_file=None)  # type: ignore[arg-type, call-arg]
        providers = create_providers(s)
        assert isinstance(providers["anthropic"], AnthropicProvider)

    def test_perplexity_uses_openai_compat(self) -> None:
        s = Settings(perplexity_api_key="test-key", _env_file=None)  # type: ignore[arg-type, call-arg]
        providers = create_providers(s)
        assert isinstance(providers["perplexity"], OpenAICompatProvider)
        assert providers["perplexity"].provider_name == "perplexity"

    def test_empty_key_skipped(self) -> None:
        s = Settings(openai_api_key="", _env_file=None)  # type: ignore[arg-type, call-arg]
        assert "openai" not in create_providers(s)

    def test_perplexity_kwargs(self) -> None:
        s = Settings(perplexity_api_key="k", _env_file=None)  # type: ignore[arg-type, call-arg]
        assert provider_kwargs("perplexity", s) == {
            "api_key": "k",
            "default_model": "sonar",
            "base_url": "https://api.perplexity.ai",
            "provider_name": "perplexity",
        }
        assert provider_kwargs("anthropic", s) is None
