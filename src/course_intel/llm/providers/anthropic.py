"""Anthropic Claude provider."""

from typing import Any

import anthropic

from course_intel.llm.providers.base import LLMProvider
from course_intel.llm.schemas import LLMRequest, LLMResponse


class AnthropicProvider(LLMProvider):
    """Anthropic provider using official SDK."""

    provider_name = "anthropic"

    def __init__(self, api_key: str, default_model: str) -> None:
        super().__init__()
        self._client = anthropic.AsyncAnthropic(api_key=api_key)
        self._default_model = default_model

    async def complete(self, request: LLMRequest) -> LLMResponse:
        """Generate text completion via Anthropic."""
        model = request.model or self._default_model
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system_prompt:
            kwargs["system"] = request.system_prompt

        with self._measure_latency() as timer:
            response = await self._client.messages.create(**kwargs)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return LLMResponse(
            content=text,
            provider=self.provider_name,
            model_id=model,
            tokens_in=response.usage.input_tokens,
            tokens_out=response.usage.output_tokens,
            latency_ms=timer.elapsed_ms,
        )
