"""ModelRouter -- central entry point for all LLM calls.

The provider and model are chosen per run (from the user's profile) and
passed in explicitly as a ``ModelSelection``; the router holds no
selection state, so concurrent runs with different profiles never
interfere. Transient provider failures are retried; permanent ones are not.
"""

from collections.abc import Awaitable, Callable

import structlog

from course_intel.errors import ConfigurationError, ModelCallError
from course_intel.llm.providers.base import LLMProvider
from course_intel.llm.registry import ModelConfig, ModelRegistryConfig
from course_intel.llm.schemas import LLMRequest, LLMResponse, ModelSelection

logger = structlog.get_logger()

LogCallback = Callable[[LLMResponse, bool, str | None], Awaitable[None]]


class ModelRouter:
    """Dispatches LLM requests to the selected provider with retries.

    Raises ConfigurationError when the selected provider has no API key or
    the action is unknown, and ModelCallError once retries are exhausted or
    a permanent error occurs.
    """

    def __init__(
        self,
        providers: dict[str, LLMProvider],
        registry: ModelRegistryConfig,
        log_callback: LogCallback | None = None,
        max_attempts: int = 2,
    ) -> None:
        self._providers = providers
        self._registry = registry
        self._log_callback = log_callback
        self._max_attempts = max_attempts

    @property
    def registry(self) -> ModelRegistryConfig:
        return self._registry

    @property
    def available_providers(self) -> list[str]:
        """Names of providers that have an API key configured."""
        return list(self._providers)

    async def complete(
        self,
        action: str,
        prompt: str,
        *,
        selection: ModelSelection,
        system_prompt: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 8192,
    ) -> LLMResponse:
        """Generate text completion with the selected provider and model."""
        if action not in self._registry.actions:
            raise ConfigurationError(f"Unknown action: '{action}'")
        provider = self._providers.get(selection.provider)
        if provider is None:
            raise ConfigurationError(
                f"Provider '{selection.provider}' is not configured (missing API key)"
            )
        if not provider.enabled:
            raise ModelCallError(selection.provider, selection.model_id, ["provider disabled"])

        request = LLMRequest(
            prompt=prompt,
            system_prompt=system_prompt,
            model=selection.model_id,
            temperature=temperature,
            max_tokens=max_tokens,
            action=action,
        )
        return await self._try_with_retries(provider, request, selection)

    # -- internal: retry loop -------------------------------------------

    async def _try_with_retries(
        self,
        provider: LLMProvider,
        request: LLMRequest,
        selection: ModelSelection,
    ) -> LLMResponse:
        """Retry the provider call up to max_attempts on transient errors."""
        errors: list[str] = []
        model_cfg = self._registry.models.get(selection.model_id)
        for attempt in range(1, self._max_attempts + 1):
            try:
                response = await provider.complete(request)
            except Exception as exc:
                errors.append(str(exc))
                if not self._is_retryable(exc):
                    logger.warning(
                        "llm_call_permanent_error",
                        provider=selection.provider,
                        model=selection.model_id,
                        error=str(exc),
                    )
                    await self._log_failure(selection, request, str(exc))
                    break

                logger.warning(
                    "llm_call_failed",
                    provider=selection.provider,
                    model=selection.model_id,
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    error=str(exc),
                )
                if attempt == self._max_attempts:
                    await self._log_failure(selection, request, str(exc))
                continue

            self._enrich_response(response, model_cfg, request.action)
            await self._log(response, success=True)
            return response

        raise ModelCallError(selection.provider, selection.model_id, errors)

    # -- helpers --------------------------------------------------------

    @staticmethod
    def _is_retryable(exc: Exception) -> bool:
        """Classify exception as transient (retry) or permanent (skip).

        Permanent errors (no retries):
            HTTP 400 (bad request), 401 (auth), 403 (forbidden), 404

        Transient errors (retry up to max_attempts):
            HTTP 429 (rate limit), 500+, network errors

        Uses duck typing (getattr) to avoid importing SDK-specific
        exception classes; covers the anthropic, openai and google-genai SDKs.
        """
        # anthropic.APIStatusError, openai.APIStatusError
        status_code = getattr(exc, "status_code", None)
        if isinstance(status_code, int):
            return status_code not in (400, 401, 403, 404)

        # google-genai exceptions (.code attribute)
        code = getattr(exc, "code", None)
        if isinstance(code, int):
            return code not in (400, 401, 403, 404)

        # Network errors and unknown types are retried
        return True

    @staticmethod
    def _enrich_response(
        response: LLMResponse,
        model_cfg: ModelConfig | None,
        action: str,
    ) -> None:
        """Set action and, when the model is in the catalog, cost."""
        response.action = action
        if (
            model_cfg is not None
            and response.tokens_in is not None
            and response.tokens_out is not None
        ):
            response.cost_usd = model_cfg.estimate_cost(
                response.tokens_in,
                response.tokens_out,
            )

    async def _log_failure(
        self,
        selection: ModelSelection,
        request: LLMRequest,
        error_message: str,
    ) -> None:
        """Log failed LLM call."""
        dummy = LLMResponse(
            content="",
            provider=selection.provider,
            model_id=selection.model_id,
            action=request.action,
        )
        await self._log(dummy, success=False, error_message=error_message)

    async def _log(
        self,
        response: LLMResponse,
        *,
        success: bool,
        error_message: str | None = None,
    ) -> None:
        """Log LLM call via structlog and optional callback."""
        if self._log_callback:
            await self._log_callback(response, success, error_message)
        logger.info(
            "llm_call_completed",
            provider=response.provider,
            model=response.model_id,
            action=response.action,
            tokens_in=response.tokens_in,
            tokens_out=response.tokens_out,
            latency_ms=response.latency_ms,
            cost_usd=response.cost_usd,
            success=success,
        )
