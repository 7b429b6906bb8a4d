"""Per-run extraction configuration resolved from the user's AI profile."""

from collections.abc import Collection

import structlog
from pydantic import BaseModel

from course_intel.agents.prompt_loader import PromptData
from course_intel.config import Settings
from course_intel.errors import ConfigurationError
from course_intel.llm.registry import ModelRegistryConfig
from course_intel.llm.schemas import ModelSelection
from course_intel.models.course import AIProfile

logger = structlog.get_logger()

INTEL_ACTION = "course_intel"
DEFAULT_PROVIDER = "perplexity"
WEB_SEARCH_PROVIDER = "perplexity"

# Profile values accepted as-is, plus legacy aliases.
_PROVIDER_ALIASES: dict[str, str] = {
    "openai": "openai",
    "gemini": "gemini",
    "vertex": "gemini",
    "anthropic": "anthropic",
    "perplexity": "perplexity",
}


class ExtractionConfig(BaseModel):
    """Everything the generative client needs for one run.

    Threaded explicitly into each call so that concurrent runs for
    different users never share provider or prompt state.
    """

    selection: ModelSelection
    template: str
    system_prompt: str
    strict_suffix: str
    prompt_version: str = "unknown"
    web_search_enabled: bool = False
    draft_max_tokens: int = 8192
    retry_max_tokens: int = 12000


def resolve_provider(profile: AIProfile, available: Collection[str]) -> str:
    """Web-search provider when enabled and keyed, else the profile's provider."""
    preferred = _PROVIDER_ALIASES.get(profile.ai_provider.strip().lower(), DEFAULT_PROVIDER)
    if profile.ai_web_search_enabled and WEB_SEARCH_PROVIDER in available:
        return WEB_SEARCH_PROVIDER
    return preferred


def resolve_template(profile: AIProfile, default: str) -> str:
    """Course-intel template, else update + syllabus templates, else default."""
    intel = profile.ai_course_intel_prompt_template.strip()
    if intel:
        return intel
    joined = "\n\n".join(
        t.strip()
        for t in (profile.ai_course_update_prompt_template, profile.ai_syllabus_prompt_template)
        if t.strip()
    )
    return joined or default.strip()


def resolve_extraction_config(
    profile: AIProfile | None,
    *,
    registry: ModelRegistryConfig,
    prompt: PromptData,
    available_providers: Collection[str],
    settings: Settings,
) -> ExtractionConfig:
    """Resolve provider, model and template once per run.

    Raises:
        ConfigurationError: Provider key missing, no catalog model for the
            provider, or no usable prompt template.
    """
    profile = profile or AIProfile()
    provider = resolve_provider(profile, available_providers)
    if provider not in available_providers:
        raise ConfigurationError(f"AI service not configured: {provider} API key missing")

    model_id = registry.resolve_model(provider, profile.ai_default_model.strip(), INTEL_ACTION)
    if model_id is None:
        raise ConfigurationError(
            f"AI service not configured: no active model for provider {provider}"
        )

    template = resolve_template(profile, prompt.user_prompt_template)
    if not template:
        raise ConfigurationError("Course intel prompt template not configured")

    logger.info(
        "extraction_config_resolved",
        provider=provider,
        model=model_id,
        web_search=profile.ai_web_search_enabled,
        custom_template=template != prompt.user_prompt_template.strip(),
    )
    return ExtractionConfig(
        selection=ModelSelection(provider=provider, model_id=model_id),
        template=template,
        system_prompt=prompt.system_prompt,
        strict_suffix=prompt.strict_suffix.strip(),
        prompt_version=prompt.version,
        web_search_enabled=profile.ai_web_search_enabled,
        draft_max_tokens=settings.draft_max_tokens,
        retry_max_tokens=settings.retry_max_tokens,
    )
