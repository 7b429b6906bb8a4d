"""Provider construction from settings.

Each provider ``<name>`` reads ``<name>_api_key`` and ``<name>_default_model``
from :class:`Settings`, plus ``<name>_base_url`` when the provider speaks an
OpenAI-compatible API at a different host. Providers without a key are
skipped, which is how ``ModelRouter`` learns which providers are usable.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import SecretStr

from course_intel.config import Settings
from course_intel.llm.providers import PROVIDER_REGISTRY, LLMProvider

logger = structlog.get_logger()

# Providers served by OpenAICompatProvider under their own name.
COMPAT_PROVIDERS: frozenset[str] = frozenset({"perplexity"})


def provider_kwargs(name: str, settings: Settings) -> dict[str, Any] | None:
    """Constructor kwargs for provider ``name``, or None when it has no key."""
    secret: SecretStr | None = getattr(settings, f"{name}_api_key", None)
    if secret is None or not secret.get_secret_value():
        return None
    kwargs: dict[str, Any] = {
        "api_key": secret.get_secret_value(),
        "default_model": getattr(settings, f"{name}_default_model"),
    }
    base_url = getattr(settings, f"{name}_base_url", None)
    if base_url:
        kwargs["base_url"] = base_url
    if name in COMPAT_PROVIDERS:
        kwargs["provider_name"] = name
    return kwargs


def create_providers(settings: Settings) -> dict[str, LLMProvider]:
    """Instantiate every registered provider that has an API key."""
    providers: dict[str, LLMProvider] = {}
    for name, provider_cls in PROVIDER_REGISTRY.items():
        kwargs = provider_kwargs(name, settings)
        if kwargs is None:
            continue
        providers[name] = provider_cls(**kwargs)
        logger.info("llm_provider_registered", provider=name)

    if not providers:
        logger.warning("no_llm_providers_configured")
    return providers
