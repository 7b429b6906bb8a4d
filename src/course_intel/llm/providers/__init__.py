"""LLM provider implementations.

PROVIDER_REGISTRY maps provider names (used in models.yaml and in user
profiles) to their implementation classes. To add a new provider:

1. Create a new module in this package (e.g., mistral.py)
2. Implement LLMProvider subclass
3. Add an entry to PROVIDER_REGISTRY below and ``<name>_api_key`` /
   ``<name>_default_model`` fields to Settings
"""

from course_intel.llm.providers.anthropic import AnthropicProvider
from course_intel.llm.providers.base import LLMProvider
from course_intel.llm.providers.gemini import GeminiProvider
from course_intel.llm.providers.openai_compat import OpenAICompatProvider

PROVIDER_REGISTRY: dict[str, type[LLMProvider]] = {
    "gemini": GeminiProvider,
    "anthropic": AnthropicProvider,
    "openai": OpenAICompatProvider,
    "perplexity": OpenAICompatProvider,
}

__all__ = [
    "PROVIDER_REGISTRY",
    "AnthropicProvider",
    "GeminiProvider",
    "LLMProvider",
    "OpenAICompatProvider",
]
