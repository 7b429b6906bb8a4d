"""LLM infrastructure: providers, schemas, router, catalog, logging.

Quick start::

    from course_intel.config import get_settings
    from course_intel.llm import ModelSelection, create_model_router

    router = create_model_router(get_settings())
    response = await router.complete(
        "course_intel",
        prompt,
        selection=ModelSelection(provider="gemini", model_id="gemini-2.5-flash"),
    )
"""

from course_intel.llm.router import ModelRouter
from course_intel.llm.schemas import LLMRequest, LLMResponse, ModelSelection
from course_intel.llm.setup import create_model_router

__all__ = [
    "LLMRequest",
    "LLMResponse",
    "ModelRouter",
    "ModelSelection",
    "create_model_router",
]
