"""One-stop factory for assembling the full LLM stack.

Usage::

    from course_intel.config import get_settings
    from course_intel.llm import ModelSelection, create_model_router

    router = create_model_router(get_settings())
    response = await router.complete(
        "course_intel",
        prompt,
        selection=ModelSelection(provider="openai", model_id="gpt-4o-mini"),
    )
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from course_intel.config import Settings
from course_intel.llm.factory import create_providers
from course_intel.llm.logging import create_log_callback
from course_intel.llm.registry import load_registry
from course_intel.llm.router import ModelRouter

logger = structlog.get_logger()


def create_model_router(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    *,
    max_attempts: int = 2,
) -> ModelRouter:
    """Assemble ModelRouter with providers, catalog, and optional DB logging.

    Args:
        settings: Application settings with API keys and catalog path.
        session_factory: If provided, LLM calls are logged to llm_calls table.
        max_attempts: Max attempts per call on transient errors (default 2).

    Returns:
        Configured ModelRouter ready for use.
    """
    registry = load_registry(settings.model_registry_path)
    providers = create_providers(settings)

    log_callback = None
    if session_factory is not None:
        log_callback = create_log_callback(session_factory)
        logger.info("llm_db_logging_enabled")

    router = ModelRouter(
        providers=providers,
        registry=registry,
        log_callback=log_callback,
        max_attempts=max_attempts,
    )
    logger.info(
        "model_router_created",
        providers=list(providers.keys()),
        max_attempts=max_attempts,
        db_logging=session_factory is not None,
    )
    return router
