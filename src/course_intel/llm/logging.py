"""Per-attempt audit trail for model calls.

Every attempt the router makes (draft, retries, strict passes) lands in
``llm_calls`` through its own short-lived session, independent of the
intel run's transaction. Audit failures are logged, never raised.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from course_intel.llm.router import LogCallback
from course_intel.llm.schemas import LLMResponse
from course_intel.storage.orm import LLMCall

logger = structlog.get_logger()

ERROR_MESSAGE_LIMIT = 2000


def call_record(response: LLMResponse, success: bool, error_message: str | None) -> LLMCall:
    """``llm_calls`` row for one attempt; error text is clipped."""
    return LLMCall(
        action=response.action,
        provider=response.provider,
        model_id=response.model_id,
        tokens_in=response.tokens_in,
        tokens_out=response.tokens_out,
        latency_ms=response.latency_ms,
        cost_usd=response.cost_usd,
        success=success,
        error_message=error_message[:ERROR_MESSAGE_LIMIT] if error_message else None,
    )


def create_log_callback(session_factory: async_sessionmaker[AsyncSession]) -> LogCallback:
    """Router callback persisting each attempt to ``llm_calls``."""

    async def _record_attempt(
        response: LLMResponse,
        success: bool,
        error_message: str | None,
    ) -> None:
        log = logger.bind(
            provider=response.provider, model=response.model_id, action=response.action
        )
        try:
            async with session_factory() as session:
                session.add(call_record(response, success, error_message))
                await session.commit()
        except Exception:
            log.error("llm_call_audit_failed", exc_info=True)

    return _record_attempt
