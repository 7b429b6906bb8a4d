"""FastAPI application with lifespan management."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from course_intel.api.middleware import RequestLoggingMiddleware
from course_intel.api.routes.intel import router as intel_router
from course_intel.config import settings
from course_intel.errors import CourseIntelError, error_status
from course_intel.llm import create_model_router
from course_intel.logging_config import configure_logging
from course_intel.orchestrator import CourseIntelService
from course_intel.storage.database import async_session, engine

logger = structlog.get_logger()

HEALTH_CHECK_TIMEOUT = 5.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown.

    Startup:
        - Create ModelRouter with DB logging enabled.
        - Create the CourseIntelService shared by all requests.
    Shutdown:
        - Dispose database engine (close connection pool).
    """
    configure_logging(
        environment=str(settings.environment),
        log_level=settings.log_level,
    )
    router = create_model_router(settings, async_session)
    app.state.intel_service = CourseIntelService(async_session, router, settings=settings)

    logger.info("app_started", environment=str(settings.environment))
    yield

    await engine.dispose()
    logger.info("app_stopped")


app = FastAPI(
    title="Course Intel",
    description="Syllabus, schedule and assignment extraction for courses",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.is_dev,
)

app.add_middleware(RequestLoggingMiddleware)


@app.get("/health")
async def health() -> JSONResponse:
    """Deep health check, verifies DB connectivity."""
    checks: dict[str, str] = {}
    overall = "ok"

    try:
        async with async_session() as session:
            await asyncio.wait_for(
                session.execute(text("SELECT 1")),
                timeout=HEALTH_CHECK_TIMEOUT,
            )
        checks["db"] = "ok"
    except (TimeoutError, OperationalError, SQLAlchemyError) as e:
        logger.warning("health_check_db_error", error=type(e).__name__)
        checks["db"] = f"error: {type(e).__name__}"
        overall = "degraded"
    except Exception as e:
        logger.error("health_check_db_unexpected", error=str(e), exc_info=True)
        checks["db"] = f"error: {type(e).__name__}"
        overall = "degraded"

    status_code = 200 if overall == "ok" else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": overall,
            "checks": checks,
            "timestamp": datetime.now(UTC).isoformat(timespec="seconds"),
        },
    )


@app.exception_handler(CourseIntelError)
async def course_intel_exception_handler(
    request: Request,
    exc: CourseIntelError,
) -> JSONResponse:
    """Map domain errors to a status code and a short message."""
    status_code = error_status(exc)
    logger.warning(
        "course_intel_error",
        path=request.url.path,
        error=type(exc).__name__,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Catch-all handler for unhandled exceptions."""
    logger.error("unhandled_exception", exc_info=exc, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


app.include_router(intel_router, prefix="/api/v1")
