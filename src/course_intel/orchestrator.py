"""End-to-end course intel run.

Loads the course and the caller's AI profile, discovers candidate pages,
extracts deterministic signals, asks the configured model for a syllabus,
reconciles both into one schedule, and persists resources, syllabus and
assignments. Each persistence stage commits on its own, so a failure in a
later stage leaves the earlier writes in place.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from typing import Any

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from course_intel.agents.extraction_config import ExtractionConfig, resolve_extraction_config
from course_intel.agents.prompt_loader import PromptData, load_prompt
from course_intel.agents.syllabus_agent import GenerativeResult, SyllabusAgent
from course_intel.config import Settings
from course_intel.errors import CourseNotFoundError
from course_intel.ingestion.discovery import SubpageDiscoverer
from course_intel.ingestion.extractor import DeterministicExtractor
from course_intel.ingestion.fetch import PageFetcher, build_excerpt_context
from course_intel.ingestion.links import dedupe_urls, is_noisy
from course_intel.ingestion.materialize import build_resource_list, materialize_assignments
from course_intel.ingestion.merge import reconcile
from course_intel.llm.router import ModelRouter
from course_intel.models.course import CourseIdentity, IntelResult
from course_intel.models.syllabus import DeterministicSignals, ScheduleRow
from course_intel.storage.repositories import (
    AssignmentRepository,
    CourseRepository,
    ProfileRepository,
    SyllabusRepository,
    UsageRepository,
)

logger = structlog.get_logger()

USAGE_FEATURE = "course-intel"

SeedSearch = Callable[[CourseIdentity], Awaitable[list[str]]]


def build_content(generative: GenerativeResult, signals: DeterministicSignals) -> dict[str, Any]:
    """Model ``content`` object, with page-parsed grading when the model gave none."""
    content = dict(generative.content)
    grading = content.get("grading")
    if not grading and signals.grading_signals:
        content["grading"] = [g.model_dump() for g in signals.grading_signals]
    return content


def serialize_schedule(rows: Sequence[ScheduleRow]) -> list[dict[str, Any]]:
    return [row.model_dump(mode="json") for row in rows]


class CourseIntelService:
    """Runs course intel extraction for one course on behalf of one user.

    Args:
        session_factory: Async session factory for the course store.
        router: ModelRouter used for generative extraction.
        settings: Application settings (limits, timeouts, prompt path).
        prompt: Default prompt; loaded from ``settings.intel_prompt_path``
            when omitted.
        search: Optional web-search seeding hook returning ranked URLs.
        http_client: Optional shared httpx client for page fetches.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        router: ModelRouter,
        *,
        settings: Settings,
        prompt: PromptData | None = None,
        search: SeedSearch | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._router = router
        self._settings = settings
        self._prompt = prompt or load_prompt(settings.intel_prompt_path)
        self._search = search
        self._http_client = http_client
        self._agent = SyllabusAgent(router)

    async def run(self, user_id: uuid.UUID, course_id: uuid.UUID) -> IntelResult:
        """Extract, reconcile and persist course intel.

        Raises:
            CourseNotFoundError: No course with ``course_id``.
            ConfigurationError: Provider key, model or template missing.
            MalformedResponseError: Unrecoverable ``source_url`` in the reply.
            ModelCallError: Provider failed after retries.
            SQLAlchemyError: A persistence stage failed.
        """
        async with self._session_factory() as session:
            course = await CourseRepository(session).get_identity(course_id)
            if course is None:
                raise CourseNotFoundError(f"Course {course_id} not found")
            profile = await ProfileRepository(session).get_for_user(user_id)

        config = resolve_extraction_config(
            profile,
            registry=self._router.registry,
            prompt=self._prompt,
            available_providers=self._router.available_providers,
            settings=self._settings,
        )
        log = logger.bind(course_id=str(course_id), provider=config.selection.provider)
        log.info("course_intel_started", model=config.selection.model_id)

        fetcher = PageFetcher(
            timeout=self._settings.fetch_timeout_seconds,
            user_agent=self._settings.fetch_user_agent,
            max_bytes=self._settings.fetch_max_bytes,
            client=self._http_client,
        )
        async with fetcher:
            seeds = await self._seed_urls(course)
            candidates = await SubpageDiscoverer(
                fetcher,
                max_seeds=self._settings.max_seed_urls,
                max_results=self._settings.max_discovered_urls,
            ).discover(seeds)
            candidate_urls = [c.url for c in candidates]
            if not candidate_urls:
                log.info("discovery_empty_using_seeds", seeds=len(seeds))
                candidate_urls = seeds

            extraction = await DeterministicExtractor(
                fetcher,
                concurrency=self._settings.fetch_concurrency,
                min_text_chars=self._settings.min_page_text_chars,
            ).extract(candidate_urls)

            excerpt_context = ""
            if config.web_search_enabled:
                excerpt_context = await build_excerpt_context(
                    fetcher,
                    candidate_urls,
                    max_urls=self._settings.max_excerpt_urls,
                    max_chars=self._settings.excerpt_chars,
                )

        signals = extraction.signals
        if signals.is_empty:
            log.warning("deterministic_signals_empty", pages=len(candidate_urls))
        generative = await self._agent.run(
            course, config, signals=signals, excerpt_context=excerpt_context
        )
        schedule = reconcile(signals, generative.schedule_rows)
        resources = build_resource_list(
            course,
            generative=generative.resources,
            recovered=generative.recovered_urls,
            deterministic=signals.extra_resources,
            schedule=schedule,
            source_url=generative.source_url,
            persisted=course.resources,
            seeds=seeds,
            limit=self._settings.max_resources,
        )

        result = await self._persist(
            course,
            generative=generative,
            signals=signals,
            schedule=schedule,
            resources=resources,
        )
        await self._record_usage(user_id, course, config, generative, result)
        log.info(
            "course_intel_done",
            resources=len(result.resources),
            schedule_entries=result.schedule_entries,
            assignments=result.assignments_count,
            assignments_preserved=result.assignments_preserved,
        )
        return result

    async def _seed_urls(self, course: CourseIdentity) -> list[str]:
        seeds = list(course.known_urls)
        if self._search is not None:
            try:
                seeds.extend(await self._search(course))
            except Exception:
                logger.warning("seed_search_failed", course_id=str(course.id), exc_info=True)
        return [u for u in dedupe_urls(seeds) if not is_noisy(u)]

    async def _persist(
        self,
        course: CourseIdentity,
        *,
        generative: GenerativeResult,
        signals: DeterministicSignals,
        schedule: list[ScheduleRow],
        resources: list[str],
    ) -> IntelResult:
        now = datetime.now(UTC)
        async with self._session_factory() as session:
            await CourseRepository(session).update_resources(course.id, resources)
            await session.commit()

            syllabus = await SyllabusRepository(session).upsert(
                course.id,
                source_url=generative.source_url,
                raw_text=generative.text,
                content=build_content(generative, signals),
                schedule=serialize_schedule(schedule),
                now=now,
            )
            syllabus_id = syllabus.id
            await session.commit()

            records = materialize_assignments(
                schedule,
                generative.assignments,
                course_id=course.id,
                syllabus_id=syllabus_id,
                now=now,
                deadline_tasks=signals.task_signals,
            )
            replaced = await AssignmentRepository(session).replace_for_course(course.id, records)
            await session.commit()

        if not replaced:
            logger.info("assignments_preserved", course_id=str(course.id))
        return IntelResult(
            resources=resources,
            schedule_entries=len(schedule),
            assignments_count=len(records),
            assignments_preserved=not replaced,
            syllabus_id=syllabus_id,
        )

    async def _record_usage(
        self,
        user_id: uuid.UUID,
        course: CourseIdentity,
        config: ExtractionConfig,
        generative: GenerativeResult,
        result: IntelResult,
    ) -> None:
        try:
            async with self._session_factory() as session:
                await UsageRepository(session).record(
                    user_id=user_id,
                    provider=config.selection.provider,
                    model=config.selection.model_id,
                    feature=USAGE_FEATURE,
                    tokens_input=generative.tokens_in,
                    tokens_output=generative.tokens_out,
                    cost_usd=generative.cost_usd or 0.0,
                    prompt=generative.prompt,
                    response_text=generative.text,
                    request_payload={
                        "course_id": str(course.id),
                        "course_code": course.course_code,
                        "university": course.university,
                        "prompt_version": config.prompt_version,
                    },
                    response_payload={
                        "resources_count": len(result.resources),
                        "schedule_entries": result.schedule_entries,
                        "assignments_count": result.assignments_count,
                        "attempts": [a.value for a in generative.attempts],
                    },
                )
                await session.commit()
        except Exception:
            logger.error("usage_log_failed", course_id=str(course.id), exc_info=True)
