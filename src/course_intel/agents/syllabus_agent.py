"""SyllabusAgent: generative syllabus extraction with a quality-gate retry ladder."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, NamedTuple

import structlog
from pydantic import BaseModel, Field

from course_intel.agents.extraction_config import INTEL_ACTION, ExtractionConfig
from course_intel.agents.lenient_json import (
    claims_source_url,
    extract_source_url,
    extract_urls,
    is_http_url,
    looks_like_refusal,
    parse_json_object,
    raw_source_url,
    recover_schedule_rows,
)
from course_intel.agents.prompt_loader import apply_template
from course_intel.errors import MalformedResponseError
from course_intel.ingestion.dates import normalize_date
from course_intel.ingestion.links import dedupe_urls, normalize_url
from course_intel.llm.router import ModelRouter
from course_intel.llm.schemas import LLMResponse
from course_intel.models.course import CourseIdentity
from course_intel.models.syllabus import (
    LINK_CATEGORIES,
    TASK_CATEGORIES,
    DeterministicSignals,
    LinkRef,
    ScheduleRow,
    TaskRef,
)

logger = structlog.get_logger()

# A result at or below these counts looks structurally empty.
MIN_ROWS = 1
MIN_RESOURCES = 1
MAX_HINT_CHARS = 6000


class AttemptKind(StrEnum):
    """Prompt/budget variants of the retry ladder."""

    DRAFT = "draft"
    LARGER_BUDGET = "larger_budget"
    STRICT = "strict"
    FORCE_JSON = "force_json"


STRICT_KINDS = frozenset({AttemptKind.STRICT, AttemptKind.FORCE_JSON})


@dataclass
class Attempt:
    """One issued model call and what could be recovered from it."""

    kind: AttemptKind
    response: LLMResponse
    parsed: dict[str, Any] | None
    rows: list[dict[str, Any]] = field(default_factory=list)
    recovered_rows: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def evaluate(cls, kind: AttemptKind, response: LLMResponse) -> Attempt:
        text = response.content
        parsed = parse_json_object(text)
        schedule = parsed.get("schedule") if parsed else None
        rows = [r for r in schedule if isinstance(r, dict)] if isinstance(schedule, list) else []
        return cls(
            kind=kind,
            response=response,
            parsed=parsed,
            rows=rows,
            recovered_rows=recover_schedule_rows(text),
        )

    @property
    def text(self) -> str:
        return self.response.content

    @property
    def resources(self) -> list[str]:
        value = (self.parsed or {}).get("resources")
        return [u for u in value if is_http_url(u)] if isinstance(value, list) else []

    @property
    def assignments(self) -> list[Any]:
        value = (self.parsed or {}).get("assignments")
        return value if isinstance(value, list) else []

    @property
    def looks_empty(self) -> bool:
        return (
            len(self.rows) <= MIN_ROWS
            and len(self.recovered_rows) <= MIN_ROWS
            and len(self.resources) <= MIN_RESOURCES
            and not self.assignments
        )

    @property
    def score(self) -> tuple[int, int, int]:
        """Rank key: combined rows, then JSON-object shape, then extras."""
        return (
            len(self.rows) + len(self.recovered_rows),
            int(self.parsed is not None),
            len(self.resources) + len(self.assignments),
        )


def next_attempt(attempts: list[Attempt]) -> AttemptKind | None:
    """Ladder transition: which variant to run next, or None to stop.

    Each variant runs at most once. ``LARGER_BUDGET`` follows a draft with at
    most one row; ``STRICT`` follows a best-so-far that looks structurally
    empty; ``FORCE_JSON`` follows a refusal-style prose reply when no strict
    prompt has been sent yet.
    """
    tried = {a.kind for a in attempts}
    best = select_best(attempts)
    draft = attempts[0]

    if AttemptKind.LARGER_BUDGET not in tried and len(draft.rows) <= MIN_ROWS:
        return AttemptKind.LARGER_BUDGET
    if AttemptKind.STRICT not in tried and best.looks_empty:
        return AttemptKind.STRICT
    if not tried & STRICT_KINDS and looks_like_refusal(best.text):
        return AttemptKind.FORCE_JSON
    return None


def select_best(attempts: list[Attempt]) -> Attempt:
    """Highest-scoring attempt; the earliest wins ties."""
    best = attempts[0]
    for attempt in attempts[1:]:
        if attempt.score > best.score:
            best = attempt
    return best


class GenerativeResult(BaseModel):
    """Candidate syllabus recovered from the winning attempt."""

    text: str
    prompt: str
    schedule_rows: list[ScheduleRow] = Field(default_factory=list)
    resources: list[str] = Field(default_factory=list)
    recovered_urls: list[str] = Field(default_factory=list)
    source_url: str | None = None
    content: dict[str, Any] = Field(default_factory=dict)
    assignments: list[Any] = Field(default_factory=list)
    attempts: list[AttemptKind] = Field(default_factory=list)
    winner: AttemptKind = AttemptKind.DRAFT
    tokens_in: int = 0
    tokens_out: int = 0
    cost_usd: float | None = None


class PreparedPrompt(NamedTuple):
    """Base and strict user prompts for one run."""

    system_prompt: str
    user_prompt: str
    strict_prompt: str


def _links(items: Any, *, tasks: bool) -> list[LinkRef]:
    """Coerce a model-provided link list; tasks may omit URLs."""
    out: list[LinkRef] = []
    if not isinstance(items, list):
        return out
    for item in items:
        if isinstance(item, str):
            item = {"url": item} if is_http_url(item) else {"label": item}
        if not isinstance(item, dict):
            continue
        raw_url = item.get("url")
        url = normalize_url(raw_url) if is_http_url(raw_url) else None
        label = str(item.get("label") or item.get("title") or "").strip()
        if tasks:
            if not (label or url):
                continue
            description = item.get("description")
            out.append(
                TaskRef(
                    label=label,
                    url=url,
                    due_date=normalize_date(item.get("due_date") or item.get("due_on")),
                    description=description if isinstance(description, str) else None,
                )
            )
        elif url:
            out.append(LinkRef(label=label, url=url))
    return out


def _scalar(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def coerce_row(raw: dict[str, Any]) -> ScheduleRow | None:
    """Loosely-typed model row to ScheduleRow; None when nothing usable."""
    topics = raw.get("topics")
    if isinstance(topics, str):
        topics = [topics]
    data: dict[str, Any] = {
        "sequence": _scalar(raw.get("sequence") or raw.get("week")),
        "title": _scalar(raw.get("title")),
        "date": normalize_date(raw.get("date")),
        "date_end": normalize_date(raw.get("date_end")),
        "instructor": _scalar(raw.get("instructor")),
        "description": _scalar(raw.get("description")),
        "topics": [str(t).strip() for t in topics or [] if str(t).strip()],
    }
    for category in LINK_CATEGORIES:
        data[category] = _links(raw.get(category), tasks=False)
    for category in TASK_CATEGORIES:
        data[category] = _links(raw.get(category), tasks=True)
    row = ScheduleRow.model_validate(data)
    if not (row.title or row.date or row.sequence or row.links()):
        return None
    return row


def build_hints(signals: DeterministicSignals) -> str:
    """Deterministic week and grading signals serialized for the prompt."""
    if not (signals.week_signals or signals.grading_signals):
        return ""
    payload = {
        "week_signals": [w.model_dump() for w in signals.week_signals],
        "grading": [g.model_dump() for g in signals.grading_signals],
    }
    body = json.dumps(payload, ensure_ascii=False)[:MAX_HINT_CHARS]
    return f"Deterministic signals parsed from course pages (use as hints):\n{body}"


class SyllabusAgent:
    """Extracts a candidate syllabus from a text-generation model.

    Steps:
        1. prepare_prompts: template + known URLs + excerpts + hints
        2. _run_ladder: draft and retries until ``next_attempt`` stops
        3. _finalize: pick the best attempt and recover its fields

    Args:
        router: ModelRouter instance for LLM calls.
        temperature: LLM temperature (0.0 = deterministic).
    """

    def __init__(self, router: ModelRouter, *, temperature: float = 0.0) -> None:
        self._router = router
        self._temperature = temperature

    async def run(
        self,
        course: CourseIdentity,
        config: ExtractionConfig,
        *,
        signals: DeterministicSignals | None = None,
        excerpt_context: str = "",
    ) -> GenerativeResult:
        """Run the retry ladder and return the best recoverable result.

        Raises:
            MalformedResponseError: The winning reply claims a ``source_url``
                that cannot be parsed out.
            ConfigurationError, ModelCallError: From the router.
        """
        prepared = self.prepare_prompts(
            course,
            config,
            signals=signals or DeterministicSignals(),
            excerpt_context=excerpt_context,
        )
        attempts = await self._run_ladder(prepared, config)
        return self._finalize(prepared, attempts)

    def prepare_prompts(
        self,
        course: CourseIdentity,
        config: ExtractionConfig,
        *,
        signals: DeterministicSignals,
        excerpt_context: str = "",
    ) -> PreparedPrompt:
        known = course.known_urls
        resources = "Known course URLs:\n" + "\n".join(f"- {u}" for u in known) if known else ""
        base = apply_template(
            config.template,
            {
                "course_code": course.course_code,
                "university": course.university,
                "title": course.title,
                "resources": resources,
            },
        ).strip()
        sections = [base, excerpt_context, build_hints(signals)]
        user_prompt = "\n\n".join(s for s in sections if s)
        return PreparedPrompt(
            system_prompt=config.system_prompt,
            user_prompt=user_prompt,
            strict_prompt=f"{user_prompt}\n\n{config.strict_suffix}",
        )

    async def _run_ladder(
        self, prepared: PreparedPrompt, config: ExtractionConfig
    ) -> list[Attempt]:
        attempts: list[Attempt] = []
        kind: AttemptKind | None = AttemptKind.DRAFT
        while kind is not None:
            prompt = prepared.strict_prompt if kind in STRICT_KINDS else prepared.user_prompt
            budget = (
                config.draft_max_tokens if kind is AttemptKind.DRAFT else config.retry_max_tokens
            )
            response = await self._router.complete(
                INTEL_ACTION,
                prompt,
                selection=config.selection,
                system_prompt=prepared.system_prompt,
                temperature=self._temperature,
                max_tokens=budget,
            )
            attempt = Attempt.evaluate(kind, response)
            attempts.append(attempt)
            logger.info(
                "intel_attempt_done",
                attempt=kind.value,
                rows=len(attempt.rows),
                recovered_rows=len(attempt.recovered_rows),
                resources=len(attempt.resources),
                assignments=len(attempt.assignments),
                json_object=attempt.parsed is not None,
                tokens_out=response.tokens_out,
            )
            kind = next_attempt(attempts)
        return attempts

    def _finalize(self, prepared: PreparedPrompt, attempts: list[Attempt]) -> GenerativeResult:
        best = select_best(attempts)
        parsed = best.parsed or {}
        text = best.text

        # Only a reply that is not valid JSON can carry a truncated source_url.
        if best.parsed is None and claims_source_url(text) and raw_source_url(text) is None:
            logger.error("intel_source_url_unrecoverable", attempt=best.kind.value)
            raise MalformedResponseError("AI returned malformed/truncated source_url JSON")
        declared = parsed.get("source_url")
        source_url = declared.strip() if is_http_url(declared) else extract_source_url(text)

        raw_rows = best.rows or best.recovered_rows
        rows = [r for r in (coerce_row(raw) for raw in raw_rows) if r is not None]
        content = parsed.get("content")

        costs = [a.response.cost_usd for a in attempts if a.response.cost_usd is not None]
        result = GenerativeResult(
            text=text,
            prompt=prepared.user_prompt,
            schedule_rows=rows,
            resources=dedupe_urls(best.resources),
            recovered_urls=extract_urls(text),
            source_url=normalize_url(source_url) if source_url else None,
            content=content if isinstance(content, dict) else {},
            assignments=best.assignments,
            attempts=[a.kind for a in attempts],
            winner=best.kind,
            tokens_in=sum(a.response.tokens_in or 0 for a in attempts),
            tokens_out=sum(a.response.tokens_out or 0 for a in attempts),
            cost_usd=sum(costs) if costs else None,
        )
        logger.info(
            "intel_generation_done",
            attempts=[k.value for k in result.attempts],
            winner=best.kind.value,
            rows=len(rows),
            tokens_in=result.tokens_in,
            tokens_out=result.tokens_out,
        )
        return result
