"""Resource list and assignment records derived from the merged schedule."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog

from course_intel.ingestion.dates import normalize_date
from course_intel.ingestion.links import (
    host_key,
    host_matches,
    is_noisy,
    normalize_domain,
    normalize_url,
)
from course_intel.ingestion.parsers.common import task_category
from course_intel.models.course import CourseIdentity
from course_intel.models.syllabus import AssignmentKind, AssignmentRecord, ScheduleRow, TaskRef

logger = structlog.get_logger()

ACADEMIC_HOSTS: frozenset[str] = frozenset(
    {
        "github.com",
        "github.io",
        "gitlab.com",
        "docs.google.com",
        "drive.google.com",
        "arxiv.org",
        "notion.site",
        "readthedocs.io",
        "ocw.mit.edu",
        "instructure.com",
        "gradescope.com",
        "edstem.org",
    }
)
_ACADEMIC_TLD_RE = re.compile(r"\.(edu|ac\.[a-z]{2}|edu\.[a-z]{2})$")
_PATH_SCORES: tuple[tuple[int, re.Pattern[str]], ...] = (
    (25, re.compile(r"syllabus", re.I)),
    (20, re.compile(r"calendar|schedule", re.I)),
    (15, re.compile(r"resources?|materials?|lectures?|slides|notes", re.I)),
    (10, re.compile(r"assignments?|homeworks?|labs?|projects?", re.I)),
)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_ASSIGNMENT_WORD_RE = re.compile(r"\bassignments?\b", re.I)
_LAB_WORD_RE = re.compile(r"\blabs?\b", re.I)
_EXAM_WORD_RE = re.compile(r"\b(exams?|midterms?|finals?)\b", re.I)
_PROJECT_WORD_RE = re.compile(r"\bprojects?\b", re.I)
_RELEASED_RE = re.compile(r"\b(due|out)\b", re.I)
_PROJECT_STEP_RE = re.compile(r"\b(due|proposals?|milestones?)\b", re.I)

TASK_BUCKETS: tuple[tuple[str, AssignmentKind], ...] = (
    ("assignments", AssignmentKind.ASSIGNMENT),
    ("labs", AssignmentKind.LAB),
    ("exams", AssignmentKind.EXAM),
    ("projects", AssignmentKind.PROJECT),
)


class ResourceScorer:
    """Relevance score for a candidate resource URL relative to a course."""

    def __init__(self, course: CourseIdentity, seeds: Iterable[str] = ()) -> None:
        self._seed_hosts = {h for h in (host_key(u) for u in [*course.known_urls, *seeds]) if h}
        self._code = _NON_ALNUM_RE.sub("", course.course_code.lower())
        self._title = _NON_ALNUM_RE.sub("", course.title.lower())

    def score(self, url: str) -> int:
        host = host_key(url)
        flat = _NON_ALNUM_RE.sub("", url.lower())
        score = 0
        if host in self._seed_hosts:
            score += 30
        for points, pattern in _PATH_SCORES:
            if pattern.search(url):
                score += points
                break
        if host_matches(host, ACADEMIC_HOSTS) or _ACADEMIC_TLD_RE.search(host):
            score += 10
        if len(self._code) >= 3 and self._code in flat:
            score += 20
        if len(self._title) >= 6 and self._title in flat:
            score += 10
        return score


def schedule_links(rows: Sequence[ScheduleRow]) -> list[str]:
    """Every http(s) URL embedded anywhere in the schedule."""
    return [
        ref.url for row in rows for ref in row.links() if ref.url and ref.url.startswith("http")
    ]


def build_resource_list(
    course: CourseIdentity,
    *,
    generative: Iterable[str] = (),
    recovered: Iterable[str] = (),
    deterministic: Iterable[str] = (),
    schedule: Sequence[ScheduleRow] = (),
    source_url: str | None = None,
    persisted: Iterable[str] = (),
    seeds: Iterable[str] = (),
    limit: int = 25,
) -> list[str]:
    """Union every resource source, rank by relevance, domain-dedupe, cap.

    Ranking happens before the domain dedup so the most relevant URL of
    each host is the one kept.
    """
    pool: list[str] = [
        *generative,
        *recovered,
        *deterministic,
        *schedule_links(schedule),
        *([source_url] if source_url else []),
        *persisted,
    ]
    candidates = [u for u in (normalize_url(p) for p in pool) if u and not is_noisy(u)]
    scorer = ResourceScorer(course, seeds)
    ranked = sorted(candidates, key=scorer.score, reverse=True)
    resources = normalize_domain(ranked)[:limit]
    logger.debug("resources_built", pool=len(pool), kept=len(resources))
    return resources


def _record(
    course_id: UUID,
    syllabus_id: UUID | None,
    now: datetime,
    **fields: Any,
) -> AssignmentRecord:
    return AssignmentRecord(
        course_id=course_id,
        syllabus_id=syllabus_id,
        retrieved_at=now,
        updated_at=now,
        **fields,
    )


def assignments_from_rows(
    rows: Sequence[ScheduleRow], course_id: UUID, syllabus_id: UUID | None, now: datetime
) -> list[AssignmentRecord]:
    """Explicit per-row task entries."""
    out: list[AssignmentRecord] = []
    for row in rows:
        row_date = normalize_date(row.date)
        for category, kind in TASK_BUCKETS:
            for task in getattr(row, category):
                label = task.label.strip()
                if not label:
                    continue
                out.append(
                    _record(
                        course_id,
                        syllabus_id,
                        now,
                        kind=kind,
                        label=label,
                        due_on=normalize_date(task.due_date),
                        url=task.url,
                        description=task.description,
                        source_sequence=row.sequence,
                        source_row_date=row_date,
                    )
                )
    return out


def assignments_from_heuristics(
    rows: Sequence[ScheduleRow], course_id: UUID, syllabus_id: UUID | None, now: datetime
) -> list[AssignmentRecord]:
    """Tasks inferred from row title and description wording."""
    out: list[AssignmentRecord] = []
    for row in rows:
        row_date = normalize_date(row.date)
        title = row.title or ""
        description = row.description or ""
        blob = f"{title} {description}"
        released = bool(_RELEASED_RE.search(blob))

        inferred: list[tuple[AssignmentKind, str]] = []
        if _ASSIGNMENT_WORD_RE.search(blob) and released:
            inferred.append((AssignmentKind.ASSIGNMENT, title or "Assignment"))
        if _LAB_WORD_RE.search(blob) and released:
            inferred.append((AssignmentKind.LAB, title or "Lab"))
        if _EXAM_WORD_RE.search(blob):
            inferred.append((AssignmentKind.EXAM, title or "Exam"))
        if _PROJECT_WORD_RE.search(blob) and _PROJECT_STEP_RE.search(blob):
            inferred.append((AssignmentKind.PROJECT, title or "Project"))

        for kind, label in inferred:
            out.append(
                _record(
                    course_id,
                    syllabus_id,
                    now,
                    kind=kind,
                    label=label,
                    due_on=row_date,
                    description=description or None,
                    source_sequence=row.sequence,
                    source_row_date=row_date,
                )
            )
    return out


def assignments_from_top_level(
    items: Iterable[Any], course_id: UUID, syllabus_id: UUID | None, now: datetime
) -> list[AssignmentRecord]:
    """A loosely-typed top-level ``assignments`` array from the model."""
    out: list[AssignmentRecord] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        label = item.get("label")
        if not isinstance(label, str) or not label.strip():
            continue
        metadata = item.get("metadata")
        url = item.get("url")
        description = item.get("description")
        sequence = item.get("source_sequence")
        out.append(
            _record(
                course_id,
                syllabus_id,
                now,
                kind=AssignmentKind.coerce(item.get("kind", "other")),
                label=label.strip(),
                due_on=normalize_date(item.get("due_on") or item.get("due_date")),
                url=url if isinstance(url, str) else None,
                description=description if isinstance(description, str) else None,
                source_sequence=sequence if isinstance(sequence, str) else None,
                source_row_date=normalize_date(item.get("source_row_date")),
                metadata=metadata if isinstance(metadata, dict) else {},
            )
        )
    return out


def dedupe_assignments(records: Iterable[AssignmentRecord]) -> list[AssignmentRecord]:
    """Keep the first record per ``(kind, lowercased label, due_on)``."""
    seen: set[tuple[str, str, str]] = set()
    out: list[AssignmentRecord] = []
    for record in records:
        if record.dedup_key in seen:
            continue
        seen.add(record.dedup_key)
        out.append(record)
    return out


def materialize_assignments(
    rows: Sequence[ScheduleRow],
    top_level: Iterable[Any],
    *,
    course_id: UUID,
    syllabus_id: UUID | None,
    now: datetime,
    deadline_tasks: Iterable[TaskRef] = (),
) -> list[AssignmentRecord]:
    """Run the three assignment passes in confidence order and dedupe.

    Deadline sentences found on pages but not attached to any row are
    treated as explicit task entries of a synthetic undated row.
    """
    attached = {
        task.dedup_key
        for row in rows
        for category, _ in TASK_BUCKETS
        for task in getattr(row, category)
    }
    loose = ScheduleRow()
    for task in deadline_tasks:
        if task.dedup_key not in attached:
            getattr(loose, task_category(task.label)).append(task)
    explicit = assignments_from_rows([*rows, loose], course_id, syllabus_id, now)
    heuristic = assignments_from_heuristics(rows, course_id, syllabus_id, now)
    generative = assignments_from_top_level(top_level, course_id, syllabus_id, now)
    records = dedupe_assignments([*explicit, *heuristic, *generative])
    logger.info(
        "assignments_materialized",
        explicit=len(explicit),
        heuristic=len(heuristic),
        generative=len(generative),
        total=len(records),
    )
    return records
