"""Schedule reconciliation: row merging, signal union and week folding.

Row identity is ``(date, lowercased title)``. Scalars prefer the first
non-empty value in precedence order (deterministic, then generative, then
week signals); link categories are unioned by case-insensitive URL.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TypeVar

import structlog

from course_intel.ingestion.parsers.common import task_category, week_number
from course_intel.ingestion.parsers.grading import dedupe_grading
from course_intel.models.syllabus import (
    LINK_CATEGORIES,
    TASK_CATEGORIES,
    DeterministicSignals,
    LinkRef,
    ScheduleRow,
    TaskRef,
    WeekSignal,
)

logger = structlog.get_logger()

_SCALAR_FIELDS = ("sequence", "title", "date", "date_end", "instructor", "description")

RefT = TypeVar("RefT", bound=LinkRef)


def merge_links(*groups: Iterable[RefT]) -> list[RefT]:
    """Concatenate link lists and dedupe by URL, first-seen label wins.

    Empty fields on the kept ref (a task's due date or description) are
    filled from later duplicates.
    """
    index: dict[str, int] = {}
    out: list[RefT] = []
    for group in groups:
        for ref in group:
            key = ref.dedup_key
            if key not in index:
                index[key] = len(out)
                out.append(ref)
                continue
            kept = out[index[key]]
            gaps = {field: value for field, value in ref if value and not getattr(kept, field)}
            if gaps:
                out[index[key]] = kept.model_copy(update=gaps)
    return out


def merge_row_pair(primary: ScheduleRow, secondary: ScheduleRow) -> ScheduleRow:
    """Merge two rows; ``primary`` wins every non-empty scalar field."""
    merged: dict[str, object] = {}
    for field in _SCALAR_FIELDS:
        merged[field] = getattr(primary, field) or getattr(secondary, field)

    topics: list[str] = []
    for topic in [*primary.topics, *secondary.topics]:
        if topic and topic.lower() not in {t.lower() for t in topics}:
            topics.append(topic)
    merged["topics"] = topics

    for category in (*LINK_CATEGORIES, *TASK_CATEGORIES):
        merged[category] = merge_links(getattr(primary, category), getattr(secondary, category))
    return ScheduleRow.model_validate(merged)


def collapse_rows(rows: Iterable[ScheduleRow]) -> list[ScheduleRow]:
    """Collapse rows sharing a merge key into their first occurrence.

    Rows without a usable key are kept as-is in their position.
    """
    out: list[ScheduleRow] = []
    index: dict[tuple[str, str], int] = {}
    for row in rows:
        key = row.merge_key
        if key is None:
            out.append(row)
            continue
        if key in index:
            out[index[key]] = merge_row_pair(out[index[key]], row)
        else:
            index[key] = len(out)
            out.append(row)
    return out


def union_week_signals(signals: Iterable[WeekSignal]) -> list[WeekSignal]:
    """Union signals sharing a week number, sorted by week."""
    by_week: dict[int, WeekSignal] = {}
    for signal in signals:
        current = by_week.get(signal.week)
        if current is None:
            by_week[signal.week] = signal.model_copy(deep=True)
            continue
        by_week[signal.week] = WeekSignal(
            week=signal.week,
            title=current.title or signal.title,
            slides=merge_links(current.slides, signal.slides),
            readings=merge_links(current.readings, signal.readings),
            assignments=merge_links(current.assignments, signal.assignments),
        )
    return [by_week[w] for w in sorted(by_week)]


def combine_signals(bundles: Iterable[DeterministicSignals]) -> DeterministicSignals:
    """Flatten per-URL signal bundles into one, deduping every part."""
    bundles = list(bundles)
    extra: list[str] = []
    for bundle in bundles:
        for url in bundle.extra_resources:
            if url.lower() not in {u.lower() for u in extra}:
                extra.append(url)
    return DeterministicSignals(
        schedule_rows=collapse_rows(r for b in bundles for r in b.schedule_rows),
        grading_signals=dedupe_grading(g for b in bundles for g in b.grading_signals),
        week_signals=union_week_signals(w for b in bundles for w in b.week_signals),
        extra_resources=extra,
        task_signals=merge_links(*(b.task_signals for b in bundles)),
    )


def sort_by_date(rows: Sequence[ScheduleRow]) -> list[ScheduleRow]:
    """Stable date-ascending sort; rows without a date go last."""
    return sorted(rows, key=lambda r: (r.date is None, r.date or ""))


def fold_week_signals(
    rows: Sequence[ScheduleRow], signals: Sequence[WeekSignal]
) -> list[ScheduleRow]:
    """Fold week-keyed links into rows, synthesizing rows for unseen weeks.

    Week numbers come from each row's sequence or title. When no row carries
    an explicit week number, rows are numbered by position. Only the first
    row of a week receives that week's links.
    """
    out = [row.model_copy(deep=True) for row in rows]
    if not signals:
        return out
    explicit = [week_number(row.sequence, row.title) for row in out]
    if not any(explicit):
        explicit = list(range(1, len(out) + 1))

    first_row_of_week: dict[int, int] = {}
    for position, week in enumerate(explicit):
        if week is not None and week not in first_row_of_week:
            first_row_of_week[week] = position

    for signal in union_week_signals(signals):
        tasks = [TaskRef(label=ref.label, url=ref.url, due_date=None) for ref in signal.assignments]
        position = first_row_of_week.get(signal.week)
        if position is None:
            out.append(
                ScheduleRow(
                    sequence=f"Week {signal.week}",
                    title=signal.title or f"Week {signal.week}",
                    slides=list(signal.slides),
                    readings=list(signal.readings),
                    assignments=tasks,
                )
            )
            continue
        row = out[position]
        row.slides = merge_links(row.slides, signal.slides)
        row.readings = merge_links(row.readings, signal.readings)
        row.assignments = merge_links(row.assignments, tasks)
    return out


def attach_tasks(rows: list[ScheduleRow], tasks: Iterable[TaskRef]) -> None:
    """Attach deadline tasks to the first row dated on their due date."""
    by_date: dict[str, ScheduleRow] = {}
    for row in rows:
        if row.date and row.date not in by_date:
            by_date[row.date] = row
    for task in tasks:
        row = by_date.get(task.due_date or "")
        if row is None:
            continue
        category = task_category(task.label)
        setattr(row, category, merge_links(getattr(row, category), [task]))


def reconcile(
    deterministic: DeterministicSignals,
    generative_rows: Sequence[ScheduleRow],
) -> list[ScheduleRow]:
    """Produce the canonical schedule from both extraction strategies.

    Generative rows are matched against deterministic rows by merge key;
    matched pairs merge with deterministic precedence, unmatched
    deterministic rows follow, week signals are folded in and the result
    is sorted by date. With no generative rows the deterministic rows (plus
    week-synthesized rows) are used as-is.
    """
    det_rows = collapse_rows(deterministic.schedule_rows)
    gen_rows = collapse_rows(generative_rows)

    det_by_key = {row.merge_key: row for row in det_rows if row.merge_key is not None}
    matched: set[tuple[str, str]] = set()
    merged: list[ScheduleRow] = []
    for row in gen_rows:
        key = row.merge_key
        partner = det_by_key.get(key) if key is not None else None
        if partner is None:
            merged.append(row)
            continue
        matched.add(key)  # type: ignore[arg-type]
        merged.append(merge_row_pair(partner, row))
    merged.extend(row for row in det_rows if row.merge_key is None or row.merge_key not in matched)

    schedule = fold_week_signals(sort_by_date(merged), deterministic.week_signals)
    attach_tasks(schedule, deterministic.task_signals)
    schedule = sort_by_date(schedule)
    logger.info(
        "schedule_reconciled",
        deterministic_rows=len(det_rows),
        generative_rows=len(gen_rows),
        matched=len(matched),
        week_signals=len(deterministic.week_signals),
        total=len(schedule),
    )
    return schedule
