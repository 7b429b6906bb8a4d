"""Lenient parsing of model replies that should be, but often aren't, JSON.

Model output arrives wrapped in prose or code fences, truncated mid-array,
with trailing commas, or with each key wrapped in its own braces. These
helpers recover as much structure as possible from such text.
"""

from __future__ import annotations

import json
import re
from typing import Any

from course_intel.ingestion.links import normalize_domain

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.I | re.S)
_SCHEDULE_START_RE = re.compile(r"\"schedule\"\s*:\s*\[", re.I)
_SOURCE_URL_RE = re.compile(r"\"source_url\"\s*:\s*\"([^\"]+)\"", re.I)
_SOURCE_URL_CLAIM_RE = re.compile(r"\"source_url\"\s*:\s*\"", re.I)
_URL_RE = re.compile(r"https?://[^\s\"\\]+", re.I)
_HTTP_RE = re.compile(r"^https?://", re.I)

REFUSAL_RE = re.compile(
    r"I (?:can't|cannot|need to clarify)|I'?m Perplexity|search results provided|I appreciate your",
    re.I,
)


def _balanced_segments(text: str, open_char: str, close_char: str) -> list[str]:
    """Every top-level balanced ``open..close`` segment, string-aware."""
    segments: list[str] = []
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == open_char:
            if depth == 0:
                start = i
            depth += 1
        elif ch == close_char and depth > 0:
            depth -= 1
            if depth == 0 and start >= 0:
                segments.append(text[start : i + 1])
                start = -1
    return segments


def remove_trailing_commas(text: str) -> str:
    """Drop commas directly followed (ignoring whitespace) by ``}`` or ``]``."""
    out: list[str] = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == ",":
            rest = text[i + 1 :].lstrip()
            if rest[:1] in ("}", "]"):
                continue
        out.append(ch)
    return "".join(out)


def repair_extra_braces(text: str) -> str:
    """Undo per-key brace wrapping: ``{"a":{..},{"b":{..}}}`` -> one object."""
    fixed = text.replace('},{"', '},"')
    if fixed == text:
        return text
    depth = 0
    in_string = False
    escaped = False
    for ch in fixed:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
    return fixed[:depth] if depth < 0 else fixed


def _candidates(raw: str) -> list[str]:
    text = (raw or "").strip()
    candidates: list[str] = []

    fence = _FENCE_RE.search(text)
    if fence and fence.group(1).strip():
        candidates.append(fence.group(1).strip())

    repaired = repair_extra_braces(text)
    if repaired != text:
        candidates.append(repaired)

    objects = _balanced_segments(text, "{", "}")
    arrays = _balanced_segments(text, "[", "]")
    if len(objects) > 1:
        inner = ",".join(obj.strip()[1:-1] for obj in objects)
        candidates.append("{" + inner + "}")
        candidates.append("[" + ",".join(objects) + "]")
    if "},{" in text or "}\n{" in text:
        flat = re.sub(r"\s+", " ", text)
        candidates.append(f"[{flat}]")
        candidates.append("{" + flat + "}")
    if objects:
        candidates.append(objects[0])
    if arrays:
        candidates.append(arrays[0])
    candidates.append(text)
    return [c for c in dict.fromkeys(candidates) if c]


def parse_lenient_json(raw: str) -> Any:
    """Parse the first JSON value recoverable from a model reply.

    Raises:
        ValueError: If no candidate parses.
    """
    last_error: ValueError | None = None
    for candidate in _candidates(raw):
        for attempt in (candidate, remove_trailing_commas(candidate)):
            try:
                return json.loads(attempt)
            except ValueError as exc:
                last_error = exc

    stripped = re.sub(r"[^}\]]+$", "", re.sub(r"^[^{\[]+", "", raw or ""))
    try:
        return json.loads(stripped)
    except ValueError:
        pass
    raise last_error or ValueError("Invalid JSON")


def parse_json_object(raw: str) -> dict[str, Any] | None:
    """Lenient parse that only accepts a top-level JSON object."""
    try:
        parsed = parse_lenient_json(raw)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def recover_schedule_rows(raw: str) -> list[dict[str, Any]]:
    """Individually parseable objects inside a possibly truncated schedule array."""
    match = _SCHEDULE_START_RE.search(raw or "")
    if match is None:
        return []

    rows: list[dict[str, Any]] = []
    in_string = False
    escaped = False
    depth = 0
    start = -1
    for i in range(match.end(), len(raw)):
        ch = raw[i]
        if escaped:
            escaped = False
            continue
        if ch == "\\":
            escaped = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}":
            if depth > 0:
                depth -= 1
            if depth == 0 and start >= 0:
                try:
                    parsed = json.loads(raw[start : i + 1])
                except ValueError:
                    parsed = None
                if isinstance(parsed, dict):
                    rows.append(parsed)
                start = -1
        elif ch == "]" and depth == 0:
            break
    return rows


def extract_urls(raw: str) -> list[str]:
    """Absolute URLs mentioned anywhere in the reply, one per domain."""
    urls = [u.rstrip(".,);") for u in _URL_RE.findall(raw or "")]
    return normalize_domain(dict.fromkeys(urls))


def raw_source_url(raw: str) -> str | None:
    """The first complete ``"source_url": "..."`` string value, any content."""
    match = _SOURCE_URL_RE.search(raw or "")
    return match.group(1).strip() if match else None


def is_http_url(value: object) -> bool:
    return isinstance(value, str) and bool(_HTTP_RE.match(value.strip()))


def extract_source_url(raw: str) -> str | None:
    """The ``source_url`` string value, when it is an absolute http(s) URL."""
    value = raw_source_url(raw)
    return value if is_http_url(value) else None


def claims_source_url(raw: str) -> bool:
    """True when the reply starts a string ``source_url`` value."""
    return bool(_SOURCE_URL_CLAIM_RE.search(raw or ""))


def looks_like_refusal(raw: str) -> bool:
    """Prose reply (not starting with ``{``) matching refusal/disclaimer phrases."""
    text = (raw or "").strip()
    return not text.startswith("{") and bool(REFUSAL_RE.search(text))
