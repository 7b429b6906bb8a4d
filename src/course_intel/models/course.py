"""Course identity, AI profile and run result schemas."""

from uuid import UUID

from pydantic import BaseModel, Field


class CourseIdentity(BaseModel):
    """The course fields an intel run reads from the course store."""

    id: UUID
    course_code: str = ""
    university: str = ""
    title: str = ""
    url: str | None = None
    resources: list[str] = Field(default_factory=list)

    @property
    def known_urls(self) -> list[str]:
        """Course homepage followed by persisted resources, first-seen order."""
        seen: set[str] = set()
        out: list[str] = []
        for url in [self.url, *self.resources]:
            if url and url not in seen:
                seen.add(url)
                out.append(url)
        return out


class AIProfile(BaseModel):
    """Per-user AI preferences read from the profile store."""

    ai_provider: str = ""
    ai_default_model: str = ""
    ai_web_search_enabled: bool = False
    ai_course_intel_prompt_template: str = ""
    ai_course_update_prompt_template: str = ""
    ai_syllabus_prompt_template: str = ""


class IntelResult(BaseModel):
    """Counts reported back to the caller once a run has persisted."""

    resources: list[str] = Field(default_factory=list)
    schedule_entries: int = 0
    assignments_count: int = 0
    assignments_preserved: bool = False
    syllabus_id: UUID | None = None
