"""Agents for generative syllabus extraction."""

from course_intel.agents.extraction_config import ExtractionConfig, resolve_extraction_config
from course_intel.agents.prompt_loader import PromptData, apply_template, load_prompt
from course_intel.agents.syllabus_agent import GenerativeResult, PreparedPrompt, SyllabusAgent

__all__ = [
    "ExtractionConfig",
    "GenerativeResult",
    "PreparedPrompt",
    "PromptData",
    "SyllabusAgent",
    "apply_template",
    "load_prompt",
    "resolve_extraction_config",
]
