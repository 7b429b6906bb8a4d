"""Prompt template loading and formatting utilities."""

import re
from pathlib import Path

import yaml
from pydantic import BaseModel


class PromptData(BaseModel):
    """Validated prompt template loaded from YAML.

    Fields:
        version: Prompt version for A/B testing (e.g., "v1").
        system_prompt: System prompt text for the LLM.
        user_prompt_template: User prompt with ``{{course_code}}``-style
            placeholders.
        strict_suffix: Instruction appended on strict retries.
    """

    version: str = "unknown"
    system_prompt: str
    user_prompt_template: str
    strict_suffix: str


def load_prompt(path: str | Path) -> PromptData:
    """Load prompt template from YAML file.

    Args:
        path: Path to the YAML prompt file.

    Returns:
        Validated PromptData.

    Raises:
        FileNotFoundError: If the prompt file does not exist.
        ValidationError: If required keys are missing or invalid.
    """
    prompt_path = Path(path)
    if not prompt_path.exists():
        raise FileNotFoundError(f"Prompt file not found: {prompt_path}")

    with prompt_path.open() as f:
        data = yaml.safe_load(f)

    return PromptData.model_validate(data)


# ``{{key}}`` first so the double-brace form is consumed whole.
_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}|\{(\w+)\}")


def apply_template(template: str, values: dict[str, str]) -> str:
    """Substitute ``{{key}}`` and ``{key}`` placeholders in one pass.

    Unknown placeholders are left untouched and injected values are never
    re-scanned, so a value containing ``{title}`` stays literal.

    Args:
        template: Prompt template text, typically user-editable.
        values: Placeholder values (course_code, university, title, ...).

    Returns:
        Formatted prompt string.
    """

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1) or match.group(2)
        return values.get(key, match.group(0))

    return _PLACEHOLDER_RE.sub(_replace, template)
