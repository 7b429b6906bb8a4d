"""Shared schemas for LLM infrastructure."""

from datetime import datetime

from pydantic import BaseModel, Field


class ModelSelection(BaseModel):
    """Provider and model chosen for one run, passed explicitly per call."""

    provider: str  # gemini, anthropic, openai, perplexity
    model_id: str


class LLMRequest(BaseModel):
    """Input for LLM call."""

    prompt: str
    system_prompt: str | None = None
    model: str = ""  # set by ModelRouter; providers fall back to default_model
    temperature: float = 0.0
    max_tokens: int = 8192
    action: str = ""  # course_intel, ...


class LLMResponse(BaseModel):
    """Unified response from any LLM provider."""

    content: str
    provider: str
    model_id: str
    tokens_in: int | None = None
    tokens_out: int | None = None
    latency_ms: int = 0
    cost_usd: float | None = None
    action: str = ""
    finished_at: datetime = Field(default_factory=datetime.now)
