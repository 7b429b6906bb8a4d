"""Centralized application configuration via environment variables."""

from enum import StrEnum
from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All LLM API keys use SecretStr to prevent accidental logging.
    Database URL is assembled from individual components to match
    the official PostgreSQL Docker image environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- App ---
    environment: Environment = Environment.DEVELOPMENT
    log_level: str = "DEBUG"

    # --- PostgreSQL ---
    postgres_user: str = "course_intel"
    postgres_password: SecretStr = SecretStr("secret")
    postgres_db: str = "course_intel"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        """Assemble database URL from components.

        Uses psycopg v3 driver which supports both sync (create_engine)
        and async (create_async_engine) modes natively.
        """
        password = self.postgres_password.get_secret_value()
        return (
            f"postgresql+psycopg://{self.postgres_user}:{password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # --- LLM API Keys ---
    gemini_api_key: SecretStr | None = None
    anthropic_api_key: SecretStr | None = None
    openai_api_key: SecretStr | None = None
    perplexity_api_key: SecretStr | None = None

    # --- LLM Default Models ---
    # Used when a request carries no explicit model id.
    gemini_default_model: str = "gemini-2.5-flash"
    anthropic_default_model: str = "claude-sonnet-4-20250514"
    openai_default_model: str = "gpt-4o-mini"
    perplexity_default_model: str = "sonar"

    # --- Perplexity ---
    # Perplexity exposes an OpenAI-compatible API, reached via the OpenAI SDK
    # with a custom base_url.
    perplexity_base_url: str = "https://api.perplexity.ai"

    # --- Model catalog & prompts ---
    model_registry_path: Path = Path("config/models.yaml")
    intel_prompt_path: Path = Path("prompts/course_intel/v1.yaml")

    # --- Page fetching ---
    fetch_timeout_seconds: float = 8.0
    fetch_user_agent: str = "CourseIntel/1.0 (+course-intel)"
    fetch_concurrency: int = 6
    fetch_max_bytes: int = 2_000_000

    # --- Extraction limits ---
    max_seed_urls: int = 4
    max_discovered_urls: int = 8
    max_excerpt_urls: int = 4
    excerpt_chars: int = 2200
    min_page_text_chars: int = 200
    max_resources: int = 25

    # --- Generative budgets ---
    draft_max_tokens: int = 8192
    retry_max_tokens: int = 12000

    # --- Convenience properties ---
    @property
    def is_dev(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings singleton.

    Usage::

        from course_intel.config import get_settings
        settings = get_settings()
    """
    return Settings()


settings = get_settings()
