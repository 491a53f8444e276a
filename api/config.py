"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Question count guardrails
MIN_QUESTION_COUNT = 5
MAX_QUESTION_COUNT = 50


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Provider credentials
    openrouter_api_key: str | None = None
    openai_api_key: str | None = None
    perplexity_api_key: str | None = None

    # Answer generation (the assistant being probed)
    answer_provider: Literal["perplexity", "openrouter", "openai", "mock"] = "perplexity"
    answer_model: str = "sonar"
    answer_max_tokens: int = 1024

    # Judgment (the analyzer grading each answer)
    judge_provider: Literal["openrouter", "openai", "heuristic", "mock"] = "openrouter"
    judge_model: str = "openai/gpt-4o-mini"
    judge_timeout_seconds: float = 45.0

    # Pipeline guardrails
    visibility_question_count: int = 15
    visibility_max_questions: int = MAX_QUESTION_COUNT
    visibility_concurrency: int = 5  # In-flight requests per stage
    visibility_request_timeout_seconds: float = 60.0  # Per-dispatch timeout
    visibility_stage_timeout_seconds: float = 600.0  # Whole-stage deadline
    visibility_cancel_grace_seconds: float = 10.0  # In-flight grace after cancel
    visibility_max_retries: int = 2  # Retries after the first attempt
    visibility_retry_delay_seconds: float = 1.0
    visibility_retry_backoff_multiplier: float = 2.0

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.env == "production"

    @property
    def is_test(self) -> bool:
        """Check if running in test mode."""
        return self.env == "test"

    @property
    def answer_provider_enabled(self) -> bool:
        """Check if the configured answer provider has credentials."""
        keys = {
            "perplexity": self.perplexity_api_key,
            "openrouter": self.openrouter_api_key,
            "openai": self.openai_api_key,
        }
        if self.answer_provider == "mock":
            return True
        return bool(keys.get(self.answer_provider))

    def clamp_question_count(self, requested: int | None = None) -> int:
        """Clamp a requested question count to the configured bounds."""
        count = requested or self.visibility_question_count
        return max(MIN_QUESTION_COUNT, min(count, self.visibility_max_questions))


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
