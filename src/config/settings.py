# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM PROVIDERS ===
    llm_default_provider: str = "openai"
    llm_default_model: str = "gpt-4o"
    llm_temperature: float = 0.3
    llm_max_tokens: int = 3000

    # Provider API keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # Per-phase LLM assignment ("provider:model", highest priority)
    llm_semantic_analysis: str = ""
    llm_community_mining: str = ""
    llm_competitor_research: str = ""
    llm_search_patterns: str = ""
    llm_phrase_generation: str = ""

    # === SEARCH BACKEND ===
    serpapi_api_key: str = ""
    search_base_url: str = "https://serpapi.com/search"
    search_results_per_query: int = 10
    search_gl: str = "us"
    search_hl: str = "en"
    search_cost_per_call: float = 0.01
    community_search_queries: int = 3

    # === EXECUTOR ===
    task_timeout_s: float = 60.0
    retry_max_attempts: int = 3
    retry_base_delay_s: float = 1.0
    retry_backoff_factor: float = 2.0
    retry_max_delay_s: float = 30.0
    retry_jitter: bool = True

    # === COORDINATOR ===
    keyword_concurrency: int = 3
    disconnect_policy: Literal["finish", "cancel"] = "finish"
    lease_ttl_s: int = 900
    context_char_budget: int = 12_000

    # === PHRASE SHAPING ===
    phrases_per_keyword: int = 5
    phrase_min_words: int = 12
    phrase_max_words: int = 15
    short_phrase_penalty: int = 10

    # === CHECKPOINTS ===
    checkpoint_backend: Literal["sqlite", "redis"] = "sqlite"
    checkpoint_db_path: Path = Path("~/.intentphrase/checkpoints.db")
    checkpoint_redis_url: str = ""

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("keyword_concurrency", "retry_max_attempts")
    @classmethod
    def validate_positive(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.checkpoint_backend == "redis" and not self.checkpoint_redis_url:
            errors.append(
                "CHECKPOINT_REDIS_URL must be set when CHECKPOINT_BACKEND=redis"
            )

        if self.phrase_min_words > self.phrase_max_words:
            errors.append("PHRASE_MIN_WORDS must be <= PHRASE_MAX_WORDS")

        if self.retry_max_delay_s < self.retry_base_delay_s:
            errors.append("RETRY_MAX_DELAY_S must be >= RETRY_BASE_DELAY_S")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
