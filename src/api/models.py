# src/api/models.py — v1
"""API-level models: ConfigOverrides, RunRequest."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from intentphrase.core.models import Domain, Keyword


class ConfigOverrides(BaseModel):
    """Per-run overrides, a validated subset of Settings."""

    llm_assignments: dict[str, str] | None = None  # phase -> "provider:model"
    keyword_concurrency: int | None = Field(default=None, ge=1)
    disconnect_policy: Literal["finish", "cancel"] | None = None
    phrases_per_keyword: int | None = Field(default=None, ge=1)
    phrase_min_words: int | None = Field(default=None, ge=1)
    phrase_max_words: int | None = Field(default=None, ge=1)
    community_search_queries: int | None = Field(default=None, ge=0)


class RunRequest(BaseModel):
    """One pipeline invocation: a domain and the keywords to process."""

    domain: Domain
    keywords: list[Keyword] = Field(default_factory=list)
    config_overrides: ConfigOverrides | None = None

    @model_validator(mode="after")
    def keywords_belong_to_domain(self) -> RunRequest:
        foreign = [k.id for k in self.keywords if k.domain_id != self.domain.id]
        if foreign:
            raise ValueError(
                f"Keywords {', '.join(foreign)} do not belong to domain {self.domain.id}"
            )
        return self
