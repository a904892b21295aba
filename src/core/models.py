# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types: all imports come from core.models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

ScopeKind = Literal["domain", "keyword"]
PhaseStatus = Literal["pending", "running", "completed", "failed"]
IntentLabel = Literal["informational", "navigational", "transactional", "commercial"]
TrendLabel = Literal["rising", "stable", "declining"]


# === INPUT RECORDS (read-only to the pipeline) ===


class Domain(BaseModel):
    """Unit of analysis created upstream (crawl + context extraction)."""

    id: str
    url: str = ""
    context: str = ""
    location: str | None = None


class Keyword(BaseModel):
    """Keyword belonging to a Domain."""

    id: str
    domain_id: str
    term: str


# === CHECKPOINT ROW ===


class PhaseExecution(BaseModel):
    """Persisted status and result of one (scope, phase) pair.

    Exactly one row exists per (scope_id, phase). Rows are upserted on every
    run and never deleted by the pipeline. ``domain_id`` is the owning
    domain (equal to ``scope_id`` for domain-scoped rows).
    """

    scope_id: str
    scope_kind: ScopeKind
    phase: str
    domain_id: str = ""
    status: PhaseStatus = "pending"
    progress: int = Field(default=0, ge=0, le=100)
    result: Any = None
    error: str | None = None
    degraded: bool = False
    cost_units: float = 0.0
    started_at: datetime | None = None
    ended_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"


# === PHRASES ===


class GeneratedPhrase(BaseModel):
    """Search phrase produced for a keyword by the phrase-generation stage."""

    keyword_id: str
    domain_id: str
    text: str
    intent_label: IntentLabel = "informational"
    intent_confidence: int = Field(default=75, ge=0, le=100)
    relevance_score: int = Field(default=80, ge=0, le=100)
    source_tags: list[str] = Field(default_factory=list)
    trend_label: TrendLabel = "stable"
    degraded: bool = False

    @property
    def word_count(self) -> int:
        return len(self.text.split())
