# src/pipeline/models.py — v1
"""Run outcome models: KeywordFailure, RunSummary."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from intentphrase.tracking.models import RunCost

RunStatus = Literal["success", "partial_success", "failed"]


class KeywordFailure(BaseModel):
    """Why one keyword did not finish."""

    keyword_id: str
    term: str
    phase: str
    kind: str
    message: str


class RunSummary(BaseModel):
    """Outcome of one coordinator run, mirrored by the terminal event."""

    run_id: str
    domain_id: str
    status: RunStatus
    keywords_total: int = 0
    keywords_succeeded: int = 0
    failed_keywords: list[KeywordFailure] = Field(default_factory=list)
    total_phrases: int = 0
    phases_executed: int = 0
    phases_reused: int = 0
    degraded_phases: int = 0
    cost: RunCost = Field(default_factory=RunCost)
    error_kind: str | None = None
    error_message: str | None = None
    started_at: datetime
    ended_at: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        if self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()
