# src/executor/models.py — v1
"""Executor request and result types."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from intentphrase.search.models import Platform, SearchHit


class TaskSpec(BaseModel):
    """One external call requested by a phase.

    Generation tasks carry a prompt; search tasks carry a query and platform.
    The prompt text is opaque to the executor.
    """

    kind: Literal["generation", "search"]
    phase: str
    scope_id: str
    prompt: str = ""
    system: str | None = None
    json_mode: bool = True
    max_tokens: int | None = None
    temperature: float | None = None
    query: str = ""
    platform: Platform | None = None

    @property
    def label(self) -> str:
        return f"{self.phase}:{self.kind}:{self.scope_id}"


class TaskResult(BaseModel):
    """Outcome of a successful external call."""

    raw_text: str
    cost_units: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    attempts: int = 1
    truncated: bool = False
    provider: str = ""
    model: str = ""
    hits: list[SearchHit] = Field(default_factory=list)
