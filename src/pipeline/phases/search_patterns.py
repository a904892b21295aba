# src/pipeline/phases/search_patterns.py — v1
"""Phase 4: search pattern analysis for one keyword."""

from __future__ import annotations

from pathlib import Path

from intentphrase.core.models import ScopeKind
from intentphrase.pipeline.phases.base_phase import (
    BasePhase,
    PhaseOutput,
    PhaseRequest,
    prompt_path,
)


class SearchPatternsPhase(BasePhase):

    @property
    def name(self) -> str:
        return "search_patterns"

    @property
    def scope(self) -> ScopeKind:
        return "keyword"

    @property
    def prompt_file(self) -> Path | None:
        return prompt_path(self.name)

    async def execute(self, request: PhaseRequest) -> PhaseOutput:
        parsed, result = await self._generate(request, expect=dict)
        return PhaseOutput(
            result=parsed.value,
            degraded=parsed.degraded,
            cost_units=result.cost_units,
        )
