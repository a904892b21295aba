# src/pipeline/phases/competitor_research.py — v1
"""Phase 3: competitor research for the domain."""

from __future__ import annotations

from pathlib import Path

from intentphrase.core.models import ScopeKind
from intentphrase.pipeline.phases.base_phase import (
    BasePhase,
    PhaseOutput,
    PhaseRequest,
    prompt_path,
)


class CompetitorResearchPhase(BasePhase):

    @property
    def name(self) -> str:
        return "competitor_research"

    @property
    def scope(self) -> ScopeKind:
        return "domain"

    @property
    def prompt_file(self) -> Path | None:
        return prompt_path(self.name)

    async def execute(self, request: PhaseRequest) -> PhaseOutput:
        parsed, result = await self._generate(request, expect=dict)
        competitors = parsed.value.get("competitors") if isinstance(parsed.value, dict) else None
        warnings = [] if isinstance(competitors, list) else ["no competitor list in response"]
        return PhaseOutput(
            result=parsed.value,
            degraded=parsed.degraded,
            cost_units=result.cost_units,
            warnings=warnings,
        )
