# src/pipeline/phases/semantic_analysis.py — v1
"""Phase 1: semantic content analysis of the domain."""

from __future__ import annotations

from pathlib import Path

from intentphrase.core.models import ScopeKind
from intentphrase.pipeline.phases.base_phase import (
    BasePhase,
    PhaseOutput,
    PhaseRequest,
    prompt_path,
)


class SemanticAnalysisPhase(BasePhase):
    """Brand voice, themes, audience and community hints for the domain."""

    @property
    def name(self) -> str:
        return "semantic_analysis"

    @property
    def scope(self) -> ScopeKind:
        return "domain"

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
