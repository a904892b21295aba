# src/pipeline/phases/registry.py — v1
"""Phase registry: maps phase names to handler instances.

The default registry holds exactly the seven catalogue phases. Tests and
embedders may swap a handler with ``register`` as long as the name and
scope match the catalogue.
"""

from __future__ import annotations

import logging

from intentphrase.pipeline.catalog import PHASE_ORDER, get_phase
from intentphrase.pipeline.phases.base_phase import BasePhase
from intentphrase.pipeline.phases.community_mining import CommunityMiningPhase
from intentphrase.pipeline.phases.competitor_research import CompetitorResearchPhase
from intentphrase.pipeline.phases.intent_classification import IntentClassificationPhase
from intentphrase.pipeline.phases.phrase_generation import PhraseGenerationPhase
from intentphrase.pipeline.phases.relevance_scoring import RelevanceScoringPhase
from intentphrase.pipeline.phases.search_patterns import SearchPatternsPhase
from intentphrase.pipeline.phases.semantic_analysis import SemanticAnalysisPhase

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Raised when a handler does not match the phase catalogue."""


class PhaseRegistry:
    """Handlers for every catalogue phase."""

    def __init__(self, handlers: list[BasePhase] | None = None) -> None:
        self._handlers: dict[str, BasePhase] = {}
        for handler in handlers if handlers is not None else _default_handlers():
            self.register(handler)

    def register(self, handler: BasePhase) -> None:
        try:
            spec = get_phase(handler.name)
        except KeyError:
            raise RegistryError(f"Unknown phase: {handler.name!r}") from None
        if spec.scope != handler.scope:
            raise RegistryError(
                f"Phase {handler.name!r} is {spec.scope}-scoped, handler says {handler.scope}"
            )
        if handler.name in self._handlers:
            logger.debug("Replacing handler for phase %s", handler.name)
        self._handlers[handler.name] = handler

    def get(self, name: str) -> BasePhase:
        handler = self._handlers.get(name)
        if handler is None:
            raise RegistryError(f"No handler registered for phase {name!r}")
        return handler

    def validate(self) -> list[str]:
        """Return the catalogue phases that have no handler."""
        return [p for p in PHASE_ORDER if p not in self._handlers]


def _default_handlers() -> list[BasePhase]:
    return [
        SemanticAnalysisPhase(),
        CommunityMiningPhase(),
        CompetitorResearchPhase(),
        SearchPatternsPhase(),
        PhraseGenerationPhase(),
        IntentClassificationPhase(),
        RelevanceScoringPhase(),
    ]
