# src/pipeline/catalog.py — v1
"""Fixed phase catalogue: order, scope and display metadata of the seven steps.

The catalogue is not configurable. Domain-scoped phases always run before
keyword-scoped ones, and each phase depends on every phase listed before it
for the same scope.
"""

from __future__ import annotations

from dataclasses import dataclass

from intentphrase.core.models import ScopeKind


@dataclass(frozen=True)
class PhaseSpec:
    """Static description of one pipeline phase."""

    index: int
    name: str
    scope: ScopeKind
    label: str
    description: str
    external: bool = True


PHASES: tuple[PhaseSpec, ...] = (
    PhaseSpec(1, "semantic_analysis", "domain", "Semantic Content Analysis",
              "Analyzing brand voice, themes and target audience"),
    PhaseSpec(2, "community_mining", "domain", "Community Data Mining",
              "Extracting insights from Reddit and Quora discussions"),
    PhaseSpec(3, "competitor_research", "domain", "Competitor Analysis",
              "Identifying competitors and their positioning"),
    PhaseSpec(4, "search_patterns", "keyword", "Search Pattern Analysis",
              "Analyzing how users search for each keyword"),
    PhaseSpec(5, "phrase_generation", "keyword", "Intent Phrase Generation",
              "Generating intent-based search phrases"),
    PhaseSpec(6, "intent_classification", "keyword", "Intent Classification",
              "Classifying the search intent of each phrase", external=False),
    PhaseSpec(7, "relevance_scoring", "keyword", "Relevance Score Calculation",
              "Scoring phrase relevance to the domain", external=False),
)

PHASE_ORDER: tuple[str, ...] = tuple(p.name for p in PHASES)
DOMAIN_PHASES: tuple[str, ...] = tuple(p.name for p in PHASES if p.scope == "domain")
KEYWORD_PHASES: tuple[str, ...] = tuple(p.name for p in PHASES if p.scope == "keyword")

_BY_NAME = {p.name: p for p in PHASES}


def get_phase(name: str) -> PhaseSpec:
    """Look up a phase by name.

    Raises:
        KeyError: Unknown phase name.
    """
    return _BY_NAME[name]


def phase_index(name: str) -> int:
    """1-based position of a phase in the pipeline."""
    return _BY_NAME[name].index


def steps_payload() -> list[dict[str, object]]:
    """Step list sent to the caller at the start of a run."""
    return [
        {
            "index": p.index,
            "phase": p.name,
            "scope": p.scope,
            "name": p.label,
            "description": p.description,
            "status": "pending",
        }
        for p in PHASES
    ]
