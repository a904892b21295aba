# src/pipeline/phases/intent_classification.py — v1
"""Phase 6: intent classification, folded into phrase generation.

No external call: canonicalizes the intent label and confidence of every
phrase produced by phase 5.
"""

from __future__ import annotations

from collections import Counter
from typing import Any

from intentphrase.core.models import IntentLabel, ScopeKind
from intentphrase.pipeline.phases.base_phase import BasePhase, PhaseOutput, PhaseRequest

DEFAULT_INTENT: IntentLabel = "informational"
DEFAULT_CONFIDENCE = 75

INTENT_LABELS: tuple[IntentLabel, ...] = (
    "informational", "navigational", "transactional", "commercial",
)
_SYNONYMS: dict[str, IntentLabel] = {
    "info": "informational",
    "information": "informational",
    "informative": "informational",
    "navigation": "navigational",
    "brand": "navigational",
    "transaction": "transactional",
    "purchase": "transactional",
    "buy": "transactional",
    "commercial investigation": "commercial",
    "investigation": "commercial",
    "comparison": "commercial",
}


def normalize_intent(label: Any) -> tuple[IntentLabel, bool]:
    """Map a free-form label to a canonical intent. Returns (label, was_defaulted)."""
    if not isinstance(label, str):
        return DEFAULT_INTENT, True
    key = label.strip().lower().replace("_", " ").replace("-", " ")
    if key in INTENT_LABELS:
        return key, False  # type: ignore[return-value]
    if key in _SYNONYMS:
        return _SYNONYMS[key], False
    return DEFAULT_INTENT, True


def clamp_score(value: Any, default: int) -> int:
    """Coerce to int and clamp to 0..100; unusable values give ``default``."""
    if isinstance(value, bool):
        return default
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return default
    return max(0, min(100, score))


class IntentClassificationPhase(BasePhase):

    @property
    def name(self) -> str:
        return "intent_classification"

    @property
    def scope(self) -> ScopeKind:
        return "keyword"

    async def execute(self, request: PhaseRequest) -> PhaseOutput:
        generated = request.context.section("phrase_generation") or {}
        phrases: list[dict[str, Any]] = []
        defaulted = 0
        for item in generated.get("phrases", []):
            label, was_defaulted = normalize_intent(item.get("intent"))
            defaulted += was_defaulted
            confidence = clamp_score(
                item.get("intentConfidence", item.get("confidence")), DEFAULT_CONFIDENCE,
            )
            phrases.append({**item, "intent": label, "intentConfidence": confidence})

        distribution = Counter(p["intent"] for p in phrases)
        return PhaseOutput(
            result={
                "phrases": phrases,
                "distribution": {label: distribution.get(label, 0) for label in INTENT_LABELS},
                "defaulted": defaulted,
            },
            degraded="phrase_generation" in request.context.degraded_phases,
        )
