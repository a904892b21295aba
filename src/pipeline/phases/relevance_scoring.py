# src/pipeline/phases/relevance_scoring.py — v1
"""Phase 7: relevance scoring, folded into phrase generation.

No external call: applies the short-phrase penalty, clamps scores, splits
each score across the scoring dimensions and emits the final phrase rows.
"""

from __future__ import annotations

from typing import Any

from intentphrase.core.models import GeneratedPhrase, ScopeKind, TrendLabel
from intentphrase.pipeline.phases.base_phase import BasePhase, PhaseOutput, PhaseRequest
from intentphrase.pipeline.phases.intent_classification import (
    DEFAULT_CONFIDENCE,
    clamp_score,
    normalize_intent,
)

DEFAULT_RELEVANCE = 80

# Points per dimension out of 100
SCORE_WEIGHTS: dict[str, int] = {
    "semantic_relevance": 25,
    "intent_alignment": 20,
    "user_behavior": 20,
    "competitive_landscape": 15,
    "business_value": 20,
}
_TRENDS: tuple[TrendLabel, ...] = ("rising", "stable", "declining")


def score_breakdown(score: int) -> dict[str, int]:
    """Split a 0..100 score proportionally across SCORE_WEIGHTS."""
    return {dim: round(score * weight / 100) for dim, weight in SCORE_WEIGHTS.items()}


def normalize_trend(value: Any) -> TrendLabel:
    if isinstance(value, str) and value.strip().lower() in _TRENDS:
        return value.strip().lower()  # type: ignore[return-value]
    return "stable"


def source_tags(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


class RelevanceScoringPhase(BasePhase):

    @property
    def name(self) -> str:
        return "relevance_scoring"

    @property
    def scope(self) -> ScopeKind:
        return "keyword"

    async def execute(self, request: PhaseRequest) -> PhaseOutput:
        if request.keyword is None:
            raise ValueError("relevance_scoring needs a keyword scope")
        classified = request.context.section("intent_classification") or {}
        degraded = bool(
            {"phrase_generation", "intent_classification"} & set(request.context.degraded_phases)
        )

        scored: list[dict[str, Any]] = []
        phrases: list[GeneratedPhrase] = []
        for item in classified.get("phrases", []):
            raw = clamp_score(item.get("relevanceScore"), DEFAULT_RELEVANCE)
            score = max(0, min(100, raw - int(item.get("relevancePenalty", 0) or 0)))
            intent, _ = normalize_intent(item.get("intent"))
            scored.append({
                "phrase": item["phrase"],
                "relevanceScore": score,
                "breakdown": score_breakdown(score),
            })
            phrases.append(GeneratedPhrase(
                keyword_id=request.keyword.id,
                domain_id=request.domain.id,
                text=item["phrase"],
                intent_label=intent,
                intent_confidence=clamp_score(item.get("intentConfidence"), DEFAULT_CONFIDENCE),
                relevance_score=score,
                source_tags=source_tags(item.get("sources")),
                trend_label=normalize_trend(item.get("trend")),
                degraded=degraded,
            ))

        average = round(sum(s["relevanceScore"] for s in scored) / len(scored)) if scored else 0
        return PhaseOutput(
            result={"scores": scored, "averageScore": average, "phraseCount": len(phrases)},
            degraded=degraded,
            phrases=phrases,
        )
