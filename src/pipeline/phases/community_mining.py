# src/pipeline/phases/community_mining.py — v1
"""Phase 2: community data mining.

Searches Reddit and Quora for discussions around the domain's subject, then
asks the generation backend to extract insights from the hits. A missing
search backend or a search that stays transient after retries degrades the
phase, and the generation call still runs on whatever was found. A permanent
search failure (bad credentials, rejected request) fails the phase.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from intentphrase.core.errors import TransientExternalError
from intentphrase.core.models import ScopeKind
from intentphrase.executor.models import TaskSpec
from intentphrase.pipeline.phases.base_phase import (
    BasePhase,
    PhaseOutput,
    PhaseRequest,
    prompt_path,
)
from intentphrase.search.models import Platform, SearchHit

logger = logging.getLogger(__name__)

PLATFORMS: tuple[Platform, ...] = ("reddit", "quora")
_QUERY_TEMPLATES = (
    "{subject} problems solutions",
    "{subject} best practices",
    "how to implement {subject}",
    "{subject} questions answers",
    "{subject} vs alternatives",
)
_SUBJECT_MAX_WORDS = 8


def community_subject(request: PhaseRequest) -> str:
    """Short search subject: first analyzed theme, else the domain context or host."""
    semantic = request.context.section("semantic_analysis")
    if isinstance(semantic, dict):
        themes = semantic.get("themes")
        if isinstance(themes, list) and themes:
            first = themes[0]
            theme = first.get("theme") if isinstance(first, dict) else first
            if isinstance(theme, str) and theme.strip():
                return theme.strip()

    if request.domain.context.strip():
        return " ".join(request.domain.context.split()[:_SUBJECT_MAX_WORDS])
    host = urlparse(request.domain.url).netloc or request.domain.url
    return host.removeprefix("www.")


def build_queries(subject: str, location: str | None, limit: int) -> list[str]:
    queries = [t.format(subject=subject) for t in _QUERY_TEMPLATES]
    if location:
        queries.insert(1, f"{subject} {location}")
    return queries[: max(0, limit)]


class CommunityMiningPhase(BasePhase):
    """Reddit/Quora search plus one insight-extraction call."""

    @property
    def name(self) -> str:
        return "community_mining"

    @property
    def scope(self) -> ScopeKind:
        return "domain"

    @property
    def prompt_file(self) -> Path | None:
        return prompt_path(self.name)

    async def execute(self, request: PhaseRequest) -> PhaseOutput:
        settings = request.settings
        queries = build_queries(
            community_subject(request), request.domain.location,
            settings.community_search_queries,
        )
        hits: list[SearchHit] = []
        warnings: list[str] = []
        cost = 0.0
        searched = request.executor.has_search

        if not searched:
            logger.info("No search backend configured, mining from analysis only")
            warnings.append("search backend not configured")
        else:
            total = len(queries) * len(PLATFORMS)
            done = 0
            for query in queries:
                for platform in PLATFORMS:
                    task = TaskSpec(
                        kind="search", phase=self.name, scope_id=request.scope_id,
                        query=query, platform=platform,
                    )
                    try:
                        result = await request.executor.execute(task)
                    except TransientExternalError as exc:
                        logger.warning("Search %r on %s failed: %s", query, platform, exc)
                        warnings.append(f"{platform} search failed for {query!r}: {exc}")
                    else:
                        hits.extend(result.hits)
                        cost += result.cost_units
                    done += 1
                    await request.report(
                        10 + int(70 * done / total),
                        f"Searched {platform} for {query!r} ({done}/{total})",
                    )

        hits = _dedupe(hits)
        parsed, gen = await self._generate(
            request,
            expect=dict,
            context=request.context.render(
                settings.context_char_budget, phases=["semantic_analysis"],
            ) or "(no prior results)",
            result_count=len(hits),
            community_results=json.dumps(
                [h.model_dump(exclude_none=True) for h in hits], ensure_ascii=False,
            ),
        )
        cost += gen.cost_units

        result: dict[str, Any] = {
            "queries": queries,
            "searched": searched,
            "hits": [h.model_dump() for h in hits],
            "insights": parsed.value,
        }
        search_failed = any("search failed" in w for w in warnings)
        return PhaseOutput(
            result=result,
            degraded=parsed.degraded or search_failed,
            cost_units=cost,
            warnings=warnings,
        )


def _dedupe(hits: list[SearchHit]) -> list[SearchHit]:
    seen: set[str] = set()
    unique: list[SearchHit] = []
    for hit in hits:
        key = hit.url or f"{hit.platform}:{hit.title}"
        if key in seen:
            continue
        seen.add(key)
        unique.append(hit)
    return unique
