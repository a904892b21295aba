# src/pipeline/phases/phrase_generation.py — v1
"""Phase 5: intent phrase generation for one keyword.

Makes the only external call of the keyword's phrase stage. The raw phrase
list is shaped to the configured word window here; intent and relevance are
normalized by the two folded phases that follow.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from intentphrase.core.models import ScopeKind
from intentphrase.parsing.repair_parser import parse
from intentphrase.pipeline.phases.base_phase import (
    BasePhase,
    PhaseOutput,
    PhaseRequest,
    prompt_path,
)

logger = logging.getLogger(__name__)

_TEXT_KEYS = ("phrase", "text")
_PHRASES_ARRAY_RE = re.compile(r'"phrases"\s*:\s*\[')


def extract_phrase_items(value: Any) -> tuple[list[Any], bool]:
    """Pull the phrase list out of a parsed response.

    Accepts a bare list or an object with a ``phrases`` list. Returns the
    items and whether the shape was unexpected.
    """
    if isinstance(value, list):
        return value, False
    if isinstance(value, dict):
        items = value.get("phrases")
        if isinstance(items, list):
            return items, False
    return [], True


def salvage_phrase_array(raw_text: str | None) -> list[Any]:
    """Recover the complete items of a cut-off ``phrases`` array.

    Truncation repair only re-closes the outermost container, so an envelope
    cut inside its ``phrases`` list loses the whole list. Parsing from the
    list opener keeps every item that was fully written.
    """
    match = _PHRASES_ARRAY_RE.search(raw_text or "")
    if match is None:
        return []
    return parse(raw_text[match.end() - 1 :], expect=list).value


def shape_phrases(
    items: list[Any],
    min_words: int,
    max_words: int,
    short_penalty: int,
) -> tuple[list[dict[str, Any]], int]:
    """Apply the word window to raw phrase items.

    Phrases longer than ``max_words`` are cut to ``max_words``; phrases shorter
    than ``min_words`` carry ``relevancePenalty``. Items without usable text
    are skipped and counted.

    Returns:
        (shaped items, number of skipped items)
    """
    shaped: list[dict[str, Any]] = []
    skipped = 0
    for item in items:
        if isinstance(item, str):
            item = {"phrase": item}
        if not isinstance(item, dict):
            skipped += 1
            continue
        text = next(
            (item[k] for k in _TEXT_KEYS if isinstance(item.get(k), str) and item[k].strip()),
            None,
        )
        if text is None:
            skipped += 1
            continue

        words = text.split()
        out = {k: v for k, v in item.items() if k not in _TEXT_KEYS}
        out["phrase"] = " ".join(words[:max_words])
        out["originalWordCount"] = len(words)
        out["wordCount"] = min(len(words), max_words)
        out["truncated"] = len(words) > max_words
        out["relevancePenalty"] = short_penalty if len(words) < min_words else 0
        shaped.append(out)
    return shaped, skipped


class PhraseGenerationPhase(BasePhase):

    @property
    def name(self) -> str:
        return "phrase_generation"

    @property
    def scope(self) -> ScopeKind:
        return "keyword"

    @property
    def prompt_file(self) -> Path | None:
        return prompt_path(self.name)

    async def execute(self, request: PhaseRequest) -> PhaseOutput:
        settings = request.settings
        parsed, result = await self._generate(
            request,
            expect=(dict, list),
            default={"phrases": []},
            count=settings.phrases_per_keyword,
            min_words=settings.phrase_min_words,
            max_words=settings.phrase_max_words,
        )
        items, bad_shape = extract_phrase_items(parsed.value)
        if not items and parsed.degraded:
            salvaged = salvage_phrase_array(result.raw_text)
            if salvaged:
                logger.info("Salvaged %d phrases from a cut-off envelope", len(salvaged))
                items, bad_shape = salvaged, False
        phrases, skipped = shape_phrases(
            items,
            settings.phrase_min_words,
            settings.phrase_max_words,
            settings.short_phrase_penalty,
        )

        warnings: list[str] = []
        if bad_shape:
            warnings.append("response has no phrase list")
        if skipped:
            warnings.append(f"{skipped} phrase entries without text")
        logger.info(
            "Generated %d phrases for keyword %s (%d skipped)",
            len(phrases), request.scope_id, skipped,
        )
        return PhaseOutput(
            result={
                "keyword": request.keyword.term if request.keyword else "",
                "requested": settings.phrases_per_keyword,
                "phrases": phrases,
                "skipped": skipped,
            },
            degraded=parsed.degraded or bad_shape or skipped > 0,
            cost_units=result.cost_units,
            warnings=warnings,
        )
