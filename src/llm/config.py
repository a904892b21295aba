# src/llm/config.py — v1
"""Which model serves which phase.

Cascade, first match wins:
  1. LLM_<PHASE>="provider:model" (e.g. LLM_PHRASE_GENERATION=anthropic:claude-sonnet-4-20250514)
  2. LLM_DEFAULT_PROVIDER + LLM_DEFAULT_MODEL
  3. openai:gpt-4o
"""

from __future__ import annotations

import logging
from typing import Iterable, Literal, NamedTuple

from intentphrase.config.settings import Settings

logger = logging.getLogger(__name__)

RouteSource = Literal["phase", "default", "fallback"]

FALLBACK_ROUTE = ("openai", "gpt-4o")


class LLMAssignment(NamedTuple):
    provider: str
    model: str
    source: RouteSource

    @property
    def key(self) -> str:
        return f"{self.provider}:{self.model}"


def split_model_ref(ref: str) -> tuple[str, str] | None:
    """'anthropic:claude-x' -> ('anthropic', 'claude-x'); None when unusable."""
    provider, sep, model = (ref or "").partition(":")
    provider, model = provider.strip(), model.strip()
    if not sep or not provider or not model:
        return None
    return provider, model


def resolve_llm(phase: str, settings: Settings) -> LLMAssignment:
    """Pick the generation backend for ``phase``."""
    ref = getattr(settings, f"llm_{phase}", "") or ""
    parts = split_model_ref(ref)
    if parts is not None:
        return LLMAssignment(*parts, "phase")
    if ref:
        logger.warning("Ignoring malformed LLM_%s=%r (want provider:model)", phase.upper(), ref)

    if settings.llm_default_provider and settings.llm_default_model:
        return LLMAssignment(settings.llm_default_provider, settings.llm_default_model, "default")
    return LLMAssignment(*FALLBACK_ROUTE, "fallback")


def resolve_all(phases: Iterable[str], settings: Settings) -> dict[str, LLMAssignment]:
    return {phase: resolve_llm(phase, settings) for phase in phases}
