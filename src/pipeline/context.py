# src/pipeline/context.py — v1
"""Context aggregator.

Builds the input context of a phase from the already-persisted, completed
results of the same scope and, for keyword scopes, of the owning domain.
``assemble_context`` is pure; ``ContextAggregator.build`` only reads the
checkpoint store.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any

from pydantic import BaseModel, Field

from intentphrase.checkpoint.base_checkpoint_store import BaseCheckpointStore
from intentphrase.core.models import PhaseExecution, ScopeKind
from intentphrase.pipeline.catalog import DOMAIN_PHASES, KEYWORD_PHASES, PHASE_ORDER

logger = logging.getLogger(__name__)

_TRUNCATION_MARK = "\n[context truncated]"


class ContextBlob(BaseModel):
    """Deterministic, read-only context handed to a phase."""

    scope_id: str
    scope_kind: ScopeKind
    domain_id: str
    sections: dict[str, Any] = Field(default_factory=dict)
    degraded_phases: list[str] = Field(default_factory=list)
    fingerprint: str = ""

    def section(self, phase: str, default: Any = None) -> Any:
        return self.sections.get(phase, default)

    @property
    def is_degraded(self) -> bool:
        return bool(self.degraded_phases)

    def render(self, char_budget: int | None = None, phases: list[str] | None = None) -> str:
        """Render sections as prompt text, in pipeline order.

        Args:
            char_budget: Maximum characters; longer output is cut and marked.
            phases: Restrict to these phases (default: all present).
        """
        parts: list[str] = []
        for phase in PHASE_ORDER:
            if phase not in self.sections or (phases is not None and phase not in phases):
                continue
            body = json.dumps(self.sections[phase], sort_keys=True, ensure_ascii=False)
            parts.append(f"## {phase}\n{body}")
        text = "\n\n".join(parts)
        if char_budget is not None and len(text) > char_budget:
            keep = max(0, char_budget - len(_TRUNCATION_MARK))
            text = text[:keep] + _TRUNCATION_MARK
        return text


def assemble_context(
    scope_id: str,
    scope_kind: ScopeKind,
    domain_id: str,
    domain_rows: list[PhaseExecution],
    scope_rows: list[PhaseExecution] | None = None,
) -> ContextBlob:
    """Combine completed rows into a ContextBlob.

    Only completed rows contribute. Sections are keyed by phase name, so the
    result does not depend on the order rows were supplied in.
    """
    rows = list(domain_rows)
    if scope_kind == "keyword":
        rows.extend(scope_rows or [])

    allowed = set(DOMAIN_PHASES) if scope_kind == "domain" else set(PHASE_ORDER)
    sections: dict[str, Any] = {}
    degraded: set[str] = set()
    for row in rows:
        if not row.is_completed or row.phase not in allowed:
            continue
        sections[row.phase] = row.result
        if row.degraded:
            degraded.add(row.phase)

    ordered = {p: sections[p] for p in PHASE_ORDER if p in sections}
    degraded_phases = [p for p in PHASE_ORDER if p in degraded]
    return ContextBlob(
        scope_id=scope_id,
        scope_kind=scope_kind,
        domain_id=domain_id,
        sections=ordered,
        degraded_phases=degraded_phases,
        fingerprint=compute_fingerprint(scope_id, scope_kind, ordered, degraded_phases),
    )


def compute_fingerprint(
    scope_id: str,
    scope_kind: str,
    sections: dict[str, Any],
    degraded_phases: list[str],
) -> str:
    """SHA-256 over the canonical JSON form of the context inputs."""
    canonical = json.dumps(
        {
            "scope_id": scope_id,
            "scope_kind": scope_kind,
            "sections": sections,
            "degraded": degraded_phases,
        },
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ContextAggregator:
    """Reads completed checkpoint rows and assembles phase context."""

    def __init__(self, store: BaseCheckpointStore) -> None:
        self._store = store

    async def build(self, scope_id: str, scope_kind: ScopeKind, domain_id: str) -> ContextBlob:
        """Build the context of ``scope_id``.

        Args:
            scope_id: Domain id or keyword id.
            scope_kind: "domain" or "keyword".
            domain_id: Owning domain (equal to scope_id for domain scope).
        """
        domain_rows = await self._load(domain_id, DOMAIN_PHASES)
        scope_rows: list[PhaseExecution] = []
        if scope_kind == "keyword":
            scope_rows = await self._load(scope_id, KEYWORD_PHASES)
        blob = assemble_context(scope_id, scope_kind, domain_id, domain_rows, scope_rows)
        logger.debug(
            "Context for %s %s: %d sections, fingerprint %s",
            scope_kind, scope_id, len(blob.sections), blob.fingerprint[:12],
        )
        return blob

    async def _load(self, scope_id: str, phases: tuple[str, ...]) -> list[PhaseExecution]:
        rows: list[PhaseExecution] = []
        for phase in phases:
            row = await self._store.get(scope_id, phase)
            if row is not None:
                rows.append(row)
        return rows
