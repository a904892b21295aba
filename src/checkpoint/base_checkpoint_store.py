# src/checkpoint/base_checkpoint_store.py — v1
"""Abstract checkpoint store interface.

The store persists one PhaseExecution per (scope_id, phase), the per-domain
run lease, and the generated phrases of each keyword. It is the only
mechanism by which a rerun skips completed work.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from intentphrase.core.models import (
    GeneratedPhrase,
    PhaseExecution,
    PhaseStatus,
    ScopeKind,
)


class BaseCheckpointStore(ABC):
    """Unified interface for checkpoint storage backends."""

    @abstractmethod
    async def get(self, scope_id: str, phase: str) -> PhaseExecution | None:
        """Retrieve the row for (scope_id, phase), or None if never written."""

    @abstractmethod
    async def put(
        self,
        scope_id: str,
        phase: str,
        status: PhaseStatus,
        *,
        scope_kind: ScopeKind,
        domain_id: str,
        progress: int = 0,
        result: Any = None,
        error: str | None = None,
        degraded: bool = False,
        cost_units: float = 0.0,
    ) -> PhaseExecution:
        """Upsert the row for (scope_id, phase) and return what was stored."""

    @abstractmethod
    async def list_for_domain(self, domain_id: str) -> list[PhaseExecution]:
        """All rows owned by a domain (domain- and keyword-scoped)."""

    # --- Run lease ---

    @abstractmethod
    async def acquire_lease(self, domain_id: str, owner: str, ttl_s: float) -> None:
        """Take the per-domain run lease.

        An expired lease, or one already held by ``owner``, is taken over.

        Raises:
            ConcurrentRunConflict: Another owner holds a live lease.
        """

    @abstractmethod
    async def renew_lease(self, domain_id: str, owner: str, ttl_s: float) -> bool:
        """Extend the lease expiry. False if ``owner`` no longer holds it."""

    @abstractmethod
    async def release_lease(self, domain_id: str, owner: str) -> None:
        """Drop the lease if ``owner`` holds it."""

    # --- Phrases ---

    @abstractmethod
    async def replace_phrases(self, keyword_id: str, phrases: list[GeneratedPhrase]) -> None:
        """Replace every stored phrase of a keyword with ``phrases``."""

    @abstractmethod
    async def list_phrases(
        self, domain_id: str | None = None, keyword_id: str | None = None
    ) -> list[GeneratedPhrase]:
        """Stored phrases, filtered by domain and/or keyword."""

    async def close(self) -> None:
        """Release backend resources. Default: no-op."""


def merge_execution(
    existing: PhaseExecution | None,
    scope_id: str,
    phase: str,
    status: PhaseStatus,
    *,
    scope_kind: ScopeKind,
    domain_id: str,
    progress: int = 0,
    result: Any = None,
    error: str | None = None,
    degraded: bool = False,
    cost_units: float = 0.0,
    now: datetime | None = None,
) -> PhaseExecution:
    """Compute the row a put() stores, given the current row.

    Progress never decreases while a row stays running. Entering running
    clears the previous error; reaching a terminal status stamps
    ``ended_at`` and forces completed rows to 100.
    """
    now = now or datetime.now(timezone.utc)
    progress = max(0, min(100, int(progress)))

    if existing is None:
        started_at = now if status != "pending" else None
    elif status == "running" and existing.status != "running":
        started_at = now
    else:
        started_at = existing.started_at or (now if status != "pending" else None)

    if status == "running":
        if existing is not None and existing.status == "running":
            progress = max(progress, existing.progress)
        error = None
        ended_at = None
    elif status == "completed":
        progress = 100
        error = None
        ended_at = now
    elif status == "failed":
        if existing is not None and existing.status == "running":
            progress = max(progress, existing.progress)
        ended_at = now
    else:
        ended_at = None

    return PhaseExecution(
        scope_id=scope_id,
        scope_kind=scope_kind,
        phase=phase,
        domain_id=domain_id,
        status=status,
        progress=progress,
        result=result,
        error=error,
        degraded=degraded,
        cost_units=cost_units,
        started_at=started_at,
        ended_at=ended_at,
        updated_at=now,
    )
