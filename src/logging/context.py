# src/logging/context.py — v1
"""Contextual logging support: attach run, domain, phase and keyword to log records.

Keyword tasks run concurrently on the event loop; each asyncio task works on a
copy of the context, so a keyword task only ever sees its own scope.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_domain_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "domain_id", default=None
)
_keyword_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "keyword_id", default=None
)
_phase: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "phase", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    domain_id: str | None = None
    keyword_id: str | None = None
    phase: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        domain_id=_domain_id.get(),
        keyword_id=_keyword_id.get(),
        phase=_phase.get(),
    )


def set_run_context(run_id: str, domain_id: str) -> None:
    """Set run-level context (called once per pipeline run)."""
    _run_id.set(run_id)
    _domain_id.set(domain_id)


def set_keyword_context(keyword_id: str | None) -> None:
    """Set keyword scope (called at the start of each keyword task)."""
    _keyword_id.set(keyword_id)


def set_phase_context(phase: str | None) -> None:
    """Set the phase currently executing in this task."""
    _phase.set(phase)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _domain_id.set(None)
    _keyword_id.set(None)
    _phase.set(None)
