# src/pipeline/progress.py — v1
"""Progress emitter: one ordered event channel per run.

Events are appended to an asyncio.Queue in emission order, so events of one
scope keep their relative order. Progress values are clamped per
(scope, phase) so a consumer never sees a phase go backwards. Exactly one
terminal event (``complete`` or ``error``) closes the channel.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

from intentphrase.core.models import ScopeKind
from intentphrase.pipeline.catalog import phase_index

logger = logging.getLogger(__name__)

EventName = Literal[
    "steps",
    "step-update",
    "progress",
    "reused",
    "phrase-generated",
    "complete",
    "error",
]
TERMINAL_EVENTS = frozenset({"complete", "error"})


class ProgressEvent(BaseModel):
    """One named event on the run channel."""

    event: EventName
    seq: int
    run_id: str
    scope_id: str | None = None
    scope_kind: ScopeKind | None = None
    phase: str | None = None
    step: int | None = None
    progress: int | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.event in TERMINAL_EVENTS


class ProgressEmitter:
    """Caller-scoped event channel for a single run."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        self._queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
        self._seq = 0
        self._last_progress: dict[tuple[str, str], int] = {}
        self._terminal: ProgressEvent | None = None
        self._disconnected = False
        self.history: list[ProgressEvent] = []

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    @property
    def terminal_event(self) -> ProgressEvent | None:
        return self._terminal

    def emit(
        self,
        event: EventName,
        *,
        scope_id: str | None = None,
        scope_kind: ScopeKind | None = None,
        phase: str | None = None,
        progress: int | None = None,
        payload: dict[str, Any] | None = None,
    ) -> ProgressEvent | None:
        """Push one event. Returns None if the channel is already terminated."""
        if self._terminal is not None:
            logger.warning("Dropping %s event emitted after terminal event", event)
            return None

        if progress is not None:
            progress = max(0, min(100, int(progress)))
            if scope_id is not None and phase is not None:
                key = (scope_id, phase)
                progress = max(progress, self._last_progress.get(key, 0))
                self._last_progress[key] = progress

        self._seq += 1
        evt = ProgressEvent(
            event=event,
            seq=self._seq,
            run_id=self.run_id,
            scope_id=scope_id,
            scope_kind=scope_kind,
            phase=phase,
            step=phase_index(phase) if phase else None,
            progress=progress,
            payload=payload or {},
        )
        self.history.append(evt)

        if evt.is_terminal:
            self._terminal = evt

        if not self._disconnected:
            self._queue.put_nowait(evt)
            if evt.is_terminal:
                self._queue.put_nowait(None)
        return evt

    def step_update(
        self,
        scope_id: str,
        scope_kind: ScopeKind,
        phase: str,
        status: str,
        progress: int,
        **extra: Any,
    ) -> ProgressEvent | None:
        """Emit a ``step-update`` carrying the step index and status."""
        return self.emit(
            "step-update",
            scope_id=scope_id,
            scope_kind=scope_kind,
            phase=phase,
            progress=progress,
            payload={"index": phase_index(phase), "status": status, **extra},
        )

    def mark_disconnected(self) -> None:
        """Stop delivering events; the consumer's stream ends immediately."""
        if self._disconnected:
            return
        self._disconnected = True
        self._queue.put_nowait(None)
        logger.info("Event consumer disconnected from run %s", self.run_id)

    async def stream(self) -> AsyncIterator[ProgressEvent]:
        """Yield events in emission order until the terminal event."""
        while True:
            item = await self._queue.get()
            if item is None:
                return
            yield item


def format_sse(event: ProgressEvent) -> str:
    """Serialize an event as one Server-Sent Events frame."""
    payload = json.dumps(event.model_dump(mode="json"), ensure_ascii=False)
    return f"event: {event.event}\ndata: {payload}\n\n"
