# src/api/facade.py — v1
"""Public API facade: single entry point for pipeline runs.

Usage:
    from intentphrase.api.facade import run_pipeline
    summary = await run_pipeline(RunRequest(domain=domain, keywords=keywords))

    run = await start_run(request)
    async for event in run.events():
        ...
    summary = await run.wait()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from intentphrase.api.models import RunRequest
from intentphrase.checkpoint.checkpoint_factory import create_checkpoint_store
from intentphrase.config.settings import Settings
from intentphrase.executor.task_executor import TaskExecutor
from intentphrase.pipeline.coordinator import PipelineCoordinator
from intentphrase.pipeline.models import RunSummary
from intentphrase.pipeline.progress import ProgressEvent

if TYPE_CHECKING:
    from intentphrase.checkpoint.base_checkpoint_store import BaseCheckpointStore
    from intentphrase.llm.base_client import BaseLLMClient
    from intentphrase.search.base_search_client import BaseSearchClient
    from intentphrase.tracking.call_logger import CallLogger

logger = logging.getLogger(__name__)

EventCallback = Callable[[ProgressEvent], Awaitable[None] | None]


class PipelineRun:
    """Handle on a run started by ``start_run``."""

    def __init__(
        self,
        coordinator: PipelineCoordinator,
        task: asyncio.Task,
        settings: Settings,
        domain_id: str,
    ) -> None:
        self._coordinator = coordinator
        self._task = task
        self._settings = settings
        self.domain_id = domain_id

    @property
    def run_id(self) -> str:
        return self._coordinator.run_id

    @property
    def done(self) -> bool:
        return self._task.done()

    def events(self) -> AsyncIterator[ProgressEvent]:
        """Live event stream, ending after the terminal event or a disconnect."""
        return self._coordinator.emitter.stream()

    def disconnect(self) -> None:
        """Signal that the consumer went away.

        With ``disconnect_policy=finish`` the run keeps going and persists its
        work; with ``cancel`` outstanding external calls are cancelled.
        """
        self._coordinator.emitter.mark_disconnected()
        if self._settings.disconnect_policy == "cancel" and not self._task.done():
            logger.info("Cancelling run %s after disconnect", self.run_id)
            self._task.cancel()

    async def wait(self) -> RunSummary:
        """Wait for the run to end and return its summary."""
        await asyncio.wait([self._task])
        if self._task.cancelled():
            return self._coordinator.summary or RunSummary(
                run_id=self.run_id,
                domain_id=self.domain_id,
                status="failed",
                error_kind="cancelled",
                error_message="Run cancelled",
                started_at=datetime.now(timezone.utc),
                ended_at=datetime.now(timezone.utc),
            )
        return self._task.result()


async def start_run(
    request: RunRequest,
    settings: Settings | None = None,
    store: BaseCheckpointStore | None = None,
    executor: TaskExecutor | None = None,
    llm_client: BaseLLMClient | None = None,
    search_client: BaseSearchClient | None = None,
    call_logger: CallLogger | None = None,
) -> PipelineRun:
    """Start a run in the background and return its handle.

    The domain lease is taken before this returns, so a conflicting run is
    rejected here and no event is ever emitted for it.

    Args:
        request: Domain, keywords and per-run overrides.
        settings: Global settings. Loaded from .env if None.
        store: Checkpoint store. Created from settings (and closed) if None.
        executor: Task executor. Created from settings (and closed) if None.
        llm_client: Generation client for every phase (created executors only).
        search_client: Search client (created executors only).
        call_logger: Receives the call records (created executors only).

    Raises:
        ConcurrentRunConflict: A live run already holds the domain lease.
    """
    settings = _apply_overrides(settings or Settings(), request)
    owns_store = store is None
    owns_executor = executor is None
    store = store or create_checkpoint_store(settings)
    executor = executor or TaskExecutor(
        settings, call_logger=call_logger, llm_client=llm_client, search_client=search_client,
    )

    coordinator = PipelineCoordinator(settings=settings, store=store, executor=executor)
    try:
        await coordinator.acquire(request.domain)
    except BaseException:
        await _close(store if owns_store else None, executor if owns_executor else None)
        raise

    async def _drive() -> RunSummary:
        try:
            return await coordinator.execute(request.domain, request.keywords)
        finally:
            await _close(store if owns_store else None, executor if owns_executor else None)

    logger.info(
        "Starting run %s: domain=%s, keywords=%d",
        coordinator.run_id, request.domain.id, len(request.keywords),
    )
    task = asyncio.create_task(_drive())
    return PipelineRun(coordinator, task, settings, request.domain.id)


async def run_pipeline(
    request: RunRequest,
    settings: Settings | None = None,
    on_event: EventCallback | None = None,
    **kwargs: Any,
) -> RunSummary:
    """Run the pipeline to completion, optionally forwarding every event.

    Accepts the same keyword arguments as ``start_run``.
    """
    run = await start_run(request, settings=settings, **kwargs)
    async for event in run.events():
        if on_event is not None:
            outcome = on_event(event)
            if asyncio.iscoroutine(outcome):
                await outcome
    return await run.wait()


def _apply_overrides(settings: Settings, request: RunRequest) -> Settings:
    """Apply per-run config overrides if provided."""
    if request.config_overrides is None:
        return settings
    overrides = request.config_overrides.model_dump(exclude_none=True)
    assignments = overrides.pop("llm_assignments", None) or {}
    for phase, value in assignments.items():
        overrides[f"llm_{phase}"] = value
    if not overrides:
        return settings
    current = settings.model_dump()
    current.update(overrides)
    return Settings(**current)


async def _close(store: Any, executor: TaskExecutor | None) -> None:
    if executor is not None:
        await executor.aclose()
    if store is not None:
        await store.close()
