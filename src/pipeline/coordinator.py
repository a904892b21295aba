# src/pipeline/coordinator.py — v1
"""Pipeline coordinator.

Drives the seven phases for one domain and its keywords:
  Domain phases: semantic analysis, community mining, competitor research
      (strictly sequential; any failure aborts the run)
  Keyword phases: search patterns, phrase generation, intent
      classification, relevance scoring (sequential per keyword, keywords
      fanned out under a semaphore; failures isolated per keyword)

Every (scope, phase) pair is looked up in the checkpoint store first and
reused when already completed. A per-domain lease keeps a second run for the
same domain out; it is renewed by a heartbeat while the run is alive. If a
renewal finds the lease gone, the run stops before its next checkpoint write
and ends failed with kind ``concurrent_run``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from intentphrase.checkpoint.base_checkpoint_store import BaseCheckpointStore
from intentphrase.config.settings import Settings
from intentphrase.core.errors import ConcurrentRunConflict, PersistenceError, PhaseFailedError
from intentphrase.core.models import Domain, Keyword, PhaseExecution, ScopeKind
from intentphrase.executor.task_executor import TaskExecutor
from intentphrase.logging.context import (
    set_keyword_context,
    set_phase_context,
    set_run_context,
)
from intentphrase.pipeline.catalog import DOMAIN_PHASES, KEYWORD_PHASES, get_phase, steps_payload
from intentphrase.pipeline.context import ContextAggregator
from intentphrase.pipeline.models import KeywordFailure, RunSummary
from intentphrase.pipeline.phases.base_phase import PhaseRequest
from intentphrase.pipeline.phases.registry import PhaseRegistry
from intentphrase.pipeline.progress import ProgressEmitter

logger = logging.getLogger(__name__)

_CANCELLED_KIND = "cancelled"


class PipelineCoordinator:
    """Runs the phase pipeline for one domain.

    Args:
        settings: Application settings.
        store: Checkpoint store (also holds the lease and phrases).
        executor: External task executor.
        registry: Phase handlers. Defaults to the seven built-in phases.
        emitter: Event channel. Created per run when None.
        run_id: Lease owner and log correlation id.
    """

    def __init__(
        self,
        settings: Settings,
        store: BaseCheckpointStore,
        executor: TaskExecutor,
        registry: PhaseRegistry | None = None,
        emitter: ProgressEmitter | None = None,
        run_id: str | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._executor = executor
        self._registry = registry or PhaseRegistry()
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.emitter = emitter or ProgressEmitter(self.run_id)
        self._aggregator = ContextAggregator(store)
        self._lease_domain: str | None = None
        self._domain_ready = False
        self._executed = 0
        self._reused = 0
        self._degraded = 0
        self._call_mark = 0
        self._lease_lost = False
        self.summary: RunSummary | None = None

    # --- Public API ---

    async def run(self, domain: Domain, keywords: list[Keyword]) -> RunSummary:
        """Acquire the domain lease and run the pipeline to a terminal event.

        Raises:
            ConcurrentRunConflict: Another live run holds the domain lease.
        """
        await self.acquire(domain)
        return await self.execute(domain, keywords)

    async def acquire(self, domain: Domain) -> None:
        """Take the domain lease. Nothing is emitted or persisted on conflict.

        Raises:
            ConcurrentRunConflict: Another live run holds the domain lease.
        """
        await self._store.acquire_lease(domain.id, self.run_id, self._settings.lease_ttl_s)
        self._lease_domain = domain.id
        logger.info("Run %s acquired lease on domain %s", self.run_id, domain.id)

    async def execute(self, domain: Domain, keywords: list[Keyword]) -> RunSummary:
        """Run all phases. The lease must already be held (see ``acquire``)."""
        if self._lease_domain != domain.id:
            raise RuntimeError(f"Run {self.run_id} does not hold the lease for {domain.id}")

        set_run_context(self.run_id, domain.id)
        started_at = datetime.now(timezone.utc)
        self._call_mark = self._executor.call_logger.mark()
        self._lease_lost = False
        keywords = _unique_keywords(keywords)
        heartbeat = asyncio.create_task(self._heartbeat(domain.id))
        try:
            summary = await self._execute(domain, keywords, started_at)
        except asyncio.CancelledError:
            logger.warning("Run %s cancelled", self.run_id)
            self.summary = self._finish_failed(
                domain, keywords, started_at, _CANCELLED_KIND, "Run cancelled",
            )
            raise
        finally:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat
            await self._release(domain.id)
        self.summary = summary
        return summary

    # --- Run flow ---

    async def _execute(
        self, domain: Domain, keywords: list[Keyword], started_at: datetime
    ) -> RunSummary:
        self.emitter.emit(
            "steps",
            scope_id=domain.id,
            scope_kind="domain",
            payload={
                "steps": steps_payload(),
                "domainId": domain.id,
                "totalKeywords": len(keywords),
            },
        )

        try:
            for phase in DOMAIN_PHASES:
                await self._run_phase(domain, None, phase)
        except PhaseFailedError as exc:
            return self._finish_failed(
                domain, keywords, started_at, exc.kind,
                f"Domain phase {exc.phase} failed: {exc.cause}",
            )
        except (PersistenceError, ConcurrentRunConflict) as exc:
            return self._finish_failed(domain, keywords, started_at, exc.kind, str(exc))
        self._domain_ready = True

        try:
            failures = await self._run_keywords(domain, keywords)
        except (PersistenceError, ConcurrentRunConflict) as exc:
            return self._finish_failed(domain, keywords, started_at, exc.kind, str(exc))

        try:
            total_phrases = await self._count_phrases(domain, keywords, failures)
        except PersistenceError as exc:
            return self._finish_failed(domain, keywords, started_at, exc.kind, str(exc))

        succeeded = len(keywords) - len(failures)
        if keywords and succeeded == 0:
            return self._finish_failed(
                domain, keywords, started_at, failures[0].kind,
                f"All {len(keywords)} keywords failed", failures=failures,
            )

        status = "success" if not failures else "partial_success"
        summary = self._summary(
            domain, keywords, started_at, status,
            failures=failures, total_phrases=total_phrases,
        )
        if failures:
            message = (
                f"Generated {total_phrases} phrases; "
                f"{len(failures)} of {len(keywords)} keywords failed"
            )
        else:
            message = f"Generated {total_phrases} phrases for {len(keywords)} keywords"
        self.emitter.emit(
            "complete",
            scope_id=domain.id,
            scope_kind="domain",
            payload={
                "status": status,
                "kind": None if not failures else "keyword_failures",
                "message": message,
                "totalPhrases": total_phrases,
                "totalKeywords": len(keywords),
                "succeededKeywords": succeeded,
                "failedKeywords": [f.model_dump() for f in failures],
                "totalCostUnits": summary.cost.estimated_cost_usd,
                "cost": summary.cost.model_dump(),
            },
        )
        logger.info("Run %s finished: %s (%s)", self.run_id, status, message)
        return summary

    async def _run_keywords(self, domain: Domain, keywords: list[Keyword]) -> list[KeywordFailure]:
        semaphore = asyncio.Semaphore(self._settings.keyword_concurrency)
        tasks = [
            asyncio.create_task(self._run_keyword(domain, keyword, semaphore))
            for keyword in keywords
        ]
        try:
            outcomes = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [o for o in outcomes if o is not None]

    async def _run_keyword(
        self, domain: Domain, keyword: Keyword, semaphore: asyncio.Semaphore
    ) -> KeywordFailure | None:
        async with semaphore:
            set_keyword_context(keyword.id)
            try:
                for phase in KEYWORD_PHASES:
                    await self._run_phase(domain, keyword, phase)
            except PhaseFailedError as exc:
                logger.warning(
                    "Keyword %s (%s) failed in %s: %s",
                    keyword.id, keyword.term, exc.phase, exc.cause,
                )
                return KeywordFailure(
                    keyword_id=keyword.id,
                    term=keyword.term,
                    phase=exc.phase,
                    kind=exc.kind,
                    message=str(exc.cause),
                )
            return None

    async def _run_phase(
        self, domain: Domain, keyword: Keyword | None, phase: str
    ) -> PhaseExecution:
        """Reuse or execute one (scope, phase) pair.

        Raises:
            PhaseFailedError: The handler failed; the row is marked failed.
            PersistenceError: A checkpoint or phrase write failed.
            ConcurrentRunConflict: The heartbeat found the domain lease lost.
        """
        scope_kind: ScopeKind = "keyword" if keyword is not None else "domain"
        scope_id = keyword.id if keyword is not None else domain.id
        spec = get_phase(phase)
        set_phase_context(phase)

        existing = await self._store.get(scope_id, phase)
        if existing is not None and existing.is_completed:
            self._reused += 1
            self._degraded += existing.degraded
            logger.info("Reusing completed %s for %s", phase, scope_id)
            self.emitter.emit(
                "reused",
                scope_id=scope_id,
                scope_kind=scope_kind,
                phase=phase,
                progress=100,
                payload={"index": spec.index, "degraded": existing.degraded},
            )
            self.emitter.step_update(scope_id, scope_kind, phase, "completed", 100, reused=True)
            return existing

        if scope_kind == "keyword" and not self._domain_ready:
            raise RuntimeError(f"Keyword phase {phase} started before domain phases completed")

        self._check_lease(domain)
        await self._put(domain, scope_id, scope_kind, phase, "running", progress=0)
        self.emitter.step_update(scope_id, scope_kind, phase, "running", 0)
        self.emitter.emit(
            "progress",
            scope_id=scope_id,
            scope_kind=scope_kind,
            phase=phase,
            progress=0,
            payload={"message": spec.description, **_keyword_payload(keyword)},
        )

        async def report(progress: int, message: str) -> None:
            self._check_lease(domain)
            progress = max(1, min(99, progress))
            await self._put(domain, scope_id, scope_kind, phase, "running", progress=progress)
            self.emitter.emit(
                "progress",
                scope_id=scope_id,
                scope_kind=scope_kind,
                phase=phase,
                progress=progress,
                payload={"message": message, **_keyword_payload(keyword)},
            )

        handler = self._registry.get(phase)
        try:
            context = await self._aggregator.build(scope_id, scope_kind, domain.id)
            output = await handler.execute(PhaseRequest(
                domain=domain,
                keyword=keyword,
                context=context,
                executor=self._executor,
                settings=self._settings,
                report=report,
            ))
        except (PersistenceError, ConcurrentRunConflict):
            raise
        except asyncio.CancelledError:
            await self._mark_failed(domain, scope_id, scope_kind, phase, _CANCELLED_KIND, "cancelled")
            raise
        except Exception as exc:
            kind = getattr(exc, "kind", "phase_error")
            logger.error("Phase %s failed for %s: %s", phase, scope_id, exc)
            await self._mark_failed(domain, scope_id, scope_kind, phase, kind, str(exc))
            raise PhaseFailedError(phase, scope_id, exc) from exc

        for warning in output.warnings:
            logger.warning("Phase %s for %s: %s", phase, scope_id, warning)

        self._check_lease(domain)

        if output.phrases is not None and keyword is not None:
            await self._store.replace_phrases(keyword.id, output.phrases)
            for phrase in output.phrases:
                self.emitter.emit(
                    "phrase-generated",
                    scope_id=scope_id,
                    scope_kind=scope_kind,
                    phase=phase,
                    payload={
                        "phrase": phrase.model_dump(),
                        "wordCount": phrase.word_count,
                        "keyword": keyword.term,
                    },
                )

        row = await self._put(
            domain, scope_id, scope_kind, phase, "completed",
            result=output.result, degraded=output.degraded, cost_units=output.cost_units,
        )
        self._executed += 1
        self._degraded += output.degraded
        self.emitter.emit(
            "progress",
            scope_id=scope_id,
            scope_kind=scope_kind,
            phase=phase,
            progress=100,
            payload={"message": f"{spec.label} completed", **_keyword_payload(keyword)},
        )
        self.emitter.step_update(
            scope_id, scope_kind, phase, "completed", 100, degraded=output.degraded,
        )
        return row

    # --- Helpers ---

    async def _put(
        self,
        domain: Domain,
        scope_id: str,
        scope_kind: ScopeKind,
        phase: str,
        status: Any,
        **fields: Any,
    ) -> PhaseExecution:
        return await self._store.put(
            scope_id, phase, status, scope_kind=scope_kind, domain_id=domain.id, **fields,
        )

    async def _mark_failed(
        self,
        domain: Domain,
        scope_id: str,
        scope_kind: ScopeKind,
        phase: str,
        kind: str,
        message: str,
    ) -> None:
        if self._lease_lost:
            logger.warning("Not recording %s failure for %s: lease lost", phase, scope_id)
        else:
            await self._put(domain, scope_id, scope_kind, phase, "failed", error=f"{kind}: {message}")
        self.emitter.step_update(
            scope_id, scope_kind, phase, "failed", 0, kind=kind, error=message,
        )

    async def _count_phrases(
        self, domain: Domain, keywords: list[Keyword], failures: list[KeywordFailure]
    ) -> int:
        failed = {f.keyword_id for f in failures}
        wanted = {k.id for k in keywords if k.id not in failed}
        phrases = await self._store.list_phrases(domain_id=domain.id)
        return sum(1 for p in phrases if p.keyword_id in wanted)

    def _summary(
        self,
        domain: Domain,
        keywords: list[Keyword],
        started_at: datetime,
        status: Any,
        failures: list[KeywordFailure] | None = None,
        total_phrases: int = 0,
        error_kind: str | None = None,
        error_message: str | None = None,
    ) -> RunSummary:
        failures = failures or []
        return RunSummary(
            run_id=self.run_id,
            domain_id=domain.id,
            status=status,
            keywords_total=len(keywords),
            keywords_succeeded=(
                0 if status == "failed" else len(keywords) - len(failures)
            ),
            failed_keywords=failures,
            total_phrases=total_phrases,
            phases_executed=self._executed,
            phases_reused=self._reused,
            degraded_phases=self._degraded,
            cost=self._executor.call_logger.summary(since=self._call_mark),
            error_kind=error_kind,
            error_message=error_message,
            started_at=started_at,
            ended_at=datetime.now(timezone.utc),
        )

    def _finish_failed(
        self,
        domain: Domain,
        keywords: list[Keyword],
        started_at: datetime,
        kind: str,
        message: str,
        failures: list[KeywordFailure] | None = None,
    ) -> RunSummary:
        summary = self._summary(
            domain, keywords, started_at, "failed",
            failures=failures, error_kind=kind, error_message=message,
        )
        self.emitter.emit(
            "error",
            scope_id=domain.id,
            scope_kind="domain",
            payload={
                "status": "failed",
                "kind": kind,
                "message": message,
                "failedKeywords": [f.model_dump() for f in summary.failed_keywords],
                "totalCostUnits": summary.cost.estimated_cost_usd,
            },
        )
        logger.error("Run %s failed (%s): %s", self.run_id, kind, message)
        return summary

    async def _heartbeat(self, domain_id: str) -> None:
        interval = max(1.0, self._settings.lease_ttl_s / 3)
        while True:
            await asyncio.sleep(interval)
            try:
                held = await self._store.renew_lease(
                    domain_id, self.run_id, self._settings.lease_ttl_s,
                )
            except PersistenceError as exc:
                logger.warning("Lease renewal for %s failed: %s", domain_id, exc)
                continue
            if not held:
                self._lease_lost = True
                logger.error(
                    "Run %s no longer holds the lease on %s; stopping at the next phase boundary",
                    self.run_id, domain_id,
                )
                return

    def _check_lease(self, domain: Domain) -> None:
        if self._lease_lost:
            raise ConcurrentRunConflict(domain.id)

    async def _release(self, domain_id: str) -> None:
        try:
            await self._store.release_lease(domain_id, self.run_id)
        except PersistenceError as exc:
            logger.error("Lease release for %s failed: %s", domain_id, exc)
        self._lease_domain = None


def _unique_keywords(keywords: list[Keyword]) -> list[Keyword]:
    seen: set[str] = set()
    unique: list[Keyword] = []
    for keyword in keywords:
        if keyword.id not in seen:
            seen.add(keyword.id)
            unique.append(keyword)
    return unique


def _keyword_payload(keyword: Keyword | None) -> dict[str, Any]:
    if keyword is None:
        return {}
    return {"keywordId": keyword.id, "keyword": keyword.term}
