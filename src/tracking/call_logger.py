# src/tracking/call_logger.py — v1
"""External call logging: records every generation and search call for cost tracking."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from intentphrase.llm.models import GenerationResponse
from intentphrase.tracking.cost_calculator import compute_generation_cost, summarize_run
from intentphrase.tracking.models import ExternalCallRecord, ModelPricing, RunCost

logger = logging.getLogger(__name__)


class CallLogger:
    """Accumulates external call records during a pipeline run."""

    def __init__(self, pricing: dict[str, ModelPricing] | None = None) -> None:
        self._records: list[ExternalCallRecord] = []
        self._pricing = pricing

    def record_generation(
        self,
        phase: str,
        scope_id: str,
        response: GenerationResponse,
        retry_count: int = 0,
    ) -> ExternalCallRecord:
        """Record a successful generation call.

        Args:
            phase: Phase that issued the call.
            scope_id: Domain or keyword id.
            response: Generation output with token usage.
            retry_count: Number of retries before this result.
        """
        record = ExternalCallRecord(
            call_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            phase=phase,
            scope_id=scope_id,
            kind="generation",
            provider=response.provider,
            model=response.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            total_tokens=response.total_tokens,
            latency_ms=response.latency_ms,
            retry_count=retry_count,
            estimated_cost_usd=compute_generation_cost(
                response.model, response.input_tokens, response.output_tokens, self._pricing,
            ),
        )
        self._records.append(record)
        return record

    def record_search(
        self,
        phase: str,
        scope_id: str,
        provider: str,
        latency_ms: int,
        cost_usd: float,
        retry_count: int = 0,
    ) -> ExternalCallRecord:
        """Record a successful search call at a flat per-call cost."""
        record = ExternalCallRecord(
            call_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            phase=phase,
            scope_id=scope_id,
            kind="search",
            provider=provider,
            latency_ms=latency_ms,
            retry_count=retry_count,
            estimated_cost_usd=cost_usd,
        )
        self._records.append(record)
        return record

    def record_failure(
        self,
        phase: str,
        scope_id: str,
        kind: str,
        provider: str,
        model: str = "",
        retry_count: int = 0,
    ) -> ExternalCallRecord:
        """Record a call that ended in an error."""
        record = ExternalCallRecord(
            call_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            phase=phase,
            scope_id=scope_id,
            kind=kind,  # type: ignore[arg-type]
            provider=provider,
            model=model,
            status="failed",
            retry_count=retry_count,
        )
        self._records.append(record)
        return record

    @property
    def records(self) -> list[ExternalCallRecord]:
        """All recorded calls."""
        return list(self._records)

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed across all calls."""
        return sum(r.total_tokens for r in self._records)

    @property
    def total_calls(self) -> int:
        """Total number of external calls."""
        return len(self._records)

    def mark(self) -> int:
        """Position of the next record, for ``since`` in ``summary`` and ``save``."""
        return len(self._records)

    def summary(self, since: int = 0) -> RunCost:
        """Cost summary of the calls recorded from position ``since`` on.

        A logger shared by several runs is summarized per run by passing the
        ``mark()`` taken when the run started.
        """
        return summarize_run(self._records[since:])

    def save(self, path: Path, since: int = 0) -> None:
        """Save the records from position ``since`` on to a JSON Lines file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w") as f:
            for record in self._records[since:]:
                f.write(json.dumps(record.model_dump(), default=str) + "\n")
