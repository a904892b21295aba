# src/tracking/cost_calculator.py — v1
"""Cost calculation from external call records.

Computes estimated USD cost per call, per phase, and total.
"""

from __future__ import annotations

from collections import defaultdict

from intentphrase.tracking.models import (
    ExternalCallRecord,
    ModelPricing,
    PhaseStats,
    RunCost,
)

# Default pricing per 1M tokens
DEFAULT_PRICING: dict[str, ModelPricing] = {
    "gpt-4o": ModelPricing(
        model="gpt-4o",
        input_price_per_1m=2.50, output_price_per_1m=10.0,
    ),
    "gpt-4o-mini": ModelPricing(
        model="gpt-4o-mini",
        input_price_per_1m=0.15, output_price_per_1m=0.60,
    ),
    "claude-sonnet-4-20250514": ModelPricing(
        model="claude-sonnet-4-20250514",
        input_price_per_1m=3.0, output_price_per_1m=15.0,
    ),
    "claude-haiku-4-5-20251001": ModelPricing(
        model="claude-haiku-4-5-20251001",
        input_price_per_1m=0.80, output_price_per_1m=4.0,
    ),
}


def compute_generation_cost(
    model: str,
    input_tokens: int,
    output_tokens: int,
    pricing: dict[str, ModelPricing] | None = None,
) -> float:
    """Compute estimated cost for one generation call in USD.

    Unknown models cost 0.0.
    """
    pricing = pricing or DEFAULT_PRICING
    p = pricing.get(model)
    if p is None:
        return 0.0
    return (input_tokens * p.input_price_per_1m / 1_000_000
            + output_tokens * p.output_price_per_1m / 1_000_000)


def compute_phase_stats(records: list[ExternalCallRecord]) -> dict[str, PhaseStats]:
    """Compute per-phase statistics from call records."""
    by_phase: dict[str, list[ExternalCallRecord]] = defaultdict(list)
    for r in records:
        by_phase[r.phase].append(r)

    result: dict[str, PhaseStats] = {}
    for phase, phase_records in by_phase.items():
        latencies = [r.latency_ms for r in phase_records]
        result[phase] = PhaseStats(
            phase=phase,
            total_calls=len(phase_records),
            generation_calls=sum(1 for r in phase_records if r.kind == "generation"),
            search_calls=sum(1 for r in phase_records if r.kind == "search"),
            total_input_tokens=sum(r.input_tokens for r in phase_records),
            total_output_tokens=sum(r.output_tokens for r in phase_records),
            total_tokens=sum(r.total_tokens for r in phase_records),
            avg_latency_ms=sum(latencies) / len(latencies) if latencies else 0.0,
            max_latency_ms=max(latencies) if latencies else 0,
            retry_count=sum(r.retry_count for r in phase_records),
            failure_count=sum(1 for r in phase_records if r.status == "failed"),
            estimated_cost_usd=sum(r.estimated_cost_usd for r in phase_records),
        )
    return result


def compute_total_cost(records: list[ExternalCallRecord]) -> float:
    """Compute total estimated cost across all records."""
    return sum(r.estimated_cost_usd for r in records)


def summarize_run(records: list[ExternalCallRecord]) -> RunCost:
    """Aggregate records into the run-level cost summary."""
    return RunCost(
        total_calls=len(records),
        total_input_tokens=sum(r.input_tokens for r in records),
        total_output_tokens=sum(r.output_tokens for r in records),
        total_tokens=sum(r.total_tokens for r in records),
        estimated_cost_usd=compute_total_cost(records),
        phases=compute_phase_stats(records),
    )
