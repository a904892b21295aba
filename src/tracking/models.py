# src/tracking/models.py — v1
"""Tracking domain models: ExternalCallRecord, PhaseStats, RunCost, ModelPricing."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class ExternalCallRecord(BaseModel):
    """Individual external call (generation or search) log entry."""

    call_id: str
    timestamp: datetime
    phase: str
    scope_id: str
    kind: Literal["generation", "search"]
    provider: str
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    latency_ms: int = 0
    status: Literal["success", "failed"] = "success"
    retry_count: int = 0
    estimated_cost_usd: float = 0.0


class PhaseStats(BaseModel):
    """Per-phase aggregated stats for a single run."""

    phase: str
    total_calls: int
    generation_calls: int = 0
    search_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    avg_latency_ms: float = 0.0
    max_latency_ms: int = 0
    retry_count: int = 0
    failure_count: int = 0
    estimated_cost_usd: float = 0.0


class RunCost(BaseModel):
    """Cost summary attached to the terminal event of a run."""

    total_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0
    phases: dict[str, PhaseStats] = {}


class ModelPricing(BaseModel):
    """LLM model pricing configuration."""

    model: str
    input_price_per_1m: float
    output_price_per_1m: float
