# tests/unit/tracking/test_unit_tracking.py — v1
"""Tests for tracking/: call logger and cost calculator."""

from __future__ import annotations

import json

import pytest

from intentphrase.llm.models import GenerationResponse
from intentphrase.tracking.call_logger import CallLogger
from intentphrase.tracking.cost_calculator import (
    compute_generation_cost,
    compute_phase_stats,
    summarize_run,
)
from intentphrase.tracking.models import ModelPricing


def _response(model: str = "gpt-4o", input_tokens: int = 1000, output_tokens: int = 500):
    return GenerationResponse(
        text="{}",
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        model=model,
        provider="openai",
        latency_ms=120,
    )


class TestComputeGenerationCost:
    def test_known_model(self):
        cost = compute_generation_cost("gpt-4o", 1_000_000, 1_000_000)
        assert cost == pytest.approx(12.5)

    def test_unknown_model_is_free(self):
        assert compute_generation_cost("local-llm", 1000, 1000) == 0.0

    def test_custom_pricing(self):
        pricing = {"m": ModelPricing(model="m", input_price_per_1m=1.0, output_price_per_1m=2.0)}
        assert compute_generation_cost("m", 500_000, 500_000, pricing) == pytest.approx(1.5)


class TestCallLogger:
    def test_record_generation(self):
        cl = CallLogger()
        record = cl.record_generation("semantic_analysis", "dom_1", _response(), retry_count=1)
        assert record.kind == "generation"
        assert record.total_tokens == 1500
        assert record.retry_count == 1
        assert record.estimated_cost_usd == pytest.approx(0.0075)
        assert cl.total_tokens == 1500
        assert cl.total_calls == 1

    def test_record_search_and_failure(self):
        cl = CallLogger()
        cl.record_search("community_mining", "dom_1", "serpapi", 80, 0.01)
        cl.record_failure("community_mining", "dom_1", "search", "serpapi", retry_count=2)
        records = cl.records
        assert [r.status for r in records] == ["success", "failed"]
        assert records[0].estimated_cost_usd == 0.01
        assert records[1].estimated_cost_usd == 0.0

    def test_summary_groups_by_phase(self):
        cl = CallLogger()
        cl.record_generation("semantic_analysis", "dom_1", _response())
        cl.record_search("community_mining", "dom_1", "serpapi", 50, 0.01)
        cl.record_search("community_mining", "dom_1", "serpapi", 150, 0.01)
        cl.record_generation("community_mining", "dom_1", _response(output_tokens=0))

        summary = cl.summary()
        assert summary.total_calls == 4
        mining = summary.phases["community_mining"]
        assert mining.search_calls == 2
        assert mining.generation_calls == 1
        assert mining.max_latency_ms == 150
        assert summary.estimated_cost_usd == pytest.approx(0.0075 + 0.02 + 0.0025)

    def test_summary_since_mark(self):
        cl = CallLogger()
        cl.record_generation("semantic_analysis", "dom_1", _response())
        mark = cl.mark()
        cl.record_search("community_mining", "dom_1", "serpapi", 50, 0.01)

        later = cl.summary(since=mark)
        assert later.total_calls == 1
        assert list(later.phases) == ["community_mining"]
        assert later.estimated_cost_usd == pytest.approx(0.01)
        assert cl.summary(since=cl.mark()).total_calls == 0
        assert cl.summary().total_calls == 2

    def test_records_is_a_copy(self):
        cl = CallLogger()
        cl.record_search("community_mining", "dom_1", "serpapi", 1, 0.0)
        cl.records.clear()
        assert cl.total_calls == 1

    def test_save_jsonl(self, tmp_path):
        cl = CallLogger()
        cl.record_generation("search_patterns", "kw_1", _response())
        cl.record_search("community_mining", "dom_1", "serpapi", 10, 0.01)
        path = tmp_path / "calls" / "run.jsonl"
        cl.save(path)
        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["phase"] == "search_patterns"

        cl.save(path, since=1)
        [line] = path.read_text().splitlines()
        assert json.loads(line)["kind"] == "search"


class TestSummarizeRun:
    def test_empty(self):
        summary = summarize_run([])
        assert summary.total_calls == 0
        assert summary.estimated_cost_usd == 0.0
        assert summary.phases == {}

    def test_failure_count(self):
        cl = CallLogger()
        cl.record_failure("search_patterns", "kw_1", "generation", "openai", "gpt-4o", 2)
        stats = compute_phase_stats(cl.records)
        assert stats["search_patterns"].failure_count == 1
        assert stats["search_patterns"].retry_count == 2
