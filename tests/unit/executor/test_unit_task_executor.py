# tests/unit/executor/test_unit_task_executor.py — v1
"""Tests for executor/task_executor.py: timeouts, retries and call records."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import patch

import pytest

from conftest import FakeSearchClient, ScriptedLLMClient, make_settings
from intentphrase.core.errors import PermanentExternalError, RetryExhaustedError
from intentphrase.executor.models import TaskSpec
from intentphrase.executor.task_executor import TaskExecutor
from intentphrase.search.serpapi_client import SerpApiClient


class _Status(Exception):
    def __init__(self, status_code: int):
        super().__init__(f"status {status_code}")
        self.status_code = status_code


def _gen_task(phase: str = "semantic_analysis") -> TaskSpec:
    return TaskSpec(
        kind="generation", phase=phase, scope_id="dom_1",
        prompt="Analyze ... extract the semantic insights ...",
    )


class TestGeneration:
    @pytest.mark.asyncio
    async def test_returns_raw_text_and_cost(self, settings):
        llm = ScriptedLLMClient({"semantic_analysis": '{"ok": true}'})
        executor = TaskExecutor(settings, llm_client=llm)
        result = await executor.execute(_gen_task())
        assert result.raw_text == '{"ok": true}'
        assert result.attempts == 1
        assert result.cost_units > 0
        assert result.truncated is False
        records = executor.call_logger.records
        assert len(records) == 1
        assert records[0].kind == "generation"
        assert records[0].phase == "semantic_analysis"
        assert records[0].status == "success"

    @pytest.mark.asyncio
    async def test_truncated_flag(self, settings):
        llm = ScriptedLLMClient(stop_reason="length")
        executor = TaskExecutor(settings, llm_client=llm)
        result = await executor.execute(_gen_task())
        assert result.truncated is True

    @pytest.mark.asyncio
    async def test_transient_failures_retried(self, settings):
        outcomes = [_Status(503), _Status(429), '{"a": 1}']
        llm = ScriptedLLMClient({"semantic_analysis": lambda prompt: outcomes.pop(0)})
        executor = TaskExecutor(settings, llm_client=llm)
        result = await executor.execute(_gen_task())
        assert result.raw_text == '{"a": 1}'
        assert result.attempts == 3
        assert executor.call_logger.records[0].retry_count == 2

    @pytest.mark.asyncio
    async def test_retry_exhausted_recorded_as_failure(self):
        settings = make_settings(retry_max_attempts=2)
        llm = ScriptedLLMClient({"semantic_analysis": lambda prompt: _Status(500)})
        executor = TaskExecutor(settings, llm_client=llm)
        with pytest.raises(RetryExhaustedError):
            await executor.execute(_gen_task())
        assert len(llm.calls) == 2
        record = executor.call_logger.records[0]
        assert record.status == "failed"
        assert record.retry_count == 1

    @pytest.mark.asyncio
    async def test_permanent_failure_single_attempt(self, settings):
        llm = ScriptedLLMClient({"semantic_analysis": _Status(401)})
        executor = TaskExecutor(settings, llm_client=llm)
        with pytest.raises(PermanentExternalError):
            await executor.execute(_gen_task())
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self):
        settings = make_settings(retry_max_attempts=2)

        class _Slow(ScriptedLLMClient):
            async def generate(self, request):
                self.calls.append(("slow", ""))
                await asyncio.sleep(1)

        llm = _Slow()
        executor = TaskExecutor(settings, llm_client=llm)
        with pytest.raises(RetryExhaustedError) as exc_info:
            await executor.execute(_gen_task(), timeout=0.01)
        assert exc_info.value.error_type == "timeout"
        assert len(llm.calls) == 2

    @pytest.mark.asyncio
    async def test_per_phase_client_resolution(self):
        settings = make_settings(llm_search_patterns="anthropic:claude-haiku-4-5-20251001")
        executor = TaskExecutor(settings)
        created = []

        def _factory(provider, model, settings):
            client = ScriptedLLMClient(model=model)
            created.append((provider, model))
            return client

        with patch("intentphrase.executor.task_executor.create_llm_client", side_effect=_factory):
            await executor.execute(_gen_task("semantic_analysis"))
            await executor.execute(_gen_task("search_patterns"))
            await executor.execute(_gen_task("semantic_analysis"))
        assert created == [
            ("openai", "gpt-4o"),
            ("anthropic", "claude-haiku-4-5-20251001"),
        ]


class TestSearch:
    @pytest.mark.asyncio
    async def test_search_returns_hits_at_flat_cost(self, settings):
        executor = TaskExecutor(
            settings, llm_client=ScriptedLLMClient(), search_client=FakeSearchClient(),
        )
        task = TaskSpec(
            kind="search", phase="community_mining", scope_id="dom_1",
            query="espresso", platform="reddit",
        )
        result = await executor.execute(task)
        assert len(result.hits) == 1
        assert json.loads(result.raw_text)[0]["platform"] == "reddit"
        assert result.cost_units == settings.search_cost_per_call
        assert executor.call_logger.records[0].kind == "search"

    @pytest.mark.asyncio
    async def test_no_search_backend(self, settings):
        executor = TaskExecutor(settings, llm_client=ScriptedLLMClient())
        assert executor.has_search is False
        task = TaskSpec(
            kind="search", phase="community_mining", scope_id="dom_1",
            query="espresso", platform="quora",
        )
        with pytest.raises(PermanentExternalError):
            await executor.execute(task)

    @pytest.mark.asyncio
    async def test_search_failure_recorded(self, settings):
        search = FakeSearchClient(fail=lambda q, p: _Status(403))
        executor = TaskExecutor(settings, llm_client=ScriptedLLMClient(), search_client=search)
        task = TaskSpec(
            kind="search", phase="community_mining", scope_id="dom_1",
            query="espresso", platform="reddit",
        )
        with pytest.raises(PermanentExternalError):
            await executor.execute(task)
        assert executor.call_logger.records[0].status == "failed"
        assert executor.call_logger.records[0].kind == "search"

    def test_serpapi_created_from_key(self):
        settings = make_settings(serpapi_api_key="secret")
        executor = TaskExecutor(settings, llm_client=ScriptedLLMClient())
        assert executor.has_search is True
        assert isinstance(executor._search_client, SerpApiClient)

    @pytest.mark.asyncio
    async def test_aclose_closes_search_client(self, settings):
        search = FakeSearchClient()
        executor = TaskExecutor(settings, llm_client=ScriptedLLMClient(), search_client=search)
        await executor.aclose()
        assert search.closed is True
