# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides scripted generation and search backends, an in-memory checkpoint
store and a sample domain with keywords. No network access: every external
call is served by the fakes below.
"""

from __future__ import annotations

import json
from typing import Any, Callable

import pytest

from intentphrase.checkpoint.sqlite_store import SqliteCheckpointStore
from intentphrase.config.settings import Settings
from intentphrase.core.models import Domain, Keyword
from intentphrase.executor.task_executor import TaskExecutor
from intentphrase.llm.base_client import BaseLLMClient
from intentphrase.llm.models import GenerationRequest, GenerationResponse
from intentphrase.search.base_search_client import BaseSearchClient
from intentphrase.search.models import Platform, SearchHit, SearchResponse

# First-line markers of each prompt template
PROMPT_MARKERS: dict[str, str] = {
    "semantic_analysis": "extract the semantic insights",
    "community_mining": "real community discussions",
    "competitor_research": "Identify the main competitors",
    "search_patterns": "Analyze how people search for",
    "phrase_generation": "intent-based search phrases",
}


def phrase_words(n: int, prefix: str = "word") -> str:
    return " ".join(f"{prefix}{i}" for i in range(n))


def default_responses() -> dict[str, Any]:
    """Well-formed JSON answers for every generation-backed phase."""
    return {
        "semantic_analysis": json.dumps({
            "brandVoice": "friendly",
            "themes": [{"theme": "home espresso", "relevance": 90}],
            "targetAudience": "coffee lovers",
        }),
        "community_mining": json.dumps({
            "painPoints": ["bitter shots"],
            "questions": ["which grinder?"],
        }),
        "competitor_research": json.dumps({
            "competitors": [{"name": "BeanCo", "positioning": "budget"}],
        }),
        "search_patterns": json.dumps({
            "patterns": ["how to", "best"],
            "modifiers": ["cheap"],
        }),
        "phrase_generation": json.dumps({
            "phrases": [
                {
                    "phrase": phrase_words(13, "p"),
                    "intent": "informational",
                    "intentConfidence": 85,
                    "relevanceScore": 90,
                    "sources": ["Search Patterns"],
                    "trend": "rising",
                },
                {
                    "phrase": phrase_words(12, "q"),
                    "intent": "commercial",
                    "intentConfidence": 70,
                    "relevanceScore": 80,
                    "sources": ["Community Discussions"],
                    "trend": "stable",
                },
            ],
        }),
    }


class ScriptedLLMClient(BaseLLMClient):
    """Generation backend answering from a per-phase script.

    Script values may be a string, an exception (raised), or a callable
    ``(prompt) -> str | Exception``. A ``(phase, term)`` key overrides the
    phase entry for prompts mentioning that keyword term in quotes.
    """

    def __init__(
        self,
        responses: dict[Any, Any] | None = None,
        model: str = "gpt-4o",
        stop_reason: str = "stop",
    ) -> None:
        self.responses: dict[Any, Any] = default_responses()
        self.responses.update(responses or {})
        self._model = model
        self.stop_reason = stop_reason
        self.calls: list[tuple[str, str]] = []

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        prompt = request.prompt
        phase = phase_of(prompt)
        self.calls.append((phase, prompt))

        answer: Any = self.responses.get(phase)
        for key, value in self.responses.items():
            if isinstance(key, tuple) and key[0] == phase and f'"{key[1]}"' in prompt:
                answer = value
                break
        if callable(answer) and not isinstance(answer, type):
            answer = answer(prompt)
        if isinstance(answer, BaseException):
            raise answer
        return GenerationResponse(
            text=answer or "",
            provider="scripted",
            model=self._model,
            input_tokens=100,
            output_tokens=50,
            latency_ms=1,
            stop_reason=self.stop_reason,
        )

    def phases_called(self) -> list[str]:
        return [phase for phase, _ in self.calls]

    @property
    def provider_name(self) -> str:
        return "scripted"

    @property
    def model_name(self) -> str:
        return self._model


def phase_of(prompt: str) -> str:
    for phase, marker in PROMPT_MARKERS.items():
        if marker in prompt:
            return phase
    return "unknown"


class FakeSearchClient(BaseSearchClient):
    """Search backend returning one hit per query and platform."""

    def __init__(self, fail: Callable[[str, str], BaseException | None] | None = None) -> None:
        self._fail = fail
        self.queries: list[tuple[str, str]] = []
        self.closed = False

    async def search(self, query: str, platform: Platform) -> SearchResponse:
        self.queries.append((query, platform))
        if self._fail is not None:
            error = self._fail(query, platform)
            if error is not None:
                raise error
        slug = query.replace(" ", "-")
        return SearchResponse(
            query=query,
            platform=platform,
            provider=self.provider_name,
            latency_ms=2,
            hits=[SearchHit(
                platform=platform,
                title=f"{query} thread",
                content="people discuss this",
                url=f"https://www.{platform}.com/r/coffee/{slug}",
                subreddit="coffee" if platform == "reddit" else None,
            )],
        )

    @property
    def provider_name(self) -> str:
        return "fake"

    async def close(self) -> None:
        self.closed = True


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "_env_file": None,
        "retry_base_delay_s": 0.0,
        "retry_max_delay_s": 0.0,
        "retry_jitter": False,
        "task_timeout_s": 5.0,
        "community_search_queries": 2,
    }
    values.update(overrides)
    return Settings(**values)


# === FIXTURES ===


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store():
    return SqliteCheckpointStore(":memory:")


@pytest.fixture
def llm_client() -> ScriptedLLMClient:
    return ScriptedLLMClient()


@pytest.fixture
def search_client() -> FakeSearchClient:
    return FakeSearchClient()


@pytest.fixture
def executor(settings, llm_client, search_client) -> TaskExecutor:
    return TaskExecutor(settings, llm_client=llm_client, search_client=search_client)


@pytest.fixture
def domain() -> Domain:
    return Domain(
        id="dom_1",
        url="https://www.beanery.example",
        context="Specialty coffee beans and home espresso equipment",
        location="Berlin",
    )


@pytest.fixture
def keywords(domain) -> list[Keyword]:
    return [
        Keyword(id="kw_alpha", domain_id=domain.id, term="espresso grinder"),
        Keyword(id="kw_beta", domain_id=domain.id, term="decaf beans"),
    ]
