# src/executor/task_executor.py — v1
"""External task executor.

Runs one generation or search call under a timeout and the shared retry
policy, records it for cost tracking, and returns the raw text with its cost.
Parsing is left to the caller.
"""

from __future__ import annotations

import asyncio
import json
import logging

from intentphrase.config.settings import Settings
from intentphrase.core.errors import PermanentExternalError, PipelineError
from intentphrase.executor.models import TaskResult, TaskSpec
from intentphrase.executor.retry import RetryPolicy, with_retry
from intentphrase.llm.base_client import BaseLLMClient
from intentphrase.llm.client_factory import create_llm_client
from intentphrase.llm.config import resolve_llm
from intentphrase.llm.models import GenerationRequest
from intentphrase.search.base_search_client import BaseSearchClient
from intentphrase.search.serpapi_client import SerpApiClient
from intentphrase.tracking.call_logger import CallLogger

logger = logging.getLogger(__name__)


class TaskExecutor:
    """Timeout-bounded, retrying gateway to the generation and search backends.

    Args:
        settings: Application settings.
        call_logger: Receives one record per completed or failed call.
        llm_client: Client used for every phase. When None, a client is
            resolved per phase through the llm config cascade.
        search_client: Search backend. When None and a SerpAPI key is
            configured, a SerpApiClient is created.
        retry_policy: Overrides the policy built from settings.
    """

    def __init__(
        self,
        settings: Settings,
        call_logger: CallLogger | None = None,
        llm_client: BaseLLMClient | None = None,
        search_client: BaseSearchClient | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._settings = settings
        self.call_logger = call_logger or CallLogger()
        self._llm_override = llm_client
        self._llm_clients: dict[str, BaseLLMClient] = {}
        self._search_client = search_client
        if self._search_client is None and settings.serpapi_api_key:
            self._search_client = SerpApiClient(
                api_key=settings.serpapi_api_key,
                base_url=settings.search_base_url,
                num_results=settings.search_results_per_query,
                gl=settings.search_gl,
                hl=settings.search_hl,
            )
        self._policy = retry_policy or RetryPolicy.from_settings(settings)

    @property
    def has_search(self) -> bool:
        return self._search_client is not None

    async def execute(self, task_spec: TaskSpec, timeout: float | None = None) -> TaskResult:
        """Run one external call.

        Args:
            task_spec: What to call.
            timeout: Per-attempt timeout in seconds (default: task_timeout_s).

        Raises:
            RetryExhaustedError: Transient failures outlasted the retry policy.
            PermanentExternalError: Non-transient failure.
        """
        timeout = timeout if timeout is not None else self._settings.task_timeout_s
        if task_spec.kind == "generation":
            return await self._execute_generation(task_spec, timeout)
        return await self._execute_search(task_spec, timeout)

    async def aclose(self) -> None:
        if self._search_client is not None:
            await self._search_client.close()

    # --- Internal helpers ---

    def _llm_for(self, phase: str) -> BaseLLMClient:
        if self._llm_override is not None:
            return self._llm_override
        assignment = resolve_llm(phase, self._settings)
        client = self._llm_clients.get(assignment.key)
        if client is None:
            client = create_llm_client(assignment.provider, assignment.model, self._settings)
            self._llm_clients[assignment.key] = client
            logger.info("Phase %s routed to %s (%s)", phase, assignment.key, assignment.source)
        return client

    async def _execute_generation(self, spec: TaskSpec, timeout: float) -> TaskResult:
        client = self._llm_for(spec.phase)
        request = GenerationRequest(
            prompt=spec.prompt,
            system=spec.system,
            max_tokens=spec.max_tokens or self._settings.llm_max_tokens,
            temperature=(
                spec.temperature if spec.temperature is not None
                else self._settings.llm_temperature
            ),
            json_mode=spec.json_mode,
        )
        attempts = 0

        async def _attempt():
            nonlocal attempts
            attempts += 1
            return await asyncio.wait_for(client.generate(request), timeout=timeout)

        try:
            response = await with_retry(_attempt, self._policy, task=spec.label)
        except PipelineError:
            self.call_logger.record_failure(
                spec.phase, spec.scope_id, "generation",
                client.provider_name, client.model_name, retry_count=attempts - 1,
            )
            raise

        record = self.call_logger.record_generation(
            spec.phase, spec.scope_id, response, retry_count=attempts - 1,
        )
        if response.truncated:
            logger.info("Generation for %s hit the output cap", spec.label)
        return TaskResult(
            raw_text=response.text,
            cost_units=record.estimated_cost_usd,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            latency_ms=response.latency_ms,
            attempts=attempts,
            truncated=response.truncated,
            provider=response.provider,
            model=response.model,
        )

    async def _execute_search(self, spec: TaskSpec, timeout: float) -> TaskResult:
        if self._search_client is None:
            raise PermanentExternalError("No search backend configured")
        if spec.platform is None:
            raise PermanentExternalError(f"Search task {spec.label} has no platform")
        search_client = self._search_client
        attempts = 0

        async def _attempt():
            nonlocal attempts
            attempts += 1
            return await asyncio.wait_for(
                search_client.search(spec.query, spec.platform), timeout=timeout,
            )

        try:
            response = await with_retry(_attempt, self._policy, task=spec.label)
        except PipelineError:
            self.call_logger.record_failure(
                spec.phase, spec.scope_id, "search",
                search_client.provider_name, retry_count=attempts - 1,
            )
            raise

        cost = self._settings.search_cost_per_call
        self.call_logger.record_search(
            spec.phase, spec.scope_id, response.provider, response.latency_ms,
            cost, retry_count=attempts - 1,
        )
        return TaskResult(
            raw_text=json.dumps([h.model_dump() for h in response.hits]),
            cost_units=cost,
            latency_ms=response.latency_ms,
            attempts=attempts,
            provider=response.provider,
            hits=response.hits,
        )
