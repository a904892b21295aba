# src/pipeline/phases/base_phase.py — v1
"""Standard interface for pipeline phase handlers.

A handler turns a PhaseRequest into a PhaseOutput. It never touches the
checkpoint store; the coordinator persists whatever it returns.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field

from intentphrase.config.settings import Settings
from intentphrase.core.models import Domain, GeneratedPhrase, Keyword, ScopeKind
from intentphrase.executor.models import TaskResult, TaskSpec
from intentphrase.executor.task_executor import TaskExecutor
from intentphrase.parsing.repair_parser import ParseResult, parse
from intentphrase.pipeline.context import ContextBlob

logger = logging.getLogger(__name__)

_PROMPT_DIR = Path(__file__).parent.parent / "prompts"

ReportFn = Callable[[int, str], Awaitable[None]]


async def _no_report(progress: int, message: str) -> None:
    return None


@dataclass
class PhaseRequest:
    """Everything a handler may read for one (scope, phase) invocation."""

    domain: Domain
    context: ContextBlob
    executor: TaskExecutor
    settings: Settings
    keyword: Keyword | None = None
    report: ReportFn = field(default=_no_report)

    @property
    def scope_id(self) -> str:
        return self.keyword.id if self.keyword is not None else self.domain.id


class PhaseOutput(BaseModel):
    """Result of a handler, persisted by the coordinator."""

    result: Any = None
    degraded: bool = False
    cost_units: float = 0.0
    phrases: list[GeneratedPhrase] | None = None
    warnings: list[str] = Field(default_factory=list)


class BasePhase(ABC):
    """Base class for the seven pipeline phases."""

    def __init__(self) -> None:
        self._prompt_template: str | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Phase identifier (e.g. 'semantic_analysis')."""

    @property
    @abstractmethod
    def scope(self) -> ScopeKind:
        """'domain' or 'keyword'."""

    @property
    def prompt_file(self) -> Path | None:
        """Prompt template path, for phases that call the generation backend."""
        return None

    @abstractmethod
    async def execute(self, request: PhaseRequest) -> PhaseOutput:
        """Run the phase.

        Raises:
            TransientExternalError: Retries exhausted on an external call.
            PermanentExternalError: Non-retryable external failure.
        """

    # --- Helpers for generation-backed phases ---

    def _load_prompt(self) -> str:
        """Load and cache prompt template."""
        if self._prompt_template is None:
            if self.prompt_file is None:
                raise RuntimeError(f"Phase {self.name} has no prompt template")
            self._prompt_template = self.prompt_file.read_text(encoding="utf-8")
        return self._prompt_template

    def _base_values(self, request: PhaseRequest) -> dict[str, Any]:
        domain = request.domain
        return {
            "domain_url": domain.url or "[URL not provided]",
            "domain_context": domain.context or "Not provided",
            "location": domain.location or "Global",
            "keyword": request.keyword.term if request.keyword else "",
            "context": request.context.render(request.settings.context_char_budget)
            or "(no prior results)",
        }

    async def _generate(
        self,
        request: PhaseRequest,
        expect: type | tuple[type, ...] = dict,
        default: Any = None,
        **values: Any,
    ) -> tuple[ParseResult, TaskResult]:
        """Fill the template, call the generation backend and repair-parse the output."""
        prompt = self._load_prompt().format(**{**self._base_values(request), **values})
        task = TaskSpec(
            kind="generation",
            phase=self.name,
            scope_id=request.scope_id,
            prompt=prompt,
        )
        result = await request.executor.execute(task)
        parsed = parse(result.raw_text, default=default, expect=expect)
        if parsed.degraded:
            logger.warning(
                "Phase %s got a degraded response for %s (repairs=%s)",
                self.name, request.scope_id, ",".join(parsed.repairs),
            )
        return parsed, result


def prompt_path(phase_name: str) -> Path:
    return _PROMPT_DIR / f"{phase_name}.txt"
