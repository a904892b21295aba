# src/core/errors.py — v1
"""Pipeline error taxonomy.

Each error carries a machine-readable ``kind`` that is copied verbatim into
terminal ``error`` events and failed-keyword reports.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    kind = "pipeline_error"


class TransientExternalError(PipelineError):
    """Timeout, rate limit or 5xx-class failure of an external backend."""

    kind = "transient_external"

    def __init__(self, message: str, error_type: str = "unknown") -> None:
        self.error_type = error_type
        super().__init__(message)


class RetryExhaustedError(TransientExternalError):
    """All retry attempts for a transient failure were used up."""

    def __init__(self, task: str, error_type: str, attempts: int, last_error: Exception):
        self.task = task
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Task '{task}' failed after {attempts} attempts ({error_type}): {last_error}",
            error_type=error_type,
        )


class PermanentExternalError(PipelineError):
    """Authentication or validation failure; never retried."""

    kind = "permanent_external"


class MalformedResponseError(PipelineError):
    """Backend output could not be parsed as structured data.

    The repair parser resolves this into a degraded default, so it does not
    escape a phase.
    """

    kind = "malformed_response"


class PersistenceError(PipelineError):
    """Checkpoint or phrase write failed. Fatal to the run."""

    kind = "persistence_error"


class ConcurrentRunConflict(PipelineError):
    """Another live run holds the lease for this domain."""

    kind = "concurrent_run"

    def __init__(self, domain_id: str, holder: str | None = None) -> None:
        self.domain_id = domain_id
        self.holder = holder
        detail = f" (held by run {holder})" if holder else ""
        super().__init__(f"A pipeline run is already active for domain {domain_id}{detail}")


class PhaseFailedError(PipelineError):
    """A phase ended in status=failed; wraps the underlying cause."""

    def __init__(self, phase: str, scope_id: str, cause: Exception) -> None:
        self.phase = phase
        self.scope_id = scope_id
        self.cause = cause
        self.kind = getattr(cause, "kind", "phase_failed")
        super().__init__(f"Phase '{phase}' failed for {scope_id}: {cause}")
