# src/executor/retry.py — v1
"""Single retry policy with exponential backoff and jitter.

Transient failures (timeout, rate limit, 5xx, dropped connection) are retried
up to ``max_attempts`` total attempts; anything else propagates on the first
failure as a PermanentExternalError.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from intentphrase.core.errors import (
    PermanentExternalError,
    PipelineError,
    RetryExhaustedError,
    TransientExternalError,
)

logger = logging.getLogger(__name__)

TRANSIENT_ERROR_TYPES = frozenset({"rate_limit", "timeout", "server_error", "connection"})

_PERMANENT_STATUS = {400: "bad_request", 401: "auth", 403: "auth", 404: "not_found", 422: "bad_request"}


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration shared by every external call."""

    max_attempts: int = 3
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0
    max_delay_s: float = 30.0
    jitter: bool = True

    @classmethod
    def from_settings(cls, settings: Any) -> RetryPolicy:
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay_s=settings.retry_base_delay_s,
            backoff_factor=settings.retry_backoff_factor,
            max_delay_s=settings.retry_max_delay_s,
            jitter=settings.retry_jitter,
        )


def _status_code(error: Exception) -> int | None:
    code = getattr(error, "status_code", None)
    if code is None:
        response = getattr(error, "response", None)
        code = getattr(response, "status_code", None)
    return code if isinstance(code, int) else None


def classify_error(error: Exception) -> str:
    """Classify an exception into a retry error type.

    Status codes win over exception names, which win over the message.
    """
    if isinstance(error, TransientExternalError):
        return error.error_type if error.error_type in TRANSIENT_ERROR_TYPES else "server_error"
    if isinstance(error, PipelineError):
        return "permanent"
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return "timeout"

    code = _status_code(error)
    if code is not None:
        if code == 429:
            return "rate_limit"
        if code == 408:
            return "timeout"
        if code >= 500:
            return "server_error"
        return _PERMANENT_STATUS.get(code, "bad_request")

    msg = str(error).lower()
    name = type(error).__name__.lower()

    if "timeout" in name or "timed out" in msg or "timeout" in msg:
        return "timeout"
    if "ratelimit" in name or "429" in msg or "rate limit" in msg:
        return "rate_limit"
    if "connection" in name or "connecterror" in name or "connection" in msg:
        return "connection"
    if any(c in msg for c in ("500", "502", "503", "504", "overloaded")):
        return "server_error"
    if "auth" in name or "401" in msg or "403" in msg:
        return "auth"
    return "unknown"


def is_transient(error_type: str) -> bool:
    return error_type in TRANSIENT_ERROR_TYPES


def compute_delay(policy: RetryPolicy, attempt: int) -> float:
    """Compute delay before the retry following ``attempt`` (0-based)."""
    delay = policy.base_delay_s * (policy.backoff_factor ** attempt)
    if policy.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return min(delay, policy.max_delay_s)


async def with_retry(
    fn: Callable[[], Awaitable[Any]],
    policy: RetryPolicy,
    task: str = "unknown",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Any:
    """Execute an async callable under the retry policy.

    Raises:
        RetryExhaustedError: A transient failure persisted through every attempt.
        PermanentExternalError: A non-transient failure (first occurrence).
    """
    attempts = 0

    while True:
        try:
            return await fn()
        except Exception as e:
            attempts += 1
            error_type = classify_error(e)

            if not is_transient(error_type):
                if isinstance(e, PermanentExternalError):
                    raise
                raise PermanentExternalError(
                    f"Task '{task}' failed ({error_type}): {e}"
                ) from e

            if attempts >= policy.max_attempts:
                raise RetryExhaustedError(task, error_type, attempts, e) from e

            delay = compute_delay(policy, attempts - 1)
            logger.warning(
                "Task '%s' %s (attempt %d/%d), retrying in %.1fs",
                task, error_type, attempts, policy.max_attempts, delay,
            )
            await sleep(delay)
