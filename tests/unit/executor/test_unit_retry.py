# tests/unit/executor/test_unit_retry.py — v1
"""Tests for executor/retry.py: error classification and backoff."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from intentphrase.core.errors import (
    MalformedResponseError,
    PermanentExternalError,
    RetryExhaustedError,
    TransientExternalError,
)
from intentphrase.executor.retry import (
    RetryPolicy,
    classify_error,
    compute_delay,
    is_transient,
    with_retry,
)


class _StatusError(Exception):
    def __init__(self, status_code: int, message: str = "http error"):
        super().__init__(message)
        self.status_code = status_code


class _Response:
    def __init__(self, status_code: int):
        self.status_code = status_code


class _ResponseError(Exception):
    def __init__(self, status_code: int):
        super().__init__("bad response")
        self.response = _Response(status_code)


class RateLimitError(Exception):
    pass


class APIConnectionError(Exception):
    pass


class TestClassifyError:
    def test_timeout(self):
        assert classify_error(asyncio.TimeoutError()) == "timeout"

    @pytest.mark.parametrize("code,expected", [
        (429, "rate_limit"),
        (408, "timeout"),
        (500, "server_error"),
        (503, "server_error"),
        (401, "auth"),
        (403, "auth"),
        (400, "bad_request"),
        (404, "not_found"),
    ])
    def test_status_codes(self, code, expected):
        assert classify_error(_StatusError(code)) == expected

    def test_status_code_on_response(self):
        assert classify_error(_ResponseError(502)) == "server_error"

    def test_status_code_wins_over_message(self):
        assert classify_error(_StatusError(401, "connection timed out")) == "auth"

    def test_exception_name(self):
        assert classify_error(RateLimitError("slow down")) == "rate_limit"
        assert classify_error(APIConnectionError("boom")) == "connection"

    def test_message_fallback(self):
        assert classify_error(RuntimeError("upstream overloaded")) == "server_error"
        assert classify_error(RuntimeError("something odd")) == "unknown"

    def test_transient_pipeline_error(self):
        assert classify_error(TransientExternalError("x", error_type="rate_limit")) == "rate_limit"
        assert classify_error(TransientExternalError("x")) == "server_error"

    def test_other_pipeline_errors_are_permanent(self):
        assert classify_error(MalformedResponseError("bad")) == "permanent"
        assert not is_transient(classify_error(PermanentExternalError("no")))


class TestComputeDelay:
    def test_exponential_without_jitter(self):
        policy = RetryPolicy(base_delay_s=1.0, backoff_factor=2.0, max_delay_s=30.0, jitter=False)
        assert compute_delay(policy, 0) == 1.0
        assert compute_delay(policy, 1) == 2.0
        assert compute_delay(policy, 3) == 8.0

    def test_capped(self):
        policy = RetryPolicy(base_delay_s=1.0, backoff_factor=10.0, max_delay_s=5.0, jitter=False)
        assert compute_delay(policy, 4) == 5.0

    def test_jitter_in_range(self):
        policy = RetryPolicy(base_delay_s=2.0, backoff_factor=2.0, max_delay_s=100.0, jitter=True)
        for _ in range(20):
            assert 1.0 <= compute_delay(policy, 0) <= 3.0


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        fn = AsyncMock(return_value="ok")
        assert await with_retry(fn, RetryPolicy(), sleep=AsyncMock()) == "ok"
        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_transient_then_succeeds(self):
        fn = AsyncMock(side_effect=[asyncio.TimeoutError(), _StatusError(503), "ok"])
        sleep = AsyncMock()
        policy = RetryPolicy(max_attempts=3, jitter=False)
        assert await with_retry(fn, policy, task="t", sleep=sleep) == "ok"
        assert fn.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted(self):
        fn = AsyncMock(side_effect=_StatusError(429))
        policy = RetryPolicy(max_attempts=2, jitter=False)
        with pytest.raises(RetryExhaustedError) as exc_info:
            await with_retry(fn, policy, task="gen", sleep=AsyncMock())
        assert exc_info.value.attempts == 2
        assert exc_info.value.error_type == "rate_limit"
        assert exc_info.value.kind == "transient_external"
        assert fn.await_count == 2

    @pytest.mark.asyncio
    async def test_permanent_not_retried(self):
        fn = AsyncMock(side_effect=_StatusError(401))
        sleep = AsyncMock()
        with pytest.raises(PermanentExternalError, match="auth"):
            await with_retry(fn, RetryPolicy(max_attempts=5), sleep=sleep)
        assert fn.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_permanent_error_passes_through(self):
        original = PermanentExternalError("denied")
        fn = AsyncMock(side_effect=original)
        with pytest.raises(PermanentExternalError) as exc_info:
            await with_retry(fn, RetryPolicy(), sleep=AsyncMock())
        assert exc_info.value is original


class TestPolicyFromSettings:
    def test_reads_settings(self, settings):
        policy = RetryPolicy.from_settings(settings)
        assert policy.max_attempts == settings.retry_max_attempts
        assert policy.jitter is False
        assert policy.base_delay_s == 0.0
