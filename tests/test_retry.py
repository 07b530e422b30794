"""Tests for duplex.retry — backoff computation and the retry executor."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from duplex.errors import ErrorKind, ProviderError
from duplex.retry import compute_backoff_ms, with_retry
from duplex.schemas.orchestration import JitterKind, RetryPolicy

_SLEEP = "duplex.retry.asyncio.sleep"


def _error(kind: ErrorKind) -> ProviderError:
    return ProviderError(f"{kind} failure", kind=kind, provider_id="p")


class TestComputeBackoff:
    def test_exponential_without_jitter(self):
        policy = RetryPolicy(base_backoff_ms=1000, jitter=JitterKind.NONE)
        assert [compute_backoff_ms(n, policy) for n in range(4)] == [1000, 2000, 4000, 8000]

    def test_jitter_upper_bound_is_30_percent(self):
        policy = RetryPolicy(base_backoff_ms=1000)
        assert compute_backoff_ms(1, policy, rand=lambda: 1.0) == pytest.approx(2600)
        assert compute_backoff_ms(1, policy, rand=lambda: 0.0) == 2000

    def test_jitter_stays_in_range(self):
        policy = RetryPolicy(base_backoff_ms=500)
        for attempt in range(4):
            delay = compute_backoff_ms(attempt, policy)
            base = 500 * 2 ** attempt
            assert base <= delay <= base * 1.3

    def test_capped_at_30_seconds(self):
        policy = RetryPolicy(base_backoff_ms=1000)
        assert compute_backoff_ms(10, policy, rand=lambda: 1.0) == 30_000


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_first_attempt_success(self):
        call = AsyncMock(return_value="ok")
        assert await with_retry(call, RetryPolicy()) == "ok"
        assert call.call_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kind",
        [ErrorKind.RATE_LIMIT, ErrorKind.TIMEOUT, ErrorKind.PROVIDER, ErrorKind.TRANSPORT],
    )
    async def test_retries_transient_kinds(self, kind):
        call = AsyncMock(side_effect=[_error(kind), "ok"])
        with patch(_SLEEP, new_callable=AsyncMock) as sleep:
            assert await with_retry(call, RetryPolicy()) == "ok"
        assert call.call_count == 2
        assert sleep.call_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kind", [ErrorKind.VALIDATION, ErrorKind.QUOTA, ErrorKind.INTERNAL],
    )
    async def test_permanent_kinds_fail_immediately(self, kind):
        call = AsyncMock(side_effect=_error(kind))
        with patch(_SLEEP, new_callable=AsyncMock) as sleep, pytest.raises(ProviderError) as exc:
            await with_retry(call, RetryPolicy())
        assert exc.value.kind == kind
        assert call.call_count == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_last_error_propagates_after_budget(self):
        errors = [_error(ErrorKind.RATE_LIMIT), _error(ErrorKind.PROVIDER), _error(ErrorKind.TIMEOUT)]
        call = AsyncMock(side_effect=errors)
        with patch(_SLEEP, new_callable=AsyncMock) as sleep, pytest.raises(ProviderError) as exc:
            await with_retry(call, RetryPolicy(max_attempts=3))
        assert exc.value is errors[-1]
        assert call.call_count == 3
        # No sleep after the final attempt
        assert sleep.call_count == 2

    @pytest.mark.asyncio
    async def test_sleeps_use_backoff(self):
        call = AsyncMock(side_effect=[_error(ErrorKind.TRANSPORT)] * 2 + ["ok"])
        policy = RetryPolicy(base_backoff_ms=100, jitter=JitterKind.NONE)
        with patch(_SLEEP, new_callable=AsyncMock) as sleep:
            await with_retry(call, policy)
        assert [c.args[0] for c in sleep.call_args_list] == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_untyped_exceptions_are_classified(self):
        call = AsyncMock(side_effect=[RuntimeError("503 model loading"), "ok"])
        with patch(_SLEEP, new_callable=AsyncMock):
            assert await with_retry(call, RetryPolicy(), provider_id="p") == "ok"

    @pytest.mark.asyncio
    async def test_classified_error_keeps_cause(self):
        original = RuntimeError("weird internal state")
        call = AsyncMock(side_effect=original)
        with pytest.raises(ProviderError) as exc:
            await with_retry(call, RetryPolicy(), provider_id="p")
        assert exc.value.kind == ErrorKind.INTERNAL
        assert exc.value.provider_id == "p"
        assert exc.value.__cause__ is original

    @pytest.mark.asyncio
    async def test_per_attempt_timeout(self):
        attempts = 0

        async def call():
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                await asyncio.sleep(1)
            return "ok"

        policy = RetryPolicy(timeout_seconds=0.01, base_backoff_ms=0)
        assert await with_retry(call, policy) == "ok"
        assert attempts == 2

    @pytest.mark.asyncio
    async def test_timeout_exhaustion_is_timeout_kind(self):
        async def call():
            await asyncio.sleep(1)

        policy = RetryPolicy(max_attempts=2, timeout_seconds=0.01, base_backoff_ms=0)
        with pytest.raises(ProviderError) as exc:
            await with_retry(call, policy)
        assert exc.value.kind == ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_on_attempt_hook(self):
        seen = []

        async def on_attempt(attempt, error):
            seen.append((attempt, error.kind))

        call = AsyncMock(side_effect=[_error(ErrorKind.RATE_LIMIT), _error(ErrorKind.TIMEOUT), "ok"])
        with patch(_SLEEP, new_callable=AsyncMock):
            await with_retry(call, RetryPolicy(), on_attempt=on_attempt)
        assert seen == [(2, ErrorKind.RATE_LIMIT), (3, ErrorKind.TIMEOUT)]
