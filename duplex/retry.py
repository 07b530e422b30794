"""Retry/backoff executor for single provider calls.

Wraps one provider call with bounded retries. Every attempt has its own
timeout. Failures are classified into the error taxonomy; only retryable
kinds are attempted again, after an exponential backoff with up to 30%
random jitter, capped at 30 seconds.

Providers are treated as idempotent black boxes: a retried call is
assumed to have no side effects beyond those of a single call.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from duplex.errors import ProviderError, classify_exception
from duplex.schemas.orchestration import JitterKind, RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fraction of the exponential delay used as the jitter ceiling
JITTER_RATIO = 0.3

# Called before each backoff sleep: (next attempt number, error)
AttemptHook = Callable[[int, ProviderError], Awaitable[None] | None]


def compute_backoff_ms(
    attempt: int,
    policy: RetryPolicy,
    rand: Callable[[], float] = random.random,
) -> float:
    """Delay before the attempt following ``attempt`` (0-based).

    ``min(base * 2^attempt + uniform(0, 0.3 * base * 2^attempt), cap)``
    """
    exponential = policy.base_backoff_ms * (2 ** attempt)
    jitter = 0.0
    if policy.jitter == JitterKind.FULL:
        jitter = rand() * JITTER_RATIO * exponential
    return min(exponential + jitter, policy.cap_ms)


async def with_retry(
    call: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    provider_id: str | None = None,
    on_attempt: AttemptHook | None = None,
) -> T:
    """Run ``call`` until it succeeds or retries are exhausted.

    Args:
        call: Zero-argument factory returning a fresh awaitable per attempt.
        policy: Attempt budget, backoff base, jitter and per-attempt timeout.
        provider_id: Attached to classified errors for reporting.
        on_attempt: Optional hook invoked before each backoff sleep with the
            1-based number of the upcoming attempt.

    Returns:
        The first successful result.

    Raises:
        ProviderError: The classified last error, when the error is not
            retryable or the final attempt failed.
    """
    for attempt in range(policy.max_attempts):
        try:
            return await asyncio.wait_for(call(), timeout=policy.timeout_seconds)
        except Exception as exc:
            error = classify_exception(exc, provider_id)
            is_last = attempt == policy.max_attempts - 1

            if not error.is_retryable or is_last:
                if error is exc:
                    raise
                raise error from exc

            delay_ms = compute_backoff_ms(attempt, policy)
            logger.warning(
                "Retry %d/%d for %s (%s, backoff: %.0fms)",
                attempt + 1,
                policy.max_attempts - 1,
                provider_id or "provider",
                error.kind.value,
                delay_ms,
            )
            if on_attempt is not None:
                result = on_attempt(attempt + 2, error)
                if inspect.isawaitable(result):
                    await result
            await asyncio.sleep(delay_ms / 1000)

    # max_attempts >= 1, so the loop always returns or raises
    raise AssertionError("unreachable")
