"""Dual-provider orchestrator.

Fans one request out to two providers concurrently, waits for both,
and turns the outcomes into a single OrchestrationResult:

- both fail    → BothProvidersFailedError, no result
- one fails    → the survivor is primary, failover_occurred=True
- both succeed → score, cross-validate, select one provider, merge the
                 item lists into a separate consensus field

The orchestrator never branches on the domain; domain behavior lives in
the providers and the quality scorers.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable

from duplex.consensus.merge import combine_metrics, merge_items
from duplex.consensus.scoring import QualityScorer, scorer_for
from duplex.consensus.selection import select_provider
from duplex.consensus.validation import cross_validate
from duplex.errors import (
    BothProvidersFailedError,
    ErrorKind,
    ProviderError,
    classify_exception,
)
from duplex.progress import ProgressCallback, ProgressEmitter, ProgressTracker
from duplex.providers.base import GenerativeProvider
from duplex.providers.registry import ProviderRegistry
from duplex.retry import with_retry
from duplex.schemas.domains import Domain
from duplex.schemas.orchestration import (
    EngineConfig,
    MetricsComparison,
    OrchestrationRequest,
    OrchestrationResult,
)
from duplex.schemas.progress import ProviderStatus
from duplex.schemas.provider import HealthStatus, ProviderOutput

logger = logging.getLogger(__name__)


class DualProviderOrchestrator:
    """Runs requests against two providers and reconciles the outputs.

    Args:
        registry: Providers available to requests, keyed by provider id.
        config: Engine configuration (retry defaults, consensus cap, ...).
        scorers: Per-domain quality scorer overrides.
        emitter: Progress emitter; one is created when omitted.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        config: EngineConfig | None = None,
        *,
        scorers: dict[Domain, QualityScorer] | None = None,
        emitter: ProgressEmitter | None = None,
    ) -> None:
        self._registry = registry
        self._config = config or EngineConfig()
        self._scorers = scorers or {}
        self._emitter = emitter or ProgressEmitter(self._config.max_subscribers)
        # Provider tasks outlive a cancelled caller; hold references until done
        self._background: set[asyncio.Task] = set()

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def emitter(self) -> ProgressEmitter:
        return self._emitter

    # ── Progress facade ───────────────────────────────────────

    def on_progress(self, request_id: str, callback: ProgressCallback) -> None:
        """Subscribe to progress for a request (one callback per request)."""
        self._emitter.subscribe(request_id, callback)

    def off_progress(self, request_id: str) -> None:
        """Stop receiving progress for a request."""
        self._emitter.unsubscribe(request_id)

    # ── Orchestration ─────────────────────────────────────────

    async def orchestrate(self, request: OrchestrationRequest) -> OrchestrationResult:
        """Run a request against both providers and assemble the result.

        Raises:
            ProviderNotFoundError: If either provider id is not registered.
            BothProvidersFailedError: If neither provider produced an output.
        """
        start = time.monotonic()
        provider_a = self._registry.get(request.provider_a)
        provider_b = self._registry.get(request.provider_b)

        logger.info(
            "Orchestrating %s (%s): %s vs %s",
            request.request_id,
            request.domain.value,
            provider_a.provider_id,
            provider_b.provider_id,
        )

        tracker = self._emitter.tracker(
            request.request_id, provider_a.provider_id, provider_b.provider_id,
        )
        try:
            await self._emitter.publish(request.request_id, tracker.state)

            tasks = [
                self._spawn(self._run_provider(provider, request, tracker), provider)
                for provider in (provider_a, provider_b)
            ]
            try:
                outcome_a, outcome_b = await asyncio.shield(
                    asyncio.gather(*tasks, return_exceptions=True)
                )
            except asyncio.CancelledError:
                # The provider tasks keep running; only the subscriber goes away
                logger.warning("Request %s cancelled by caller", request.request_id)
                raise

            output_a = outcome_a if isinstance(outcome_a, ProviderOutput) else None
            output_b = outcome_b if isinstance(outcome_b, ProviderOutput) else None

            if output_a is None and output_b is None:
                logger.error("Both providers failed for %s", request.request_id)
                raise BothProvidersFailedError(
                    provider_a.provider_id, outcome_a, provider_b.provider_id, outcome_b,
                )

            if output_a is None or output_b is None:
                result = self._failover_result(request, output_a, output_b, start)
            else:
                result = self._dual_result(request, output_a, output_b, start)
        finally:
            self._emitter.unsubscribe(request.request_id)

        logger.info(
            "Request %s complete: selected %s, %d consensus items (%.0fms)",
            result.request_id,
            result.selected_provider,
            len(result.consensus),
            result.total_latency_ms,
        )
        return result

    def _spawn(self, coro, provider: GenerativeProvider) -> asyncio.Task:
        task = asyncio.create_task(coro, name=f"duplex-{provider.provider_id}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _run_provider(
        self,
        provider: GenerativeProvider,
        request: OrchestrationRequest,
        tracker: ProgressTracker,
    ) -> ProviderOutput:
        """One side of the fan-out: validate, generate with retries, report."""
        provider_id = provider.provider_id

        validation = provider.validate(request)
        if not validation.valid:
            error = ProviderError(
                f"Request rejected by {provider_id}: {'; '.join(validation.errors)}",
                code="INVALID_REQUEST",
                kind=ErrorKind.VALIDATION,
                provider_id=provider_id,
                details={"errors": validation.errors},
            )
            logger.error("Provider %s rejected %s: %s", provider_id, request.request_id, error)
            await tracker.update(
                provider_id, ProviderStatus.FAILED, stage="Invalid request", error=error.to_dict(),
            )
            raise error

        await tracker.update(
            provider_id, ProviderStatus.RUNNING, progress=5, stage="Starting", attempt=1,
        )

        async def on_stage(status: ProviderStatus, progress: float, stage: str) -> None:
            await tracker.update(provider_id, status, progress=progress, stage=stage)

        async def on_attempt(attempt: int, error: ProviderError) -> None:
            await tracker.update(
                provider_id,
                ProviderStatus.RUNNING,
                stage=f"Retrying after {error.kind.value.lower()} error",
                attempt=attempt,
                error=error.to_dict(),
            )

        try:
            output = await with_retry(
                lambda: provider.generate(request, on_stage=on_stage),
                provider.retry_policy(self._config.retry),
                provider_id=provider_id,
                on_attempt=on_attempt,
            )
        except asyncio.CancelledError:
            await tracker.update(provider_id, ProviderStatus.CANCELLED, stage="Cancelled")
            raise
        except Exception as exc:
            error = classify_exception(exc, provider_id)
            logger.error("Provider %s failed for %s: %s", provider_id, request.request_id, error)
            await tracker.update(
                provider_id, ProviderStatus.FAILED, stage="Failed", error=error.to_dict(),
            )
            if error is exc:
                raise
            raise error from exc

        await tracker.update(provider_id, ProviderStatus.SUCCEEDED, progress=100, stage="Complete")
        return output

    def _failover_result(
        self,
        request: OrchestrationRequest,
        output_a: ProviderOutput | None,
        output_b: ProviderOutput | None,
        start: float,
    ) -> OrchestrationResult:
        survivor = output_a or output_b
        failed = request.provider_b if output_a is not None else request.provider_a
        logger.warning(
            "Provider %s failed for %s, failing over to %s",
            failed, request.request_id, survivor.provider_id,
        )
        selection = select_provider(
            None,
            output_a,
            output_b,
            provider_a=request.provider_a,
            provider_b=request.provider_b,
            preferred=request.preferred_provider,
        )
        return OrchestrationResult(
            request_id=request.request_id,
            domain=request.domain,
            primary=survivor,
            consensus=merge_items(survivor, None, self._config.max_consensus_items),
            selected_provider=selection.provider_id,
            selection_reason=selection.reason,
            failover_occurred=True,
            failed_provider=failed,
            total_latency_ms=(time.monotonic() - start) * 1000,
        )

    def _dual_result(
        self,
        request: OrchestrationRequest,
        output_a: ProviderOutput,
        output_b: ProviderOutput,
        start: float,
    ) -> OrchestrationResult:
        report = None
        quality_a = quality_b = None
        if request.enable_cross_validation and self._config.enable_cross_validation:
            scorer = scorer_for(request.domain, self._scorers)
            quality_a = scorer.score(output_a)
            quality_b = scorer.score(output_b)
            report = cross_validate(
                output_a, output_b, quality_a, quality_b, request_id=request.request_id,
            )

        selection = select_provider(
            report,
            output_a,
            output_b,
            quality_a,
            quality_b,
            provider_a=request.provider_a,
            provider_b=request.provider_b,
            preferred=request.preferred_provider,
        )

        primary, secondary = output_a, output_b
        if selection.provider_id == request.provider_b:
            primary, secondary = output_b, output_a

        return OrchestrationResult(
            request_id=request.request_id,
            domain=request.domain,
            primary=primary,
            secondary=secondary,
            consensus=merge_items(primary, secondary, self._config.max_consensus_items),
            selected_provider=selection.provider_id,
            selection_reason=selection.reason,
            cross_validation=report,
            metrics_comparison=MetricsComparison(
                provider_a=output_a.metrics,
                provider_b=output_b.metrics,
                combined=combine_metrics(output_a.metrics, output_b.metrics),
            ),
            total_latency_ms=(time.monotonic() - start) * 1000,
        )

    # ── Single-provider and batch modes ───────────────────────

    async def generate_with_fallback(
        self,
        request: OrchestrationRequest,
        primary: str | None = None,
        fallback: str | None = None,
    ) -> ProviderOutput:
        """Generate with one provider, failing over to a second in sequence.

        ``primary`` and ``fallback`` default to the request's provider_a
        and provider_b. No cross-validation or merging takes place.

        Raises:
            ProviderNotFoundError: If either provider id is not registered.
            BothProvidersFailedError: If the fallback also fails.
        """
        primary_provider = self._registry.get(primary or request.provider_a)
        fallback_provider = self._registry.get(fallback or request.provider_b)

        try:
            return await self._generate_single(primary_provider, request)
        except ProviderError as primary_error:
            logger.warning(
                "Primary provider %s failed, failing over to %s: %s",
                primary_provider.provider_id,
                fallback_provider.provider_id,
                primary_error,
            )
            try:
                return await self._generate_single(fallback_provider, request)
            except ProviderError as fallback_error:
                logger.error(
                    "Fallback provider %s also failed: %s",
                    fallback_provider.provider_id,
                    fallback_error,
                )
                raise BothProvidersFailedError(
                    primary_provider.provider_id,
                    primary_error,
                    fallback_provider.provider_id,
                    fallback_error,
                ) from fallback_error

    async def _generate_single(
        self, provider: GenerativeProvider, request: OrchestrationRequest,
    ) -> ProviderOutput:
        validation = provider.validate(request)
        if not validation.valid:
            raise ProviderError(
                f"Request rejected by {provider.provider_id}: {'; '.join(validation.errors)}",
                code="INVALID_REQUEST",
                kind=ErrorKind.VALIDATION,
                provider_id=provider.provider_id,
                details={"errors": validation.errors},
            )
        return await with_retry(
            lambda: provider.generate(request),
            provider.retry_policy(self._config.retry),
            provider_id=provider.provider_id,
        )

    async def batch(
        self, requests: Iterable[OrchestrationRequest],
    ) -> tuple[list[OrchestrationResult], list[tuple[str, BaseException]]]:
        """Run several orchestrations concurrently.

        Returns:
            Successful results in request order, and (request_id, error)
            pairs for requests that raised.
        """
        pending = list(requests)
        outcomes = await asyncio.gather(
            *(self.orchestrate(r) for r in pending), return_exceptions=True,
        )

        results: list[OrchestrationResult] = []
        failures: list[tuple[str, BaseException]] = []
        for request, outcome in zip(pending, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error("Batch request %s failed: %s", request.request_id, outcome)
                failures.append((request.request_id, outcome))
            else:
                results.append(outcome)

        logger.info("Batch complete: %d succeeded, %d failed", len(results), len(failures))
        return results, failures

    # ── Health and lifecycle ──────────────────────────────────

    async def check_health(self) -> dict[str, HealthStatus]:
        """Probe every registered provider concurrently.

        Probes run outside any orchestration join; an exception or timeout
        reports DOWN.
        """
        snapshots = await self._registry.check_health(self._config.health_timeout_seconds)
        return {provider_id: health.status for provider_id, health in snapshots.items()}

    async def dispose(self) -> None:
        """Dispose every provider and drop all progress subscribers.

        Safe to call more than once.
        """
        self._emitter.clear()
        await self._registry.dispose_all()
