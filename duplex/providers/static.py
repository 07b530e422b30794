"""Static provider returning canned outputs.

Used by `duplex demo` and the test suite to exercise the orchestrator
without network access. Outputs and scripted failures can be supplied
programmatically or through the ``options`` table in providers.toml:

    [providers.demo-a.options]
    delay_seconds = 0.2
    summary = "..."
    items = [{ name = "Actor One", confidence = 0.8 }]
    metrics = { overall = 0.7 }
    fail_with = ["RATE_LIMIT"]   # raised in order before succeeding
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Iterable

from duplex.errors import ErrorKind, ProviderError
from duplex.providers.base import GenerativeProvider, StageCallback
from duplex.schemas.orchestration import OrchestrationRequest
from duplex.schemas.progress import ProviderStatus
from duplex.schemas.provider import OutputItem, ProviderConfig, ProviderOutput

logger = logging.getLogger(__name__)


class StaticProvider(GenerativeProvider):
    """Provider that replays a fixed output, optionally after failures."""

    def __init__(
        self,
        config: ProviderConfig,
        output: ProviderOutput | None = None,
        failures: Iterable[BaseException] = (),
        delay: float | None = None,
    ) -> None:
        super().__init__(config)
        options = config.options
        self._output = output or ProviderOutput(
            provider_id=config.provider_id,
            items=[OutputItem(**item) for item in options.get("items", [])],
            metrics=dict(options.get("metrics", {})),
            summary=options.get("summary", ""),
            model=config.model or "static",
        )
        scripted = [
            ProviderError(
                f"Scripted {kind} failure",
                code=f"SCRIPTED_{kind}",
                kind=ErrorKind(kind),
                provider_id=config.provider_id,
            )
            for kind in options.get("fail_with", [])
        ]
        self._failures: deque[BaseException] = deque([*scripted, *failures])
        self._delay = delay if delay is not None else float(options.get("delay_seconds", 0.0))
        self.calls = 0

    async def generate(
        self,
        request: OrchestrationRequest,
        *,
        on_stage: StageCallback | None = None,
    ) -> ProviderOutput:
        self.calls += 1
        start = time.monotonic()
        await self._report(on_stage, ProviderStatus.ANALYZING, 25, "Preparing canned output")
        if self._delay:
            await asyncio.sleep(self._delay)

        if self._failures:
            raise self._failures.popleft()

        await self._report(on_stage, ProviderStatus.VALIDATING, 75, "Returning canned output")
        return self._output.model_copy(update={
            "provider_id": self.provider_id,
            "latency_ms": (time.monotonic() - start) * 1000,
        })
