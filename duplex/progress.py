"""Progress emitter for in-flight orchestration requests.

Each request gets a ProgressTracker that owns its ProgressState and
serializes updates from both provider tasks under an asyncio.Lock. Every
update is published to at most one subscriber registered for that
request id. Callbacks can be sync or async; their exceptions are logged
and never reach the orchestrator.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from duplex.schemas.progress import ProgressState, ProviderProgress, ProviderStatus

logger = logging.getLogger(__name__)

# Type alias for progress subscriber callbacks
ProgressCallback = Callable[[ProgressState], Any]


class ProgressEmitter:
    """Routes ProgressState snapshots to one callback per request id.

    The subscriber table is bounded: subscribing beyond ``max_subscribers``
    evicts the oldest subscription. Publishing for a request nobody
    subscribed to is a no-op.
    """

    def __init__(self, max_subscribers: int = 256) -> None:
        self._max_subscribers = max_subscribers
        self._subscribers: OrderedDict[str, ProgressCallback] = OrderedDict()

    def __len__(self) -> int:
        return len(self._subscribers)

    def is_subscribed(self, request_id: str) -> bool:
        return request_id in self._subscribers

    def subscribe(self, request_id: str, callback: ProgressCallback) -> None:
        """Register the callback for a request, replacing any previous one."""
        self._subscribers.pop(request_id, None)
        self._subscribers[request_id] = callback
        while len(self._subscribers) > self._max_subscribers:
            evicted, _ = self._subscribers.popitem(last=False)
            logger.warning("Progress subscriber table full; dropped %s", evicted)

    def unsubscribe(self, request_id: str) -> bool:
        """Remove a subscription. Returns whether one existed."""
        return self._subscribers.pop(request_id, None) is not None

    def clear(self) -> None:
        self._subscribers.clear()

    async def publish(self, request_id: str, state: ProgressState) -> None:
        """Deliver a snapshot to the request's subscriber, if any."""
        callback = self._subscribers.get(request_id)
        if callback is None:
            return
        try:
            result = callback(state)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Progress callback error for %s", request_id)

    def tracker(self, request_id: str, provider_a: str, provider_b: str) -> ProgressTracker:
        """Create the tracker owning one request's progress state."""
        return ProgressTracker(self, request_id, provider_a, provider_b)


class ProgressTracker:
    """Mutable progress state for one request.

    Updates for either provider are applied and published under a single
    lock so subscribers observe a consistent, ordered sequence. Updates to
    a provider that already reached a terminal status are ignored.
    """

    def __init__(
        self,
        emitter: ProgressEmitter,
        request_id: str,
        provider_a: str,
        provider_b: str,
    ) -> None:
        self._emitter = emitter
        self._lock = asyncio.Lock()
        self._state = ProgressState(
            request_id=request_id,
            provider_a=ProviderProgress(provider_id=provider_a),
            provider_b=ProviderProgress(provider_id=provider_b),
        )

    @property
    def state(self) -> ProgressState:
        return self._state

    async def update(
        self,
        provider_id: str,
        status: ProviderStatus,
        *,
        progress: float | None = None,
        stage: str | None = None,
        attempt: int | None = None,
        error: dict[str, Any] | None = None,
    ) -> ProgressState:
        """Apply a status change for one provider and publish the snapshot."""
        async with self._lock:
            if provider_id == self._state.provider_a.provider_id:
                side = "provider_a"
            elif provider_id == self._state.provider_b.provider_id:
                side = "provider_b"
            else:
                raise ValueError(
                    f"Provider '{provider_id}' is not part of request {self._state.request_id}"
                )

            current: ProviderProgress = getattr(self._state, side)
            if current.status.is_terminal:
                return self._state

            changes: dict[str, Any] = {"status": status}
            if progress is not None:
                changes["progress"] = max(0.0, min(100.0, progress))
            if stage is not None:
                changes["stage"] = stage
            if attempt is not None:
                changes["attempt"] = attempt
            if error is not None:
                changes["error"] = error

            self._state = self._state.model_copy(
                update={side: current.model_copy(update=changes)}
            )
            await self._emitter.publish(self._state.request_id, self._state)
            return self._state
