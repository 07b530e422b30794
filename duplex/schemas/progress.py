"""Progress schemas for in-flight orchestration requests."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ProviderStatus(StrEnum):
    """Lifecycle of one provider's side of a request."""

    QUEUED = "queued"
    IDLE = "idle"
    RUNNING = "running"
    ANALYZING = "analyzing"
    MATCHING = "matching"
    VALIDATING = "validating"
    SUCCEEDED = "succeeded"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = {
    ProviderStatus.SUCCEEDED,
    ProviderStatus.COMPLETE,
    ProviderStatus.FAILED,
    ProviderStatus.CANCELLED,
}


class ProviderProgress(BaseModel):
    """Progress of one provider within a request."""

    provider_id: str
    status: ProviderStatus = ProviderStatus.QUEUED
    stage: str = Field(default="Queued", description="Human-readable stage label")
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    attempt: int = Field(default=0, ge=0)
    error: dict[str, Any] | None = None


class ProgressState(BaseModel):
    """Snapshot of both providers' progress for one request.

    Provider A owns the lower half of the overall bar (0-50) and
    provider B the upper half (50-100).
    """

    request_id: str
    provider_a: ProviderProgress
    provider_b: ProviderProgress

    @property
    def overall(self) -> float:
        """Overall progress: A rescaled to [0,50] plus B's half."""
        return self.provider_a.progress / 2 + self.provider_b.progress / 2

    @property
    def done(self) -> bool:
        return self.provider_a.status.is_terminal and self.provider_b.status.is_terminal
