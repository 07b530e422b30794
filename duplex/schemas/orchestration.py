"""Orchestration schemas: requests, results, retry policy, engine config.

An OrchestrationRequest is immutable once submitted. An
OrchestrationResult is the terminal artifact of one orchestrate() call.
EngineConfig is loaded from defaults.toml and may be overridden by CLI
flags.
"""

from __future__ import annotations

import uuid
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from duplex.schemas.domains import Domain
from duplex.schemas.provider import OutputItem, ProviderOutput
from duplex.schemas.quality import CrossValidationReport

# Upper bound on a single backoff delay
BACKOFF_CAP_MS = 30_000


class JitterKind(StrEnum):
    """Jitter applied on top of the exponential backoff."""

    FULL = "full"
    NONE = "none"


class RetryPolicy(BaseModel):
    """Bounded retry policy for a single provider call."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, le=10, description="Total attempts, not retries")
    base_backoff_ms: int = Field(default=1000, ge=0, description="Base backoff in milliseconds")
    jitter: JitterKind = Field(default=JitterKind.FULL, description="Jitter strategy")
    timeout_seconds: float = Field(
        default=120.0, gt=0.0, description="Timeout for each individual attempt"
    )
    cap_ms: int = Field(default=BACKOFF_CAP_MS, ge=0, le=BACKOFF_CAP_MS)


class OrchestrationRequest(BaseModel):
    """A dual-provider generation request."""

    model_config = ConfigDict(frozen=True)

    domain: Domain = Field(description="Which generative domain this request targets")
    payload: dict[str, Any] = Field(default_factory=dict, description="Domain payload")
    provider_a: str = Field(min_length=1, description="Provider in the primary position")
    provider_b: str = Field(min_length=1, description="Provider in the secondary position")
    enable_cross_validation: bool = Field(default=True)
    preferred_provider: str | None = Field(
        default=None, description="Provider to select when no cross-validation runs"
    )
    request_id: str = Field(default_factory=lambda: f"req-{uuid.uuid4().hex[:12]}")

    @model_validator(mode="after")
    def _check_providers(self) -> OrchestrationRequest:
        if self.provider_a == self.provider_b:
            raise ValueError("provider_a and provider_b must be different providers")
        if self.preferred_provider and self.preferred_provider not in (
            self.provider_a, self.provider_b,
        ):
            raise ValueError(
                f"preferred_provider '{self.preferred_provider}' is neither "
                f"provider_a nor provider_b"
            )
        return self


class MetricsComparison(BaseModel):
    """Side-by-side auxiliary metrics when both providers succeeded."""

    model_config = ConfigDict(frozen=True)

    provider_a: dict[str, float] = Field(default_factory=dict)
    provider_b: dict[str, float] = Field(default_factory=dict)
    combined: dict[str, float] = Field(default_factory=dict)


class OrchestrationResult(BaseModel):
    """Terminal artifact of one orchestration call. Never mutated."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    domain: Domain
    primary: ProviderOutput = Field(description="Output of the selected provider")
    secondary: ProviderOutput | None = Field(
        default=None, description="Output of the other provider, when it succeeded"
    )
    consensus: list[OutputItem] = Field(
        default_factory=list,
        description="Merged item list; not attributed to either provider",
    )
    selected_provider: str
    selection_reason: str
    cross_validation: CrossValidationReport | None = None
    metrics_comparison: MetricsComparison | None = None
    failover_occurred: bool = False
    failed_provider: str | None = None
    total_latency_ms: float = Field(default=0.0, ge=0.0)


class EngineConfig(BaseModel):
    """Top-level engine configuration.

    Loaded from defaults.toml and overridden by CLI flags.
    """

    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    enable_cross_validation: bool = Field(
        default=True, description="Global switch; requests must also opt in"
    )
    max_consensus_items: int = Field(default=5, ge=1, le=50)
    health_timeout_seconds: float = Field(default=10.0, gt=0.0)
    max_subscribers: int = Field(
        default=256, ge=1, description="Bound on concurrently tracked progress subscribers"
    )
    default_provider: str = Field(default="", description="Primary for single-provider fallback")
    fallback_provider: str = Field(default="", description="Secondary for single-provider fallback")
    persist_results: bool = Field(default=True)
    history_db_path: str = Field(default="~/.duplex/history.db")
