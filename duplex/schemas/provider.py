"""Provider-facing schemas.

Defines provider configuration (loaded from providers.toml), the health
snapshot every provider reports, the pre-dispatch validation result, and
the ProviderOutput envelope produced by a successful generate() call.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from duplex.schemas.domains import Domain


class HealthStatus(StrEnum):
    """Coarse provider availability."""

    UP = "UP"
    DEGRADED = "DEGRADED"
    DOWN = "DOWN"


class ProviderKind(StrEnum):
    """Which adapter class backs a configured provider."""

    LITELLM = "litellm"
    LITELLM_IMAGE = "litellm_image"
    LITELLM_SPEECH = "litellm_speech"
    STATIC = "static"


class ProviderConfig(BaseModel):
    """Configuration for a single provider in the registry.

    Loaded from providers.toml. The table key becomes provider_id.
    """

    provider_id: str = Field(description="Registry key, e.g. 'llama3' or 'gemini-casting'")
    kind: ProviderKind = Field(description="Adapter class backing this provider")
    domain: Domain = Field(description="Domain this provider generates for")
    model: str = Field(default="", description="LiteLLM model identifier")
    display_name: str = Field(default="", description="Human-friendly name for CLI output")
    api_key_env: str = Field(
        default="", description="Environment variable holding the API key (empty = none needed)"
    )
    api_base: str = Field(default="", description="Custom API base URL (empty = provider default)")
    timeout: int = Field(default=120, gt=0, description="Per-call timeout in seconds")
    max_retries: int = Field(default=3, ge=1, le=10, description="Max attempts per call")
    base_backoff_ms: int = Field(default=1000, ge=0, description="Base backoff in milliseconds")
    options: dict[str, Any] = Field(
        default_factory=dict, description="Adapter-specific extras (voice, size, canned outputs)"
    )

    @property
    def label(self) -> str:
        """Display name, falling back to the provider id."""
        return self.display_name or self.provider_id


class ProviderHealth(BaseModel):
    """A freshly computed health snapshot. Never persisted."""

    status: HealthStatus = Field(description="Availability status")
    latency_ms: float | None = Field(default=None, ge=0.0, description="Probe latency")
    version: str | None = Field(default=None, description="Adapter or model version")
    details: dict[str, Any] = Field(default_factory=dict, description="Diagnostic payload")
    checked_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When the probe ran"
    )


class ValidationResult(BaseModel):
    """Outcome of a provider's pure, pre-dispatch request validation."""

    valid: bool = Field(description="Whether the request can be dispatched")
    errors: list[str] = Field(default_factory=list, description="Human-readable problems")


class OutputItem(BaseModel):
    """One artifact in a provider output (an actor, an image, an audio clip).

    ``name`` is the identity used for cross-provider comparison and
    deduplication; it is compared lower-cased.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Identity text: actor name, asset URL, ...")
    confidence: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Provider confidence, if reported"
    )
    attributes: dict[str, Any] = Field(
        default_factory=dict, description="Domain-specific item fields"
    )

    @property
    def key(self) -> str:
        """Canonical identity for matching items across providers."""
        return self.name.strip().lower()


class ProviderOutput(BaseModel):
    """Everything one successful provider invocation produced."""

    model_config = ConfigDict(frozen=True)

    provider_id: str = Field(description="Provider that produced this output")
    items: list[OutputItem] = Field(default_factory=list, description="Generated artifacts")
    metrics: dict[str, float] = Field(
        default_factory=dict,
        description="Auxiliary dimensions in [0,1] (e.g. diversity breakdown)",
    )
    summary: str = Field(default="", description="Analysis or reasoning text")
    model: str = Field(default="", description="Model that generated the output")
    latency_ms: float = Field(default=0.0, ge=0.0, description="Provider call latency")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When the output was produced"
    )
    warnings: list[str] = Field(default_factory=list, description="Non-fatal provider warnings")
    raw: Any = Field(default=None, description="Opaque provider payload", exclude=True)
