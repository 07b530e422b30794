"""Abstract base class for all generative providers.

Defines the GenerativeProvider capability contract every backend must
satisfy. The orchestrator interacts exclusively through this interface:
new providers are added by subclassing, never by changing the
orchestrator.
"""

from __future__ import annotations

import inspect
import logging
import os
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from duplex.errors import ErrorKind, ProviderError
from duplex.schemas.domains import Domain, payload_errors
from duplex.schemas.orchestration import OrchestrationRequest, RetryPolicy
from duplex.schemas.progress import ProviderStatus
from duplex.schemas.provider import (
    HealthStatus,
    ProviderConfig,
    ProviderHealth,
    ProviderOutput,
    ValidationResult,
)

logger = logging.getLogger(__name__)

# Stage callback: (status, progress 0-100, stage label)
StageCallback = Callable[[ProviderStatus, float, str], Awaitable[None] | None]


class GenerativeProvider(ABC):
    """Abstract interface for one generative backend.

    Constructed from a ProviderConfig loaded from providers.toml. Exposes
    identity and the init / validate / generate / health / dispose
    lifecycle. Only generate() must be implemented by subclasses.
    """

    version: str = "1.0"

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        self._initialized = False

    # ── Identity ──────────────────────────────────────────────

    @property
    def provider_id(self) -> str:
        """Registry key for this provider."""
        return self._config.provider_id

    @property
    def display_name(self) -> str:
        """Human-friendly provider name for CLI output."""
        return self._config.label

    @property
    def domain(self) -> Domain:
        """Domain this provider generates for."""
        return self._config.domain

    @property
    def config(self) -> ProviderConfig:
        """The full ProviderConfig backing this provider."""
        return self._config

    @property
    def api_key(self) -> str:
        """API key resolved from the configured environment variable."""
        if not self._config.api_key_env:
            return ""
        return os.environ.get(self._config.api_key_env, "")

    @property
    def initialized(self) -> bool:
        return self._initialized

    def retry_policy(self, defaults: RetryPolicy | None = None) -> RetryPolicy:
        """Retry policy for this provider.

        Starts from the engine defaults and applies only the retry fields
        this provider's configuration sets explicitly.
        """
        policy = defaults or RetryPolicy()
        explicit = self._config.model_fields_set
        overrides: dict[str, object] = {}
        if "max_retries" in explicit:
            overrides["max_attempts"] = self._config.max_retries
        if "base_backoff_ms" in explicit:
            overrides["base_backoff_ms"] = self._config.base_backoff_ms
        if "timeout" in explicit:
            overrides["timeout_seconds"] = float(self._config.timeout)
        return policy.model_copy(update=overrides)

    # ── Lifecycle ─────────────────────────────────────────────

    async def init(self, config: ProviderConfig | None = None) -> None:
        """Initialize the provider, optionally replacing its configuration.

        Raises:
            ProviderError: VALIDATION kind when the credential environment
                variable named by api_key_env is unset.
        """
        if config is not None:
            self._config = config
        key_env = self._config.api_key_env
        if key_env and not os.environ.get(key_env):
            raise ProviderError(
                f"Missing credentials for {self.display_name}: set {key_env}",
                code="MISSING_CREDENTIALS",
                kind=ErrorKind.VALIDATION,
                provider_id=self.provider_id,
            )
        self._initialized = True
        logger.debug("Provider %s initialized", self.provider_id)

    def validate(self, request: OrchestrationRequest) -> ValidationResult:
        """Check a request before dispatch. Pure, no I/O."""
        errors: list[str] = []
        if request.domain != self.domain:
            errors.append(
                f"{self.provider_id} serves '{self.domain.value}' requests, "
                f"not '{request.domain.value}'"
            )
        else:
            errors.extend(payload_errors(request.domain, request.payload))
        return ValidationResult(valid=not errors, errors=errors)

    @abstractmethod
    async def generate(
        self,
        request: OrchestrationRequest,
        *,
        on_stage: StageCallback | None = None,
    ) -> ProviderOutput:
        """Produce an output for the request.

        Args:
            request: The orchestration request (domain + payload).
            on_stage: Optional callback for intermediate stage progress.

        Returns:
            A ProviderOutput whose provider_id is this provider's id.

        Raises:
            ProviderError: Classified failure (kind + retryability).
        """

    async def health(self) -> ProviderHealth:
        """Return a fresh health snapshot.

        The default probe is local: DOWN when not initialized, UP
        otherwise. Subclasses with a cheap remote probe should override.
        """
        start = time.monotonic()
        if not self._initialized:
            return ProviderHealth(
                status=HealthStatus.DOWN,
                details={"reason": "Not initialized"},
            )
        return ProviderHealth(
            status=HealthStatus.UP,
            latency_ms=(time.monotonic() - start) * 1000,
            version=self.version,
            details={
                "model": self._config.model,
                "max_retries": self._config.max_retries,
                "timeout": self._config.timeout,
            },
        )

    async def dispose(self) -> None:
        """Release provider resources. Safe to call when never initialized."""
        self._initialized = False

    async def _report(
        self,
        on_stage: StageCallback | None,
        status: ProviderStatus,
        progress: float,
        stage: str,
    ) -> None:
        """Forward an intermediate stage to the orchestrator, if listening."""
        if on_stage is None:
            return
        result = on_stage(status, progress, stage)
        if inspect.isawaitable(result):
            await result
