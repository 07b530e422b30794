"""Error taxonomy for the Duplex orchestration engine.

Every provider failure is expressed as a ProviderError carrying a kind
(what went wrong) and a retryability classification (whether the retry
executor may try again). Arbitrary exceptions raised by provider SDKs are
mapped onto the taxonomy by classify_exception().
"""

from __future__ import annotations

import re
import uuid
from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    """What class of failure a provider call hit."""

    VALIDATION = "VALIDATION"
    TRANSPORT = "TRANSPORT"
    RATE_LIMIT = "RATE_LIMIT"
    PROVIDER = "PROVIDER"
    TIMEOUT = "TIMEOUT"
    QUOTA = "QUOTA"
    INTERNAL = "INTERNAL"


class Retryable(StrEnum):
    """Whether a failed call may be attempted again."""

    NO = "NO"
    YES = "YES"
    AFTER_BACKOFF = "AFTER_BACKOFF"


# Default retryability for each kind. PROVIDER errors are transient
# (model loading, 5xx) unless the provider says otherwise.
DEFAULT_RETRYABILITY: dict[ErrorKind, Retryable] = {
    ErrorKind.VALIDATION: Retryable.NO,
    ErrorKind.TRANSPORT: Retryable.YES,
    ErrorKind.RATE_LIMIT: Retryable.AFTER_BACKOFF,
    ErrorKind.PROVIDER: Retryable.AFTER_BACKOFF,
    ErrorKind.TIMEOUT: Retryable.YES,
    ErrorKind.QUOTA: Retryable.NO,
    ErrorKind.INTERNAL: Retryable.NO,
}


class DuplexError(Exception):
    """Base exception for all application-specific errors."""


class ConfigError(DuplexError):
    """Raised when provider or engine configuration is invalid."""


class ProviderError(DuplexError):
    """A classified failure raised by (or on behalf of) a provider.

    Attributes:
        code: Short machine-readable code (e.g. 'RATE_LIMITED').
        kind: The ErrorKind bucket.
        retryable: Retryability classification used by the retry executor.
        provider_id: Provider that produced the error, when known.
        correlation_id: Identifier for matching log lines to this failure.
        details: Free-form diagnostic payload.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "PROVIDER_ERROR",
        kind: ErrorKind = ErrorKind.INTERNAL,
        retryable: Retryable | None = None,
        provider_id: str | None = None,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.kind = kind
        self.retryable = retryable if retryable is not None else DEFAULT_RETRYABILITY[kind]
        self.provider_id = provider_id
        self.correlation_id = correlation_id or uuid.uuid4().hex[:12]
        self.details = details or {}

    @property
    def is_retryable(self) -> bool:
        """Whether the retry executor may attempt the call again."""
        return self.retryable != Retryable.NO

    def to_dict(self) -> dict[str, Any]:
        """Serializable view used in progress updates and logs."""
        return {
            "code": self.code,
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable.value,
            "provider_id": self.provider_id,
            "correlation_id": self.correlation_id,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"ProviderError(code={self.code!r}, kind={self.kind.value}, "
            f"retryable={self.retryable.value}, message={self.message!r})"
        )


class ProviderNotFoundError(ProviderError):
    """Raised when a request names a provider that is not registered."""

    def __init__(self, provider_id: str) -> None:
        super().__init__(
            f"Provider '{provider_id}' is not registered",
            code="PROVIDER_NOT_FOUND",
            kind=ErrorKind.VALIDATION,
            provider_id=provider_id,
        )


class BothProvidersFailedError(DuplexError):
    """Terminal failure: neither provider produced an output.

    Carries both underlying causes so callers can report each side.
    """

    def __init__(
        self,
        provider_a: str,
        error_a: BaseException,
        provider_b: str,
        error_b: BaseException,
    ) -> None:
        super().__init__(
            f"Both providers failed: {provider_a}: {error_a}; {provider_b}: {error_b}"
        )
        self.provider_a = provider_a
        self.error_a = error_a
        self.provider_b = provider_b
        self.error_b = error_b

    @property
    def errors(self) -> dict[str, BaseException]:
        """Provider id → underlying exception."""
        return {self.provider_a: self.error_a, self.provider_b: self.error_b}


_STATUS_RE = re.compile(r"\b(400|429|503)\b")


def _kind_from_message(message: str) -> ErrorKind:
    """Bucket an untyped error by the text of its message."""
    text = message.lower()
    codes = set(_STATUS_RE.findall(text))
    if "rate limit" in text or "rate limited" in text or "429" in codes:
        return ErrorKind.RATE_LIMIT
    if "timeout" in text or "timed out" in text:
        return ErrorKind.TIMEOUT
    if "503" in codes or "loading" in text or "unavailable" in text or "overloaded" in text:
        return ErrorKind.PROVIDER
    if "network" in text or "connection" in text or "fetch failed" in text:
        return ErrorKind.TRANSPORT
    if "bad request" in text or "400" in codes or "invalid" in text:
        return ErrorKind.VALIDATION
    if "quota" in text or "exceeded" in text or "insufficient" in text:
        return ErrorKind.QUOTA
    return ErrorKind.INTERNAL


def classify_exception(exc: BaseException, provider_id: str | None = None) -> ProviderError:
    """Map any exception onto a ProviderError.

    ProviderErrors pass through unchanged (the provider id is filled in
    when missing). Timeouts and connection errors are recognised by type;
    everything else falls back to message inspection.
    """
    if isinstance(exc, ProviderError):
        if exc.provider_id is None:
            exc.provider_id = provider_id
        return exc

    if isinstance(exc, TimeoutError):
        kind = ErrorKind.TIMEOUT
        code = "TIMEOUT"
    elif isinstance(exc, ConnectionError):
        kind = ErrorKind.TRANSPORT
        code = "TRANSPORT_ERROR"
    else:
        kind = _kind_from_message(str(exc))
        code = f"{kind.value}_ERROR"

    message = str(exc) or type(exc).__name__
    error = ProviderError(
        message,
        code=code,
        kind=kind,
        provider_id=provider_id,
        details={"exception_type": type(exc).__name__},
    )
    error.__cause__ = exc
    return error
