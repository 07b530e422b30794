"""LiteLLM chat-completion adapter implementing the GenerativeProvider contract.

Renders the domain prompt template, calls litellm.acompletion(), and parses
the model's JSON answer into a ProviderOutput. LiteLLM exceptions are
mapped onto the Duplex error taxonomy here; retries are the orchestrator's
job, so every call is a single attempt.
"""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any

import litellm
from pydantic import BaseModel, Field, ValidationError

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from duplex.errors import ErrorKind, ProviderError, Retryable, classify_exception
from duplex.prompts import render_prompt
from duplex.providers.base import GenerativeProvider, StageCallback
from duplex.schemas.domains import Domain, parse_payload
from duplex.schemas.orchestration import OrchestrationRequest
from duplex.schemas.progress import ProviderStatus
from duplex.schemas.provider import OutputItem, ProviderOutput, ValidationResult

logger = logging.getLogger(__name__)

# JSON object inside an optional ```json fence
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n(.*?)\n```", re.DOTALL)

_USER_MESSAGE = "Produce the JSON described in your system instructions."


class _CompletionPayload(BaseModel):
    """Shape of the JSON object a completion model is asked to return."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    metrics: dict[str, Any] = Field(default_factory=dict)
    summary: str = ""


def map_litellm_error(error: Exception, provider_id: str) -> ProviderError:
    """Translate a LiteLLM (or generic) exception into a ProviderError.

    Timeout is checked before APIConnectionError because LiteLLM's
    Timeout derives from the OpenAI connection error.
    """
    message = str(error)
    if isinstance(error, litellm.AuthenticationError):
        kind, code = ErrorKind.VALIDATION, "AUTH_FAILED"
    elif isinstance(error, litellm.BadRequestError):
        kind, code = ErrorKind.VALIDATION, "BAD_REQUEST"
    elif isinstance(error, litellm.RateLimitError):
        if "quota" in message.lower():
            kind, code = ErrorKind.QUOTA, "QUOTA_EXCEEDED"
        else:
            kind, code = ErrorKind.RATE_LIMIT, "RATE_LIMITED"
    elif isinstance(error, (litellm.Timeout, TimeoutError)):
        kind, code = ErrorKind.TIMEOUT, "TIMEOUT"
    elif isinstance(error, (litellm.ServiceUnavailableError, litellm.InternalServerError)):
        kind, code = ErrorKind.PROVIDER, "PROVIDER_UNAVAILABLE"
    elif isinstance(error, litellm.APIConnectionError):
        kind, code = ErrorKind.TRANSPORT, "CONNECTION_ERROR"
    else:
        return classify_exception(error, provider_id)

    mapped = ProviderError(
        message,
        code=code,
        kind=kind,
        provider_id=provider_id,
        details={"exception_type": type(error).__name__},
    )
    mapped.__cause__ = error
    return mapped


def parse_completion(content: str) -> _CompletionPayload:
    """Parse a model answer as JSON, falling back to a fenced block.

    Raises:
        ValueError: If no valid JSON object can be extracted.
    """
    candidates = [content]
    fence = _JSON_FENCE_RE.search(content)
    if fence:
        candidates.append(fence.group(1))

    for candidate in candidates:
        try:
            return _CompletionPayload.model_validate(json.loads(candidate))
        except (json.JSONDecodeError, ValidationError):
            continue
    raise ValueError("Model response did not contain a valid JSON object")


def _clamp(value: Any) -> float | None:
    """Coerce a value to a float in [0, 1], or None if not numeric."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, min(1.0, number))


def _to_item(raw: dict[str, Any]) -> OutputItem | None:
    """Convert one raw JSON item into an OutputItem (None when nameless)."""
    name = raw.get("name") or raw.get("actor_name") or raw.get("actorName")
    if not name:
        return None
    attributes = {
        k: v for k, v in raw.items()
        if k not in ("name", "actor_name", "actorName", "confidence")
    }
    return OutputItem(
        name=str(name),
        confidence=_clamp(raw.get("confidence")),
        attributes=attributes,
    )


class LiteLLMProvider(GenerativeProvider):
    """Completion-backed provider producing ranked item lists.

    Routes calls to any chat model (Llama via Together/Replicate, Gemini,
    OpenAI, ...) through litellm.acompletion(). Serves text-shaped domains
    for which a prompt template exists.
    """

    supported_domains: frozenset[Domain] = frozenset({Domain.CASTING})

    def validate(self, request: OrchestrationRequest) -> ValidationResult:
        result = super().validate(request)
        if request.domain not in self.supported_domains:
            return ValidationResult(
                valid=False,
                errors=[*result.errors, f"{self.provider_id} cannot serve '{request.domain.value}'"],
            )
        return result

    async def generate(
        self,
        request: OrchestrationRequest,
        *,
        on_stage: StageCallback | None = None,
    ) -> ProviderOutput:
        """Render the prompt, call the model, and parse its JSON answer.

        Raises:
            ProviderError: On any LiteLLM failure or unparseable output.
        """
        start = time.monotonic()
        await self._report(on_stage, ProviderStatus.ANALYZING, 10, "Analyzing request")

        payload = parse_payload(request.domain, request.payload)
        system = render_prompt(request.domain.value, **payload.model_dump())
        kwargs = self._build_completion_kwargs(system)

        await self._report(on_stage, ProviderStatus.MATCHING, 30, "Awaiting model")
        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as e:
            raise map_litellm_error(e, self.provider_id) from e

        await self._report(on_stage, ProviderStatus.VALIDATING, 80, "Parsing response")
        content = self._extract_content(response)
        try:
            parsed = parse_completion(content)
        except ValueError as e:
            raise ProviderError(
                str(e),
                code="UNPARSEABLE_OUTPUT",
                kind=ErrorKind.PROVIDER,
                retryable=Retryable.YES,
                provider_id=self.provider_id,
                details={"content_preview": content[:200]},
            ) from e

        items = [item for item in (_to_item(raw) for raw in parsed.items) if item]
        metrics = {
            key: value for key, value in
            ((k, _clamp(v)) for k, v in parsed.metrics.items())
            if value is not None
        }
        warnings = []
        if len(items) < len(parsed.items):
            warnings.append(f"Dropped {len(parsed.items) - len(items)} unnamed item(s)")

        return ProviderOutput(
            provider_id=self.provider_id,
            items=items,
            metrics=metrics,
            summary=parsed.summary,
            model=getattr(response, "model", None) or self._config.model,
            latency_ms=(time.monotonic() - start) * 1000,
            warnings=warnings,
            raw=content,
        )

    def _build_completion_kwargs(self, system: str) -> dict:
        """Build the kwargs dict for litellm.acompletion."""
        kwargs: dict = {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": _USER_MESSAGE},
            ],
            "timeout": float(self._config.timeout),
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base
        temperature = self._config.options.get("temperature")
        if temperature is not None:
            kwargs["temperature"] = temperature
        return kwargs

    def _extract_content(self, response: Any) -> str:
        """Extract text content from a LiteLLM response."""
        if not getattr(response, "choices", None):
            return ""
        message = response.choices[0].message
        return message.content or "" if message else ""
