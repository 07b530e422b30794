"""LiteLLM media adapters: image generation and speech synthesis.

Both adapters make a single LiteLLM call per generate() and wrap the
returned assets as OutputItems. Errors go through the same LiteLLM
mapping as the completion adapter.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import time
from typing import Any

import litellm

from duplex.errors import ErrorKind, ProviderError
from duplex.providers.base import GenerativeProvider, StageCallback
from duplex.providers.litellm_provider import map_litellm_error
from duplex.schemas.domains import AudioPayload, ImagePayload
from duplex.schemas.orchestration import OrchestrationRequest
from duplex.schemas.progress import ProviderStatus
from duplex.schemas.provider import OutputItem, ProviderOutput, ValidationResult

logger = logging.getLogger(__name__)

# Bytes per second used to estimate clip duration from file size
_BYTES_PER_SECOND: dict[str, int] = {
    "audio/wav": 32_000,   # 16 kHz, 16-bit mono
    "audio/mpeg": 16_000,  # 128 kbps
}
_DEFAULT_DURATION_MS = 5000

# LiteLLM speech response_format for each MIME type
_SPEECH_FORMATS: dict[str, str] = {
    "audio/wav": "wav",
    "audio/mpeg": "mp3",
    "audio/ogg": "opus",
    "audio/webm": "opus",
}


def estimate_duration_ms(size_bytes: int, content_type: str) -> int:
    """Rough clip duration from its encoded size."""
    rate = _BYTES_PER_SECOND.get(content_type)
    if rate is None:
        return _DEFAULT_DURATION_MS
    return round(size_bytes / rate * 1000)


class LiteLLMImageProvider(GenerativeProvider):
    """Image generation via litellm.aimage_generation()."""

    async def generate(
        self,
        request: OrchestrationRequest,
        *,
        on_stage: StageCallback | None = None,
    ) -> ProviderOutput:
        start = time.monotonic()
        payload = ImagePayload.model_validate(request.payload)

        await self._report(on_stage, ProviderStatus.RUNNING, 20, "Submitting prompt")
        prompt = payload.prompt
        if payload.style:
            prompt = f"{prompt}, {payload.style} style"
        if payload.negative_prompt:
            prompt = f"{prompt}. Avoid: {payload.negative_prompt}"

        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "prompt": prompt,
            "n": payload.num_images,
            "size": f"{payload.width}x{payload.height}",
            "timeout": float(self._config.timeout),
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base

        try:
            response = await litellm.aimage_generation(**kwargs)
        except Exception as e:
            raise map_litellm_error(e, self.provider_id) from e

        await self._report(on_stage, ProviderStatus.VALIDATING, 90, "Collecting images")
        items: list[OutputItem] = []
        for image in getattr(response, "data", None) or []:
            url = getattr(image, "url", None)
            b64 = getattr(image, "b64_json", None)
            if not url and b64:
                url = f"data:image/png;base64,{b64}"
            if not url:
                continue
            items.append(OutputItem(
                name=url,
                attributes={
                    "width": payload.width,
                    "height": payload.height,
                    "revised_prompt": getattr(image, "revised_prompt", None) or "",
                },
            ))

        if not items:
            raise ProviderError(
                "Image provider returned no images",
                code="EMPTY_OUTPUT",
                kind=ErrorKind.PROVIDER,
                provider_id=self.provider_id,
            )

        return ProviderOutput(
            provider_id=self.provider_id,
            items=items,
            model=self._config.model,
            latency_ms=(time.monotonic() - start) * 1000,
            raw=response,
        )


class LiteLLMSpeechProvider(GenerativeProvider):
    """Text-to-speech via litellm.aspeech().

    Only the 'tts' audio mode is supported; other modes are rejected at
    validation time.
    """

    def validate(self, request: OrchestrationRequest) -> ValidationResult:
        result = super().validate(request)
        if result.valid and request.payload.get("mode") != "tts":
            return ValidationResult(
                valid=False, errors=[f"{self.provider_id} only supports mode 'tts'"],
            )
        return result

    async def generate(
        self,
        request: OrchestrationRequest,
        *,
        on_stage: StageCallback | None = None,
    ) -> ProviderOutput:
        start = time.monotonic()
        payload = AudioPayload.model_validate(request.payload)

        await self._report(on_stage, ProviderStatus.RUNNING, 20, "Synthesizing speech")
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "input": payload.text,
            "voice": payload.voice or self._config.options.get("voice", "alloy"),
            "response_format": _SPEECH_FORMATS[payload.format],
            "timeout": float(self._config.timeout),
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base

        try:
            response = await litellm.aspeech(**kwargs)
        except Exception as e:
            raise map_litellm_error(e, self.provider_id) from e

        audio: bytes = getattr(response, "content", b"") or b""
        if not audio:
            raise ProviderError(
                "Speech provider returned an empty clip",
                code="EMPTY_OUTPUT",
                kind=ErrorKind.PROVIDER,
                provider_id=self.provider_id,
            )

        await self._report(on_stage, ProviderStatus.VALIDATING, 90, "Encoding clip")
        digest = hashlib.sha256(audio).hexdigest()
        encoded = base64.b64encode(audio).decode("ascii")
        sample_rate = int(self._config.options.get("sample_rate_hz", 24_000))
        item = OutputItem(
            name=f"sha256:{digest}",
            attributes={
                "data_base64": encoded,
                "content_type": payload.format,
                "content_length_bytes": len(audio),
                "sha256": digest,
                "duration_ms": estimate_duration_ms(len(audio), payload.format),
                "sample_rate_hz": sample_rate,
                "voice": kwargs["voice"],
            },
        )
        return ProviderOutput(
            provider_id=self.provider_id,
            items=[item],
            model=self._config.model,
            latency_ms=(time.monotonic() - start) * 1000,
            raw=audio,
        )
