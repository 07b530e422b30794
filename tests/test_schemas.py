"""Tests for duplex.schemas — request, output and progress models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from duplex.schemas import (
    CastingPayload,
    Domain,
    OrchestrationRequest,
    OutputItem,
    ProgressState,
    ProviderOutput,
    ProviderProgress,
    ProviderStatus,
    QualityMetrics,
    RetryPolicy,
)
from duplex.schemas.domains import payload_errors


def _casting_payload(**overrides) -> dict:
    payload = {
        "character": {"name": "Mara", "role": "protagonist", "age": 40},
        "project_context": "Thriller",
    }
    payload.update(overrides)
    return payload


class TestOrchestrationRequest:
    def test_generates_request_id(self):
        a = OrchestrationRequest(domain=Domain.CASTING, provider_a="x", provider_b="y")
        b = OrchestrationRequest(domain=Domain.CASTING, provider_a="x", provider_b="y")
        assert a.request_id.startswith("req-")
        assert a.request_id != b.request_id

    def test_rejects_same_provider_twice(self):
        with pytest.raises(ValidationError, match="must be different"):
            OrchestrationRequest(domain=Domain.IMAGE, provider_a="x", provider_b="x")

    def test_preferred_must_be_a_or_b(self):
        with pytest.raises(ValidationError, match="neither"):
            OrchestrationRequest(
                domain=Domain.IMAGE, provider_a="x", provider_b="y", preferred_provider="z",
            )

    def test_is_immutable(self):
        request = OrchestrationRequest(domain=Domain.AUDIO, provider_a="x", provider_b="y")
        with pytest.raises(ValidationError):
            request.provider_a = "z"

    def test_cross_validation_defaults_on(self):
        request = OrchestrationRequest(domain=Domain.AUDIO, provider_a="x", provider_b="y")
        assert request.enable_cross_validation is True


class TestOutputItem:
    def test_key_is_canonical(self):
        assert OutputItem(name="  Viola Davis ").key == "viola davis"

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            OutputItem(name="x", confidence=1.5)


class TestProviderOutput:
    def test_raw_not_serialized(self):
        output = ProviderOutput(provider_id="p", raw={"secret": "payload"})
        assert "raw" not in output.model_dump()


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.base_backoff_ms == 1000
        assert policy.cap_ms == 30_000
        assert policy.timeout_seconds == 120.0

    def test_cap_cannot_exceed_30s(self):
        with pytest.raises(ValidationError):
            RetryPolicy(cap_ms=60_000)


class TestProgressState:
    def _state(self, a: float, b: float) -> ProgressState:
        return ProgressState(
            request_id="r",
            provider_a=ProviderProgress(provider_id="a", progress=a),
            provider_b=ProviderProgress(provider_id="b", progress=b),
        )

    def test_a_complete_b_idle_is_half(self):
        assert self._state(100, 0).overall == 50

    def test_both_complete(self):
        assert self._state(100, 100).overall == 100

    def test_b_fills_upper_half(self):
        assert self._state(0, 50).overall == 25

    def test_done_requires_both_terminal(self):
        state = ProgressState(
            request_id="r",
            provider_a=ProviderProgress(provider_id="a", status=ProviderStatus.SUCCEEDED),
            provider_b=ProviderProgress(provider_id="b", status=ProviderStatus.RUNNING),
        )
        assert state.done is False
        finished = state.model_copy(update={
            "provider_b": ProviderProgress(provider_id="b", status=ProviderStatus.FAILED),
        })
        assert finished.done is True


class TestPayloads:
    def test_valid_casting_payload(self):
        assert payload_errors(Domain.CASTING, _casting_payload()) == []
        parsed = CastingPayload.model_validate(_casting_payload())
        assert parsed.max_recommendations == 5

    def test_invalid_casting_role(self):
        payload = _casting_payload(character={"name": "Mara", "role": "hero", "age": 40})
        errors = payload_errors(Domain.CASTING, payload)
        assert errors
        assert any("role" in e for e in errors)

    def test_image_requires_prompt(self):
        assert payload_errors(Domain.IMAGE, {}) != []
        assert payload_errors(Domain.IMAGE, {"prompt": "a lighthouse"}) == []

    def test_audio_duration_bounds(self):
        assert payload_errors(Domain.AUDIO, {"text": "rain", "duration": 0.1}) != []


class TestQualityMetrics:
    def test_frozen(self):
        metrics = QualityMetrics(
            relevance=0.5, diversity=0.5, reasoning=0.5, completeness=0.5, overall=0.5,
        )
        with pytest.raises(ValidationError):
            metrics.overall = 0.9
