"""Tests for duplex.cli_display — Rich rendering of results and listings."""

from __future__ import annotations

from datetime import UTC, datetime

from rich.console import Console

from duplex.cli_display import (
    format_progress,
    recommendation_style,
    render_health,
    render_history,
    render_result,
)
from duplex.schemas.domains import Domain
from duplex.schemas.history import HistorySummary
from duplex.schemas.orchestration import OrchestrationResult
from duplex.schemas.progress import ProgressState, ProviderProgress, ProviderStatus
from duplex.schemas.provider import HealthStatus, OutputItem, ProviderOutput
from duplex.schemas.quality import (
    Agreement,
    CrossValidationReport,
    ProviderAssessment,
    Recommendation,
)


def _make_console() -> Console:
    return Console(record=True, width=160)


def _make_result(**overrides) -> OrchestrationResult:
    fields = {
        "request_id": "req-abc123",
        "domain": Domain.CASTING,
        "primary": ProviderOutput(provider_id="gemini"),
        "consensus": [OutputItem(name="Ruth Negga", confidence=0.85), OutputItem(name="Rinko Kikuchi")],
        "selected_provider": "gemini",
        "selection_reason": "Selected based on diversity metrics (manual_review)",
        "total_latency_ms": 1234.0,
    }
    fields.update(overrides)
    return OrchestrationResult(**fields)


def _make_report() -> CrossValidationReport:
    return CrossValidationReport(
        request_id="req-abc123",
        provider_a=ProviderAssessment(provider_id="llama3", quality_score=0.8, secondary_score=0.7),
        provider_b=ProviderAssessment(provider_id="gemini", quality_score=0.82, secondary_score=0.8),
        agreement=Agreement(overlap_count=1, similarity=0.2, alignment=0.92),
        recommendation=Recommendation.MANUAL_REVIEW,
        confidence=0.5,
        issues=["Low agreement between providers"],
    )


class TestRecommendationStyle:
    def test_known_values(self):
        assert recommendation_style("merge") == "bold cyan"
        assert recommendation_style("manual_review") == "bold yellow"

    def test_unknown_value(self):
        assert recommendation_style("") == "white"


class TestFormatProgress:
    def test_line(self):
        state = ProgressState(
            request_id="req-1",
            provider_a=ProviderProgress(provider_id="llama3", status=ProviderStatus.SUCCEEDED, progress=100),
            provider_b=ProviderProgress(provider_id="gemini", status=ProviderStatus.RUNNING, progress=40),
        )
        line = format_progress(state)
        assert "70%" in line
        assert "llama3 succeeded 100%" in line
        assert "gemini running 40%" in line


class TestRenderResult:
    def test_with_cross_validation(self):
        console = _make_console()
        render_result(console, _make_result(cross_validation=_make_report()))
        text = console.export_text()
        assert "req-abc123 (casting)" in text
        assert "Consensus (2 items)" in text
        assert "0.85" in text
        assert "manual_review" in text
        assert "similarity 0.20" in text
        assert "Low agreement between providers" in text

    def test_failover(self):
        console = _make_console()
        render_result(console, _make_result(failover_occurred=True, failed_provider="llama3"))
        text = console.export_text()
        assert "Failover: llama3 failed" in text
        assert "Cross-Validation" not in text

    def test_empty_consensus(self):
        console = _make_console()
        render_result(console, _make_result(consensus=[]))
        assert "Consensus" not in console.export_text()


class TestRenderHealth:
    def test_table(self):
        console = _make_console()
        render_health(console, {"llama3": HealthStatus.UP, "sdxl": HealthStatus.DOWN})
        text = console.export_text()
        assert "llama3" in text
        assert "DOWN" in text


class TestRenderHistory:
    def test_table(self):
        console = _make_console()
        render_history(console, [
            HistorySummary(
                request_id="req-abc123",
                domain=Domain.IMAGE,
                stored_at=datetime(2026, 3, 1, 9, 30, tzinfo=UTC),
                selected_provider="sdxl",
                failover_occurred=True,
                consensus_count=1,
                total_latency_ms=800.0,
            ),
        ])
        text = console.export_text()
        assert "History (1 shown)" in text
        assert "sdxl (failover)" in text
        assert "2026-03-01 09:30" in text
        assert "800ms" in text
