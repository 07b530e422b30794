"""Tests for the duplex demo module."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from duplex.cli import app
from duplex.demo import DEMO_OUTPUT_A, DEMO_OUTPUT_B, build_demo_orchestrator, run_demo
from duplex.schemas.quality import Recommendation

runner = CliRunner(env={"NO_COLOR": "1", "COLUMNS": "200"})

# Skip the scripted backoff wait
_SLEEP = "duplex.retry.asyncio.sleep"


def _json_from(output: str) -> dict:
    # Older Click mixes stderr log lines into stdout
    return json.loads(output[output.index("{"):])


class TestDemoFixtures:
    def test_outputs_overlap_on_one_actor(self):
        names_a = {item.key for item in DEMO_OUTPUT_A.items}
        names_b = {item.key for item in DEMO_OUTPUT_B.items}
        assert names_a & names_b == {"rebecca ferguson"}

    def test_orchestrator_has_two_casting_providers(self):
        orchestrator = build_demo_orchestrator()
        assert orchestrator.registry.ids == ["demo-llama", "demo-gemini"]


class TestRunDemo:
    @pytest.mark.asyncio
    async def test_quiet_run(self):
        console = Console(record=True)
        with patch(_SLEEP):
            result = await run_demo(console, quiet=True)

        report = result.cross_validation
        assert report.recommendation == Recommendation.MANUAL_REVIEW
        assert report.agreement.overlap_count == 1
        assert report.agreement.similarity == pytest.approx(0.2)
        assert result.selected_provider == "demo-gemini"
        assert result.selection_reason == "Selected based on diversity metrics (manual_review)"
        assert not result.failover_occurred
        assert len(result.consensus) == 5
        assert result.consensus[0].name == "Rebecca Ferguson"
        assert console.export_text() == ""

    @pytest.mark.asyncio
    async def test_rendered_run(self):
        console = Console(record=True, width=160)
        with patch(_SLEEP):
            await run_demo(console)
        text = console.export_text()
        assert "Duplex demo" in text
        assert "Orchestration Result" in text
        assert "Cross-Validation" in text
        assert "manual_review" in text


class TestDemoCommand:
    def test_json_output(self):
        with patch(_SLEEP):
            result = runner.invoke(app, ["demo", "--json"])
        assert result.exit_code == 0, result.output
        data = _json_from(result.stdout)
        assert data["selected_provider"] == "demo-gemini"
        assert data["cross_validation"]["recommendation"] == "manual_review"
