"""Offline demo of a dual-provider casting request.

Two static providers return overlapping casting shortlists. One of them
hits a scripted rate limit first, so the demo shows a retry, both
outputs being cross-validated, and the merged consensus list. No API
keys or network access are needed.
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel

from duplex.cli_display import format_progress, render_result
from duplex.orchestrator import DualProviderOrchestrator
from duplex.providers.registry import ProviderRegistry
from duplex.providers.static import StaticProvider
from duplex.schemas.domains import Domain
from duplex.schemas.orchestration import (
    EngineConfig,
    OrchestrationRequest,
    OrchestrationResult,
    RetryPolicy,
)
from duplex.schemas.provider import OutputItem, ProviderConfig, ProviderOutput

DEMO_PAYLOAD = {
    "character": {
        "name": "Mara Voss",
        "role": "protagonist",
        "age": "35-45",
        "gender": "female",
        "physical_description": "Weathered, watchful, moves like a former athlete",
        "personality_traits": ["guarded", "dry humor", "fiercely loyal"],
        "background": "Ex-naval officer turned salvage captain",
    },
    "project_context": "Prestige maritime thriller, limited series, mid budget",
    "prioritize_diversity": True,
    "max_recommendations": 5,
}

_SUMMARY_A = (
    "Shortlist favors performers with physical presence and restraint. "
    "Rebecca Ferguson and Thandiwe Newton both carry action and interiority; "
    "Michelle Yeoh brings authority for an older reading of the role."
)
_SUMMARY_B = (
    "Candidates balance box-office draw with range in grounded thrillers. "
    "Rebecca Ferguson is the strongest overall fit; Ruth Negga and Rinko "
    "Kikuchi widen the age and background range the part allows."
)

DEMO_OUTPUT_A = ProviderOutput(
    provider_id="demo-llama",
    model="static",
    items=[
        OutputItem(
            name="Rebecca Ferguson",
            confidence=0.88,
            attributes={"notable_roles": ["Mission: Impossible", "Silo"]},
        ),
        OutputItem(
            name="Thandiwe Newton",
            confidence=0.8,
            attributes={"notable_roles": ["Westworld"]},
        ),
        OutputItem(
            name="Michelle Yeoh",
            confidence=0.72,
            attributes={"notable_roles": ["Everything Everywhere All at Once"]},
        ),
    ],
    metrics={"gender_balance": 0.9, "ethnic_diversity": 0.7, "age_range": 0.6, "overall": 0.7},
    summary=_SUMMARY_A,
)

DEMO_OUTPUT_B = ProviderOutput(
    provider_id="demo-gemini",
    model="static",
    items=[
        OutputItem(
            name="Rebecca Ferguson",
            confidence=0.9,
            attributes={"notable_roles": ["Dune", "Silo"]},
        ),
        OutputItem(
            name="Ruth Negga",
            confidence=0.78,
            attributes={"notable_roles": ["Loving", "Preacher"]},
        ),
        OutputItem(
            name="Rinko Kikuchi",
            confidence=0.7,
            attributes={"notable_roles": ["Babel"]},
        ),
    ],
    metrics={"gender_balance": 0.9, "ethnic_diversity": 0.85, "age_range": 0.7, "overall": 0.8},
    summary=_SUMMARY_B,
)


def build_demo_orchestrator() -> DualProviderOrchestrator:
    """Two static casting providers; the second rate-limits once."""
    provider_a = StaticProvider(
        ProviderConfig(provider_id="demo-llama", kind="static", domain=Domain.CASTING,
                       display_name="Demo Llama"),
        output=DEMO_OUTPUT_A,
        delay=0.3,
    )
    provider_b = StaticProvider(
        ProviderConfig(
            provider_id="demo-gemini", kind="static", domain=Domain.CASTING,
            display_name="Demo Gemini", options={"fail_with": ["RATE_LIMIT"]},
        ),
        output=DEMO_OUTPUT_B,
        delay=0.2,
    )
    config = EngineConfig(retry=RetryPolicy(max_attempts=3, base_backoff_ms=250))
    return DualProviderOrchestrator(ProviderRegistry([provider_a, provider_b]), config)


async def run_demo(console: Console, *, quiet: bool = False) -> OrchestrationResult:
    """Run the demo request and return its OrchestrationResult."""
    orchestrator = build_demo_orchestrator()
    await orchestrator.registry.init_all(strict=True)

    request = OrchestrationRequest(
        domain=Domain.CASTING,
        payload=DEMO_PAYLOAD,
        provider_a="demo-llama",
        provider_b="demo-gemini",
    )

    try:
        if quiet:
            return await orchestrator.orchestrate(request)

        console.print(Panel(
            "Casting [bold]Mara Voss[/bold] with two providers at once. "
            "[cyan]demo-gemini[/cyan] is rate-limited on its first attempt and retries.",
            title="Duplex demo",
            border_style="blue",
        ))
        with console.status("[bold blue]Starting...", spinner="dots") as status:
            orchestrator.on_progress(
                request.request_id, lambda state: status.update(format_progress(state)),
            )
            result = await orchestrator.orchestrate(request)
        render_result(console, result)
        return result
    finally:
        await orchestrator.dispose()
