"""Rich display components for the Duplex CLI.

Renders orchestration results, live progress lines, health snapshots
and history listings.
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from duplex.schemas.history import HistorySummary
from duplex.schemas.orchestration import OrchestrationResult
from duplex.schemas.progress import ProgressState, ProviderProgress
from duplex.schemas.provider import HealthStatus

_RECOMMENDATION_STYLES = {
    "use_a": "bold green",
    "use_b": "bold green",
    "merge": "bold cyan",
    "manual_review": "bold yellow",
}

_HEALTH_STYLES = {
    HealthStatus.UP: "green",
    HealthStatus.DEGRADED: "yellow",
    HealthStatus.DOWN: "red",
}


def recommendation_style(recommendation: str) -> str:
    """Return a Rich style string for a recommendation value."""
    return _RECOMMENDATION_STYLES.get(recommendation, "white")


def _side_text(side: ProviderProgress) -> str:
    return f"{side.provider_id} {side.status.value} {side.progress:.0f}%"


def format_progress(state: ProgressState) -> str:
    """One-line progress summary used for the status spinner."""
    return (
        f"[bold blue]{state.overall:.0f}%[/bold blue]  "
        f"{_side_text(state.provider_a)} · {_side_text(state.provider_b)}"
    )


def render_result(console: Console, result: OrchestrationResult) -> None:
    """Print the selection panel, consensus table and cross-validation."""
    lines = [
        f"[bold]Request:[/bold] {result.request_id} ({result.domain.value})",
        f"[bold]Selected:[/bold] [cyan]{result.selected_provider}[/cyan]",
        f"[bold]Reason:[/bold] {result.selection_reason}",
        f"[bold]Latency:[/bold] {result.total_latency_ms:.0f}ms",
    ]
    if result.failover_occurred:
        lines.append(f"[yellow]Failover:[/yellow] {result.failed_provider} failed")
    border = "yellow" if result.failover_occurred else "green"
    console.print(Panel("\n".join(lines), title="Orchestration Result", border_style=border))

    if result.consensus:
        table = Table(title=f"Consensus ({len(result.consensus)} items)")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Item", style="bold", max_width=60)
        table.add_column("Confidence", justify="right")
        for index, item in enumerate(result.consensus, start=1):
            confidence = "-" if item.confidence is None else f"{item.confidence:.2f}"
            table.add_row(str(index), item.name, confidence)
        console.print(table)

    report = result.cross_validation
    if report is not None:
        table = Table(title="Cross-Validation", show_header=False, show_lines=True)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row(
            "Recommendation",
            Text(report.recommendation.value, style=recommendation_style(report.recommendation)),
        )
        table.add_row("Confidence", f"{report.confidence:.2f}")
        table.add_row(
            "Quality",
            f"{report.provider_a.provider_id} {report.provider_a.quality_score:.2f} · "
            f"{report.provider_b.provider_id} {report.provider_b.quality_score:.2f}",
        )
        table.add_row(
            "Diversity",
            f"{report.provider_a.provider_id} {report.provider_a.secondary_score:.2f} · "
            f"{report.provider_b.provider_id} {report.provider_b.secondary_score:.2f}",
        )
        table.add_row(
            "Agreement",
            f"overlap {report.agreement.overlap_count}, "
            f"similarity {report.agreement.similarity:.2f}, "
            f"alignment {report.agreement.alignment:.2f}",
        )
        if report.issues:
            table.add_row("Issues", "\n".join(report.issues))
        console.print(table)


def render_health(console: Console, statuses: dict[str, HealthStatus]) -> None:
    table = Table(title="Provider Health")
    table.add_column("Provider", style="bold cyan")
    table.add_column("Status")
    for provider_id, status in sorted(statuses.items()):
        table.add_row(provider_id, Text(status.value, style=_HEALTH_STYLES[status]))
    console.print(table)


def render_history(console: Console, summaries: list[HistorySummary]) -> None:
    table = Table(title=f"History ({len(summaries)} shown)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Domain", style="dim")
    table.add_column("Selected")
    table.add_column("Recommendation")
    table.add_column("Items", justify="right")
    table.add_column("Latency", justify="right")
    table.add_column("Stored", style="dim")

    for s in summaries:
        selected = Text(s.selected_provider)
        if s.failover_occurred:
            selected.append(" (failover)", style="yellow")
        table.add_row(
            s.request_id,
            s.domain.value,
            selected,
            Text(s.recommendation or "-", style=recommendation_style(s.recommendation)),
            str(s.consensus_count),
            f"{s.total_latency_ms:.0f}ms",
            s.stored_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)
