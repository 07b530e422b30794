"""Duplex CLI — Typer + Rich terminal interface.

Commands: run, health, providers, history, demo.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from duplex import __version__
from duplex.cli_display import format_progress, render_health, render_history, render_result
from duplex.errors import BothProvidersFailedError, DuplexError
from duplex.providers.registry import build_registry, load_engine_config, load_provider_configs
from duplex.schemas.domains import Domain
from duplex.schemas.history import HistoryQuery
from duplex.schemas.orchestration import EngineConfig, OrchestrationRequest
from duplex.schemas.provider import ProviderConfig

console = Console()
err_console = Console(stderr=True)

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="duplex",
    help="Dual-provider generation with cross-validation and failover.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

history_app = typer.Typer(
    name="history",
    help="Query stored orchestration results.",
    no_args_is_help=True,
)
app.add_typer(history_app, name="history")


# ── Version callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"duplex {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show engine logs."),
) -> None:
    """Duplex — ask two providers, keep the better answer."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


# ── Helpers ──────────────────────────────────────────────────────

def _load_providers(path: Path | None) -> dict[str, ProviderConfig]:
    """Load the provider registry, exit on error."""
    try:
        return load_provider_configs(path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading providers:[/red] {e}")
        raise typer.Exit(1) from None


def _load_config(path: Path | None) -> EngineConfig:
    """Load engine config, exit on error."""
    try:
        return load_engine_config(path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


def _parse_payload(raw: str) -> dict:
    """Payload from inline JSON or ``@path/to/file.json``."""
    try:
        if raw.startswith("@"):
            return json.loads(Path(raw[1:]).read_text(encoding="utf-8"))
        return json.loads(raw)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Invalid payload:[/red] {e}")
        raise typer.Exit(1) from None


def _pick_pair(
    configs: dict[str, ProviderConfig],
    domain: Domain,
    engine: EngineConfig,
    provider_a: str | None,
    provider_b: str | None,
) -> tuple[str, str]:
    """Resolve the A/B pair: flags, then engine defaults, then registry order."""
    candidates = [key for key, cfg in configs.items() if cfg.domain == domain]
    preferred = [
        p for p in (engine.default_provider, engine.fallback_provider) if p in candidates
    ]
    ordered = preferred + [c for c in candidates if c not in preferred]

    a = provider_a or next((c for c in ordered if c != provider_b), None)
    b = provider_b or next((c for c in ordered if c != a), None)
    if not a or not b:
        console.print(
            f"[red]Need two providers for domain '{domain.value}'[/red] "
            f"(configured: {', '.join(candidates) or 'none'})"
        )
        raise typer.Exit(1) from None
    return a, b


# ── duplex run ──────────────────────────────────────────────────

@app.command()
def run(
    domain: Domain = typer.Argument(..., help="Domain: audio, casting or image"),
    payload: str = typer.Option(
        ..., "--payload", "-p", help="Payload JSON, or @file.json",
    ),
    provider_a: str = typer.Option(None, "--provider-a", "-a", help="Primary provider id"),
    provider_b: str = typer.Option(None, "--provider-b", "-b", help="Secondary provider id"),
    prefer: str = typer.Option(
        None, "--prefer", help="Provider to select when cross-validation is off",
    ),
    no_validation: bool = typer.Option(
        False, "--no-validation", help="Skip cross-validation",
    ),
    fallback: bool = typer.Option(
        False, "--fallback",
        help="Sequential mode: call provider A, fall back to B only on failure",
    ),
    providers_file: Path = typer.Option(None, "--providers", help="Path to providers.toml"),
    config_file: Path = typer.Option(None, "--config", help="Path to defaults.toml"),
    db_path: str = typer.Option(None, "--db", help="History database path"),
    no_save: bool = typer.Option(False, "--no-save", help="Do not store the result"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Run one request against two providers."""
    from duplex.orchestrator import DualProviderOrchestrator

    configs = _load_providers(providers_file)
    engine = _load_config(config_file)
    if no_validation:
        engine = engine.model_copy(update={"enable_cross_validation": False})
    a, b = _pick_pair(configs, domain, engine, provider_a, provider_b)

    try:
        request = OrchestrationRequest(
            domain=domain,
            payload=_parse_payload(payload),
            provider_a=a,
            provider_b=b,
            enable_cross_validation=not no_validation,
            preferred_provider=prefer,
        )
    except ValueError as e:
        console.print(f"[red]Invalid request:[/red] {e}")
        raise typer.Exit(1) from None

    selected = {key: configs[key] for key in (a, b) if key in configs}
    registry = build_registry(selected)
    orchestrator = DualProviderOrchestrator(registry, engine)

    async def _run():
        failures = await registry.init_all()
        for provider_id, error in failures.items():
            err_console.print(f"[yellow]{provider_id} not ready:[/yellow] {error}")
        try:
            if fallback:
                return await orchestrator.generate_with_fallback(request)
            if as_json:
                return await orchestrator.orchestrate(request)
            with console.status("[bold blue]Dispatching...", spinner="dots") as status:
                orchestrator.on_progress(
                    request.request_id, lambda state: status.update(format_progress(state)),
                )
                return await orchestrator.orchestrate(request)
        finally:
            await orchestrator.dispose()

    try:
        outcome = asyncio.run(_run())
    except BothProvidersFailedError as e:
        for provider_id, error in e.errors.items():
            console.print(f"[red]{provider_id} failed:[/red] {error}")
        raise typer.Exit(1) from None
    except DuplexError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if fallback:
        if as_json:
            typer.echo(outcome.model_dump_json(indent=2))
        else:
            console.print(f"[green]Output from[/green] [cyan]{outcome.provider_id}[/cyan]")
            for item in outcome.items:
                console.print(f"  • {item.name}")
        return

    if engine.persist_results and not no_save:
        asyncio.run(_save(outcome, db_path or engine.history_db_path))

    if as_json:
        typer.echo(outcome.model_dump_json(indent=2))
    else:
        render_result(console, outcome)


async def _save(result, db_path: str) -> None:
    from duplex.persistence.database import close_db, init_db
    from duplex.persistence.history import HistoryStore

    db = await init_db(db_path)
    try:
        await HistoryStore(db).save(result)
    finally:
        await close_db(db)


# ── duplex health ───────────────────────────────────────────────

@app.command()
def health(
    domain: Domain = typer.Option(None, "--domain", "-d", help="Only this domain"),
    providers_file: Path = typer.Option(None, "--providers", help="Path to providers.toml"),
    config_file: Path = typer.Option(None, "--config", help="Path to defaults.toml"),
) -> None:
    """Initialize providers and report their health."""
    from duplex.orchestrator import DualProviderOrchestrator

    configs = _load_providers(providers_file)
    engine = _load_config(config_file)
    if domain is not None:
        configs = {k: c for k, c in configs.items() if c.domain == domain}

    orchestrator = DualProviderOrchestrator(build_registry(configs), engine)

    async def _check():
        await orchestrator.registry.init_all()
        try:
            return await orchestrator.check_health()
        finally:
            await orchestrator.dispose()

    with console.status("[bold blue]Checking providers...", spinner="dots"):
        statuses = asyncio.run(_check())
    render_health(console, statuses)


# ── duplex providers ────────────────────────────────────────────

@app.command()
def providers(
    providers_file: Path = typer.Option(None, "--providers", help="Path to providers.toml"),
) -> None:
    """Show all configured providers as a table."""
    import os

    configs = _load_providers(providers_file)

    table = Table(title="Configured Providers", show_lines=True)
    table.add_column("Key", style="bold cyan")
    table.add_column("Display Name")
    table.add_column("Domain")
    table.add_column("Kind", style="dim")
    table.add_column("Model", style="dim")
    table.add_column("Retries", justify="right")
    table.add_column("API Key")

    for key, cfg in sorted(configs.items()):
        if not cfg.api_key_env:
            key_status = "[dim]n/a[/dim]"
        elif os.environ.get(cfg.api_key_env):
            key_status = "[green]set[/green]"
        else:
            key_status = f"[red]{cfg.api_key_env} not set[/red]"
        table.add_row(
            key,
            cfg.label,
            cfg.domain.value,
            cfg.kind.value,
            cfg.model or "-",
            str(cfg.max_retries),
            key_status,
        )

    console.print(table)
    console.print(f"\n[dim]{len(configs)} providers configured[/dim]")


# ── duplex demo ─────────────────────────────────────────────────

@app.command()
def demo(
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Run an offline casting request against two canned providers."""
    from duplex.demo import run_demo

    result = asyncio.run(run_demo(console, quiet=as_json))
    if as_json:
        typer.echo(result.model_dump_json(indent=2))


# ── duplex history ──────────────────────────────────────────────

@history_app.command("list")
def history_list(
    limit: int = typer.Option(20, "--limit", "-n", help="Max results to show"),
    domain: Domain = typer.Option(None, "--domain", "-d", help="Filter by domain"),
    provider: str = typer.Option(None, "--provider", help="Filter by selected provider"),
    db_path: str = typer.Option(None, "--db", help="History database path"),
    config_file: Path = typer.Option(None, "--config", help="Path to defaults.toml"),
) -> None:
    """Show recent results."""
    from duplex.persistence.database import close_db, init_db
    from duplex.persistence.history import HistoryStore

    engine = _load_config(config_file)
    query = HistoryQuery(domain=domain, provider=provider, limit=limit)

    async def _list():
        db = await init_db(db_path or engine.history_db_path)
        try:
            return await HistoryStore(db).list(query)
        finally:
            await close_db(db)

    summaries = asyncio.run(_list())
    if not summaries:
        console.print("[dim]No results found.[/dim]")
        return
    render_history(console, summaries)


@history_app.command("show")
def history_show(
    request_id: str = typer.Argument(..., help="Request ID or prefix (min 4 chars)"),
    as_json: bool = typer.Option(False, "--json", help="Print the stored result as JSON"),
    db_path: str = typer.Option(None, "--db", help="History database path"),
    config_file: Path = typer.Option(None, "--config", help="Path to defaults.toml"),
) -> None:
    """Show a stored result."""
    from duplex.persistence.database import close_db, init_db
    from duplex.persistence.history import HistoryStore

    engine = _load_config(config_file)

    async def _get():
        db = await init_db(db_path or engine.history_db_path)
        try:
            return await HistoryStore(db).get(request_id)
        finally:
            await close_db(db)

    record = asyncio.run(_get())
    if not record:
        console.print(f"[red]Result not found:[/red] {request_id}")
        raise typer.Exit(1) from None

    if as_json:
        typer.echo(record.result.model_dump_json(indent=2))
        return
    console.print(f"[dim]Stored {record.stored_at.isoformat()}[/dim]")
    render_result(console, record.result)


@history_app.command("delete")
def history_delete(
    request_id: str = typer.Argument(..., help="Request ID or prefix (min 4 chars)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    db_path: str = typer.Option(None, "--db", help="History database path"),
    config_file: Path = typer.Option(None, "--config", help="Path to defaults.toml"),
) -> None:
    """Delete a stored result."""
    if not yes:
        confirm = typer.confirm(f"Delete result {request_id}? This cannot be undone.")
        if not confirm:
            console.print("[dim]Cancelled.[/dim]")
            return

    from duplex.persistence.database import close_db, init_db
    from duplex.persistence.history import HistoryStore

    engine = _load_config(config_file)

    async def _delete():
        db = await init_db(db_path or engine.history_db_path)
        try:
            return await HistoryStore(db).delete(request_id)
        finally:
            await close_db(db)

    if asyncio.run(_delete()):
        console.print(f"[green]Result deleted:[/green] {request_id}")
    else:
        console.print(f"[red]Result not found:[/red] {request_id}")
        raise typer.Exit(1) from None
