"""Fleetguard CLI entry point."""

import asyncio
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from fleetguard.application.policy.cache import decision_scope
from fleetguard.application.policy.engine import DecisionEngine, EngineConfig
from fleetguard.core.domain.decision import AccessDecision, ActionLevel, DecisionOutcome
from fleetguard.core.domain.errors import ConfigError, StoreUnavailable
from fleetguard.infrastructure.graph.snapshot import load_graph_snapshot

app = typer.Typer(
    name="fleetguard",
    help="Fleetguard - authorization decisions for fleet compliance records",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

EXIT_ALLOW = 0
EXIT_DENY = 1
EXIT_INDETERMINATE = 2


def _build_engine(graph_path: Path, config_path: Optional[Path]) -> DecisionEngine:
    try:
        graph = load_graph_snapshot(graph_path)
        config = EngineConfig.from_yaml(config_path) if config_path else EngineConfig()
    except ConfigError as e:
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        raise typer.Exit(code=EXIT_INDETERMINATE) from e
    return DecisionEngine(graph, config=config)


def _exit_code(decision: AccessDecision) -> int:
    if decision.allowed:
        return EXIT_ALLOW
    if decision.outcome is DecisionOutcome.INDETERMINATE:
        return EXIT_INDETERMINATE
    return EXIT_DENY


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """Fleetguard authorization CLI."""
    from fleetguard.api.server import configure_logging

    configure_logging("DEBUG" if debug else os.getenv("LOGLEVEL", "WARNING"))
    ctx.obj = {"debug": debug}


@app.command()
def check(
    graph: Path = typer.Argument(..., help="Graph snapshot (YAML/JSON)"),
    actor: str = typer.Argument(..., help="Acting user id"),
    target: str = typer.Argument(..., help="Target party id"),
    level: Optional[ActionLevel] = typer.Option(None, "--level", "-l", help="Action level"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Engine config YAML"),
):
    """Decide whether ACTOR may access TARGET's records."""
    engine = _build_engine(graph, config)

    async def _run() -> AccessDecision:
        with decision_scope():
            return await engine.authorize(actor, target, level=level)

    decision = asyncio.run(_run())

    style = "green" if decision.allowed else "red"
    console.print(
        f"[bold {style}]{decision.outcome.value.upper()}[/bold {style}] "
        f"path=[cyan]{decision.path.value}[/cyan]"
    )
    if decision.reason:
        console.print(f"[dim]{decision.reason}[/dim]")
    raise typer.Exit(code=_exit_code(decision))


@app.command()
def scope(
    graph: Path = typer.Argument(..., help="Graph snapshot (YAML/JSON)"),
    actor: str = typer.Argument(..., help="Acting user id"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Engine config YAML"),
):
    """Show the organizations and locations ACTOR controls."""
    engine = _build_engine(graph, config)

    async def _run():
        with decision_scope():
            return await engine.managed_scope(actor), await engine.management_level(actor)

    try:
        managed, level = asyncio.run(_run())
    except StoreUnavailable as e:
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        raise typer.Exit(code=EXIT_INDETERMINATE) from e

    console.print(f"[bold blue]Management level:[/bold blue] [cyan]{level.value}[/cyan]")
    if managed.is_empty():
        console.print("[yellow]No managed organizations or locations[/yellow]")
        return

    table = Table(title=f"Managed scope for {actor}")
    table.add_column("Path", style="cyan")
    table.add_column("Organization")
    table.add_column("Location")
    table.add_column("Via role", style="dim")
    for grant in managed.grants:
        table.add_row(
            grant.path.value,
            grant.organization_id or "-",
            grant.location_id or "-",
            grant.via_role_id or "-",
        )
    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", envvar="FLEETGUARD_HOST", help="Bind host"),
    port: int = typer.Option(8040, envvar="FLEETGUARD_PORT", help="Bind port"),
):
    """Run the authorization sidecar."""
    import uvicorn

    console.print(f"Starting Fleetguard sidecar on http://{host}:{port}")
    uvicorn.run(
        "fleetguard.api.server:create_app",
        factory=True,
        host=host,
        port=port,
        log_level=os.getenv("LOGLEVEL", "info").lower(),
    )


@app.command()
def version():
    """Show Fleetguard version."""
    from fleetguard import __version__

    console.print(f"[bold blue]Version:[/bold blue] [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
