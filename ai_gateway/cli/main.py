"""
CLI interface for the AI gateway.

Operator access to the interactive path, batch submission, the night sweep
and usage telemetry.
"""

import logging
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ai_gateway.config.loader import GatewayConfig, load_config_from_env, load_gateway_config
from ai_gateway.core.errors import AdmissionDenied, GatewayError
from ai_gateway.core.router import ModelRouter, ThinkingLevel
from ai_gateway.core.scheduler import SweepResult, SweepStatus
from ai_gateway.sdk.gateway import AIGateway, GatewayRequest
from ai_gateway.storage.repository import get_store, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

_state = {"config_path": None}


def _load_config() -> GatewayConfig:
    if _state["config_path"]:
        return load_gateway_config(_state["config_path"])
    return load_config_from_env()


def _build_gateway() -> AIGateway:
    config = _load_config()
    return AIGateway(config, get_store(config.db_path))


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {message}")
    sys.exit(EXIT_CODE_FAIL)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="YAML configuration file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """AI Gateway CLI."""
    _state["config_path"] = config
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        console.print("AI Gateway - Use --help to see available commands")


@app.command()
def init():
    """Initialize the gateway database."""
    try:
        config = _load_config()
        initialize_schema(config.db_path)
        console.print(f"[green]✓[/] Database initialized at {config.db_path}")
        sys.exit(EXIT_CODE_PASS)
    except (ValueError, OSError) as e:
        _fail(f"initializing database: {e}")


@app.command()
def ask(
    message: str = typer.Argument(..., help="Prompt to send"),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help="flash, flash-reasoning or pro"),
    thinking: Optional[str] = typer.Option(None, "--thinking", "-t", help="low, medium or high"),
    cache_key: Optional[str] = typer.Option(None, "--cache-key", "-k", help="Routine cache key"),
    ttl: Optional[int] = typer.Option(None, "--ttl", help="Cache TTL in seconds"),
    force_refresh: bool = typer.Option(False, "--force-refresh", help="Ignore a fresh cache entry"),
    client: str = typer.Option("local", "--client", help="Client key for rate/budget limits")
):
    """Send one interactive request through the gateway."""
    parsed_mode = ModelRouter.parse_mode(mode)
    if mode and parsed_mode is None:
        _fail(f"unknown mode {mode!r}")
    try:
        level = ThinkingLevel(thinking.lower()) if thinking else None
    except ValueError:
        _fail(f"unknown thinking level {thinking!r}")

    try:
        response = _build_gateway().complete(GatewayRequest(
            message=message,
            client_key=client,
            mode=parsed_mode,
            thinking=level,
            cache_key=cache_key,
            ttl_seconds=ttl,
            force_refresh=force_refresh,
        ))
    except AdmissionDenied as e:
        _fail(f"{e} ({e.reason.value})")
    except (GatewayError, ValueError) as e:
        _fail(str(e))

    flags = [name for name in ("cached", "stale", "degraded") if getattr(response, name)]
    mode_label = response.mode.value if response.mode else "-"
    thinking_label = response.thinking.value if response.thinking else "-"
    console.print(
        f"[dim]{response.model} · {mode_label} · thinking={thinking_label}"
        f"{' · ' + ', '.join(flags) if flags else ''}[/]"
    )
    console.print(response.answer)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def batch(unit_id: str = typer.Argument(..., help="Work unit to submit")):
    """Submit one batch-eligible work unit as a provider batch job."""
    try:
        job = _build_gateway().submitter.submit_unit(unit_id)
    except GatewayError as e:
        details = f" {e.details}" if e.details else ""
        _fail(f"{e}{details}")
    except ValueError as e:
        _fail(str(e))

    console.print(f"[green]✓[/] Batch {job.batch_id} created (file {job.file_id}, model {job.model})")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def queue(
    max_tasks: Optional[int] = typer.Option(
        None, "--max-tasks", min=1, help="Maximum units to merge"
    ),
    max_subitems: Optional[int] = typer.Option(
        None, "--max-subitems", min=1, help="Skip units with more sub-items than this"
    )
):
    """Merge small eligible units into one batch, oldest first."""
    try:
        result = _build_gateway().scheduler.queue_merge(max_tasks, max_subitems)
    except (GatewayError, ValueError) as e:
        _fail(str(e))
    _display_sweep_result(result)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def sweep(
    force: bool = typer.Option(False, "--force", "-f", help="Run even outside the batch window")
):
    """Run the nightly sweep of deferred low-priority work."""
    try:
        scheduler = _build_gateway().scheduler
        result = scheduler.run_sweep() if force else scheduler.run_if_in_window()
    except (GatewayError, ValueError) as e:
        _fail(str(e))
    _display_sweep_result(result)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def window():
    """Show whether now is inside the batch window."""
    try:
        gateway = _build_gateway()
    except ValueError as e:
        _fail(str(e))
    config = gateway.config
    state = "[green]open[/]" if gateway.scheduler.in_window() else "[yellow]closed[/]"
    console.print(f"Batch window {config.batch_window_start}-{config.batch_window_end}: {state}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def usage(limit: int = typer.Option(20, "--limit", "-n", help="Number of events to show")):
    """Show recent usage events and alerts."""
    try:
        telemetry = _build_gateway().telemetry
        events = telemetry.recent_events(limit)
        alerts = telemetry.recent_alerts(limit)
    except ValueError as e:
        _fail(str(e))

    if not events:
        console.print("\n[bold yellow]No usage recorded yet[/]\n")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title="Recent usage")
    table.add_column("Time")
    table.add_column("Kind")
    table.add_column("Model")
    table.add_column("Tokens", justify="right")
    table.add_column("Units")
    for event in events:
        table.add_row(
            event.created_at.strftime("%Y-%m-%d %H:%M"),
            event.kind.value,
            event.model or "-",
            f"{event.tokens:,}",
            ", ".join(event.unit_ids) or "-",
        )
    console.print(table)

    for alert in alerts:
        console.print(f"[yellow]{alert.level.upper()}[/] {alert.created_at:%H:%M} {alert.message}")
    sys.exit(EXIT_CODE_PASS)


def _display_sweep_result(result: SweepResult):
    if result.status == SweepStatus.OUTSIDE_WINDOW:
        console.print("[dim]Outside batch window, nothing submitted.[/]")
    elif result.status == SweepStatus.NO_ELIGIBLE_WORK:
        console.print("[yellow]No eligible work units to batch.[/]")
    else:
        job = result.job
        console.print(
            f"[green]✓[/] Batch {job.batch_id} submitted for {len(job.unit_ids)} unit(s): "
            f"{', '.join(job.unit_ids)}"
        )


if __name__ == "__main__":
    app()
