"""Run the mandate payment processor from the CLI."""
from __future__ import annotations

import click
from rich.console import Console

from dmandate_core import service
from dmandate_core.config import build_settings
from dmandate_core.exceptions import ConfigurationError, SchedulerStartupError
from dmandate_core.logging_config import setup_logging

from .. import ledger
from ..config import rpc_url_for

console = Console()


@click.group()
def processor():
    """Mandate payment processor commands."""
    pass


@processor.command()
@click.option("--once", is_flag=True, help="Run a single pass and exit")
@click.option("--interval-ms", type=int, help="Check interval in milliseconds")
@click.option("--batch-size", type=int, help="Maximum mandates per pass")
@click.option("--buffer", "buffer_seconds", type=int, help="Due buffer in seconds")
@click.pass_context
def run(
    ctx,
    once: bool,
    interval_ms: int | None,
    batch_size: int | None,
    buffer_seconds: int | None,
):
    """Start the processor against the configured network."""
    config = ctx.obj["config"]

    overrides = {
        "rpc_url": rpc_url_for(config),
        "keypair_path": config["keypair_path"],
        "program_id": config["program_id"],
    }
    if interval_ms is not None:
        overrides["check_interval_ms"] = interval_ms
    if batch_size is not None:
        overrides["batch_size"] = batch_size
    if buffer_seconds is not None:
        overrides["buffer_seconds"] = buffer_seconds

    try:
        settings = build_settings(**overrides)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e.message}[/red]")
        raise SystemExit(1)

    setup_logging(
        level="debug" if ctx.obj.get("verbose") else settings.log_level,
        json_format=settings.log_json,
        log_file=settings.log_file,
    )

    if not once:
        raise SystemExit(ledger.run(service.run(settings)))

    async def _single_pass():
        scheduler = service.build_scheduler(settings)
        await scheduler.start()
        try:
            return scheduler.last_result
        finally:
            await scheduler.stop()

    try:
        result = ledger.run(_single_pass())
    except SchedulerStartupError as e:
        console.print(f"[red]Startup failed: {e.message}[/red]")
        raise SystemExit(1)

    if result is None:
        console.print("[yellow]Pass did not complete; see the log for the error[/yellow]")
        raise SystemExit(1)

    console.print(
        f"[green]✓ Pass {result.pass_id}[/green]: {result.total} scanned, {result.due} due, "
        f"{result.succeeded} paid, {result.skipped} skipped, {result.failed} failed"
    )
    for failure in result.failures:
        console.print(f"  [red]{failure.mandate}[/red] {failure.reason.value}: {failure.detail or ''}")
