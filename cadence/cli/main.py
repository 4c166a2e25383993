"""
Cadence CLI entry point.

Commands:
    cadence templates        — List recurring templates
    cadence generate ID      — Top up a template's future instances
    cadence cancel ID        — Cancel a template's future instances
    cadence stats ID         — Instance counts per status
    cadence sync             — Push unsynced instances to the calendar
    cadence connect CODE     — Finish calendar authorization
    cadence disconnect       — Disable the calendar integration
    cadence test-connection  — Calendar round-trip diagnostic
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import typer
from rich.console import Console
from rich.table import Table

from cadence.app import CadenceApp
from cadence.core.config import CadenceConfig
from cadence.core.errors import CadenceError, NotConfiguredError
from cadence.core.logging import setup_logging
from cadence.core.types import JobTemplate
from cadence.recurrence.expander import get_next_occurrence, get_recurrence_description

app = typer.Typer(
    name="cadence",
    help="Cadence — recurring cleaning jobs kept in sync with your calendar.",
    add_completion=False,
)

console = Console()

VerboseOption = typer.Option(False, "--verbose", "-v", help="Show debug output")


@asynccontextmanager
async def _open_app(verbose: bool) -> AsyncIterator[CadenceApp]:
    config = CadenceConfig.load()
    setup_logging(
        log_dir=config.get_log_dir(),
        console_level=logging.DEBUG if verbose else logging.WARNING,
        retention_days=config.logging.retention_days,
    )
    cadence = await CadenceApp.from_config(config)
    try:
        yield cadence
    finally:
        await cadence.close()


def _run(coro) -> None:
    """Run a command coroutine, turning Cadence errors into a clean exit."""
    try:
        asyncio.run(coro)
    except NotConfiguredError as e:
        console.print(f"[yellow]{e.message}[/yellow]")
        raise typer.Exit(1)
    except CadenceError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


async def _require_template(cadence: CadenceApp, template_id: str) -> JobTemplate:
    template = await cadence.repo.get_template(template_id)
    if template is None:
        console.print(f"[red]No template with id {template_id}[/red]")
        raise typer.Exit(1)
    return template


@app.command()
def version() -> None:
    """Show Cadence version."""
    from cadence import __version__
    console.print(f"Cadence v{__version__}")


@app.command()
def templates(verbose: bool = VerboseOption) -> None:
    """List recurring job templates."""
    _run(_templates(verbose))


async def _templates(verbose: bool) -> None:
    async with _open_app(verbose) as cadence:
        found = await cadence.repo.list_templates()

    if not found:
        console.print("[dim]No recurring templates.[/dim]")
        return

    table = Table(title="Recurring templates")
    table.add_column("ID", style="dim")
    table.add_column("Client")
    table.add_column("Type")
    table.add_column("Recurrence")
    table.add_column("Next", style="cyan")
    for template in found:
        table.add_row(
            template.id,
            template.client_name,
            template.job_type.value,
            get_recurrence_description(template.recurrence_rule),
            get_next_occurrence(template).isoformat(),
        )
    console.print(table)


@app.command()
def generate(
    template_id: str = typer.Argument(..., help="Template id"),
    sync: bool = typer.Option(False, "--sync", "-s", help="Sync new instances afterwards"),
    verbose: bool = VerboseOption,
) -> None:
    """Generate upcoming instances for a template if its window runs short."""
    _run(_generate(template_id, sync, verbose))


async def _generate(template_id: str, sync: bool, verbose: bool) -> None:
    async with _open_app(verbose) as cadence:
        template = await _require_template(cadence, template_id)
        if not await cadence.lifecycle.ensure_generated(template):
            console.print("[dim]Upcoming instances already cover the window.[/dim]")
            return
        console.print(f"[green]✓[/green] Instances generated for {template.client_name}")

        if sync:
            result = await cadence.orchestrator.sync_many(
                await cadence.repo.instances_for_template(template.id)
            )
            console.print(f"Sync: {result.summary()}")


@app.command()
def cancel(
    template_id: str = typer.Argument(..., help="Template id"),
    verbose: bool = VerboseOption,
) -> None:
    """Cancel every future scheduled instance of a template."""
    _run(_cancel(template_id, verbose))


async def _cancel(template_id: str, verbose: bool) -> None:
    async with _open_app(verbose) as cadence:
        template = await _require_template(cadence, template_id)
        count = await cadence.lifecycle.cancel_future_instances(template.id)
    console.print(f"[green]✓[/green] Cancelled {count} future instance(s)")


@app.command()
def stats(
    template_id: str = typer.Argument(..., help="Template id"),
    verbose: bool = VerboseOption,
) -> None:
    """Show instance counts per status for a template."""
    _run(_stats(template_id, verbose))


async def _stats(template_id: str, verbose: bool) -> None:
    async with _open_app(verbose) as cadence:
        template = await _require_template(cadence, template_id)
        counts = await cadence.lifecycle.instance_stats(template.id)

    table = Table(title=f"{template.client_name} instances")
    table.add_column("Status")
    table.add_column("Count", justify="right")
    for status, count in counts.items():
        table.add_row(status, str(count))
    console.print(table)


@app.command()
def sync(verbose: bool = VerboseOption) -> None:
    """Push every scheduled, unsynced instance to the calendar."""
    _run(_sync(verbose))


async def _sync(verbose: bool) -> None:
    async with _open_app(verbose) as cadence:
        if not await cadence.orchestrator.is_configured():
            console.print("[yellow]Calendar is not connected. Run 'cadence connect' first.[/yellow]")
            return
        result = await cadence.orchestrator.auto_sync()

    console.print(result.summary())
    for instance_id, reason in result.errors.items():
        console.print(f"  [red]✗[/red] {instance_id}: {reason}")


@app.command()
def connect(
    code: str = typer.Argument(..., help="Authorization code from the provider consent screen"),
    verbose: bool = VerboseOption,
) -> None:
    """Exchange an authorization code and enable calendar sync."""
    _run(_connect(code, verbose))


async def _connect(code: str, verbose: bool) -> None:
    async with _open_app(verbose) as cadence:
        await cadence.credentials.connect(code)
    console.print("[green]✓[/green] Calendar connected")


@app.command()
def disconnect(verbose: bool = VerboseOption) -> None:
    """Disable calendar sync. Existing events are left in place."""
    _run(_disconnect(verbose))


async def _disconnect(verbose: bool) -> None:
    async with _open_app(verbose) as cadence:
        await cadence.credentials.disconnect()
    console.print("Calendar disconnected")


@app.command("test-connection")
def test_connection(verbose: bool = VerboseOption) -> None:
    """Check that the calendar is reachable with the stored credential."""
    _run(_test_connection(verbose))


async def _test_connection(verbose: bool) -> None:
    async with _open_app(verbose) as cadence:
        status = await cadence.gateway.test_connection()

    if not status.reachable:
        console.print(f"[red]✗ Calendar unreachable:[/red] {status.reason}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Connected to {status.calendar_name} ({status.time_zone})")


if __name__ == "__main__":
    app()
