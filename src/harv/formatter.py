"""Output formatting for the CLI."""

from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from harv.ai.pipeline import GenerationReport, format_proposal
from harv.config import Config, mask_secret
from harv.manual import AddResult
from harv.models import RunContext, TimeEntry
from harv.resolver import Outcome, Resolution
from harv.resume import ContinueMode, ContinueResult
from harv.sync import SyncResult


def _prefix(ctx: RunContext) -> str:
    return escape("[DRY RUN] ") if ctx.dry_run else ""


def format_entry(entry: TimeEntry) -> str:
    project = entry.project.name if entry.project else "Unknown"
    task = entry.task.name if entry.task else "Unknown"
    return escape(f"{entry.notes or '(no description)'} ({project} > {task})")


def format_resolution(console: Console, resolution: Resolution, ctx: RunContext) -> None:
    prefix = _prefix(ctx)
    if resolution.outcome is Outcome.ALREADY_TRACKING:
        console.print(f"[green]✓ Already tracking:[/green] {format_entry(resolution.entry)}")
        return
    if resolution.outcome is Outcome.DECLINED:
        console.print("[yellow]Keeping current timer running[/yellow]")
        return
    if resolution.stopped is not None:
        console.print(f"[green]✓ {prefix}Stopped:[/green] {format_entry(resolution.stopped)}")
    console.print(f"[green]✓ {prefix}Started timer:[/green] {format_entry(resolution.entry)}")


def format_sync_result(console: Console, result: SyncResult, ctx: RunContext) -> None:
    console.print(f"[dim]Found {len(result.commits)} commit(s) from today[/dim]")
    if not result.keys:
        console.print("[yellow]No tickets found in today's commits[/yellow]")
        return

    console.print(f"Detected tickets: [bold]{', '.join(result.keys)}[/bold]")
    for ticket in result.tickets:
        style = "yellow" if ticket.is_placeholder else "white"
        console.print(f"  [{style}]{escape(ticket.label)}[/{style}]")

    if result.resolution is not None:
        format_resolution(console, result.resolution, ctx)


def format_status(
    console: Console, running: TimeEntry | None, entries: Sequence[TimeEntry]
) -> None:
    """Running timer, then today's entries with a total."""
    if running is None:
        console.print("[dim]No timer running[/dim]")
    else:
        console.print(f"[bold green]● Running:[/bold green] {format_entry(running)}")
        if running.started_time:
            console.print(f"  Started at {running.started_time}")
        console.print(f"  Elapsed: {running.hours or 0.0:.2f}h")

    if not entries:
        console.print("[dim]No time entries today[/dim]")
        return

    table = Table(title="Today's Entries", show_header=True, header_style="bold")
    table.add_column("Notes")
    table.add_column("Project", style="dim")
    table.add_column("Task", style="dim")
    table.add_column("Hours", justify="right")

    for entry in entries:
        notes = escape(entry.notes or "")
        if entry.is_running:
            notes = f"[green]●[/green] {notes}"
        table.add_row(
            notes,
            escape(entry.project.name) if entry.project else "",
            escape(entry.task.name) if entry.task else "",
            f"{entry.hours or 0.0:.2f}",
        )

    total = sum(entry.hours or 0.0 for entry in entries)
    table.add_row("[bold]Total[/bold]", "", "", f"[bold]{total:.2f}[/bold]")
    console.print(table)


def format_continue_result(console: Console, result: ContinueResult, ctx: RunContext) -> None:
    if result.resolution.mutated:
        how = "Restarted" if result.mode is ContinueMode.RESTART else "Started new entry from"
        console.print(f"[dim]{how} {escape(result.entry.spent_date)} entry[/dim]")
    format_resolution(console, result.resolution, ctx)


def format_generation_report(console: Console, report: GenerationReport, ctx: RunContext) -> None:
    prefix = _prefix(ctx)
    if not report.proposals:
        console.print("[yellow]The AI returned no valid time entries[/yellow]")
        return
    if not report.approved:
        console.print("[yellow]No entries created[/yellow]")
        return

    for entry in report.created:
        console.print(
            f"[green]✓ {prefix}Created:[/green] {entry.hours or 0.0:.2f}h - {escape(entry.notes or '')}"
        )
    for failure in report.failures:
        console.print(
            f"[red]✗ Failed:[/red] {escape(format_proposal(failure.proposal, report.context))}"
            f" [dim]({escape(failure.error)})[/dim]"
        )

    console.print()
    if report.created:
        console.print(f"[green]{prefix}Created {len(report.created)} time entries[/green]")
    if report.failures:
        console.print(f"[yellow]{len(report.failures)} entries failed[/yellow]")
    total = report.context.logged_hours + report.created_hours
    console.print(f"Total time today: [bold]{total:.2f}[/bold] hours")


def format_add_result(console: Console, result: AddResult, ctx: RunContext) -> None:
    if result.resolution is not None:
        format_resolution(console, result.resolution, ctx)
        return
    console.print(
        f"[green]✓ {_prefix(ctx)}Created entry:[/green] {escape(result.request.summary)}"
    )


def format_config(console: Console, config: Config) -> None:
    """Configuration with secrets masked."""
    table = Table(title=f"Configuration ({config.path})", show_header=True, header_style="bold")
    table.add_column("Setting", style="dim")
    table.add_column("Value")

    rows = [
        ("harvest.access_token", mask_secret(config.harvest.access_token)),
        ("harvest.account_id", config.harvest.account_id),
        ("harvest.user_agent", config.harvest.user_agent),
        ("harvest.project_id", str(config.harvest.project_id or "")),
        ("harvest.task_id", str(config.harvest.task_id or "")),
        ("jira.access_token", mask_secret(config.jira.access_token)),
        ("jira.base_url", config.jira.base_url),
        ("git.repositories", ", ".join(config.git.repositories) or "(current directory)"),
        ("settings.auto_start", str(config.settings.auto_start)),
        ("settings.auto_stop", str(config.settings.auto_stop)),
        ("settings.auto_select_single", str(config.settings.auto_select_single)),
        ("settings.continue_days", str(config.settings.continue_days or 1)),
        ("settings.continue_mode", config.settings.continue_mode or "ask"),
        ("ticket_filter.denylist", ", ".join(config.ticket_filter.denylist)),
        ("ai.enabled", str(config.ai.enabled)),
        ("ai.provider", config.ai.provider),
        ("ai.api_key", mask_secret(config.ai.api_key)),
        ("ai.model", config.ai.model or "(provider default)"),
        ("ai.target_hours", f"{config.ai.target_hours:.2f}"),
    ]
    for name, value in rows:
        table.add_row(name, escape(value))
    console.print(table)
