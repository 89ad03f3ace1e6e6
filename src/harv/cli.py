"""harv command line interface."""

from __future__ import annotations

import functools
import sys
from datetime import date
from pathlib import Path
from typing import Any, Callable

import click
from rich.console import Console
from rich.markup import escape

from harv import __version__
from harv.ai.pipeline import GenerationPipeline
from harv.ai.providers import create_provider
from harv.config import (
    Config,
    apply_env_overrides,
    create_template,
    default_config_path,
    load_config,
    parse_config,
)
from harv.errors import ConfigurationError, HarvError, ProposalValidationError, UserCancelledError
from harv.formatter import (
    format_add_result,
    format_config,
    format_continue_result,
    format_generation_report,
    format_status,
    format_sync_result,
)
from harv.harvest import HarvestClient
from harv.jira import JiraClient
from harv.logs import configure_logging
from harv.manual import ManualEntryFlow
from harv.models import RunContext
from harv.prompts import TerminalPrompter
from harv.resume import ContinueEngine, resolve_continue_mode, resolve_lookback_days
from harv.sync import run_sync
from harv.timeparse import parse_hours
from harv.usage import UsageCache, default_usage_path

err_console = Console(stderr=True)


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Print harv errors as one red line and exit non-zero."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except UserCancelledError as e:
            err_console.print(f"[yellow]{escape(str(e))}[/yellow]")
            sys.exit(1)
        except HarvError as e:
            err_console.print(f"[red]Error: {escape(str(e))}[/red]")
            sys.exit(1)

    return wrapper


def _console(ctx: click.Context) -> Console:
    return ctx.obj["console"]


def _run(ctx: click.Context) -> RunContext:
    return ctx.obj["run"]


def _config_path(ctx: click.Context) -> Path:
    return ctx.obj.get("config_path") or default_config_path()


def _config(ctx: click.Context) -> Config:
    if "config" not in ctx.obj:
        ctx.obj["config"] = load_config(_config_path(ctx))
    return ctx.obj["config"]


def _harvest(ctx: click.Context) -> HarvestClient:
    if "harvest" not in ctx.obj:
        client = HarvestClient(_config(ctx).harvest)
        ctx.find_root().call_on_close(client.close)
        ctx.obj["harvest"] = client
    return ctx.obj["harvest"]


def _jira(ctx: click.Context) -> JiraClient:
    if "jira" not in ctx.obj:
        client = JiraClient(_config(ctx).jira)
        ctx.find_root().call_on_close(client.close)
        ctx.obj["jira"] = client
    return ctx.obj["jira"]


def _usage(ctx: click.Context) -> UsageCache:
    if "usage" not in ctx.obj:
        ctx.obj["usage"] = UsageCache.load(default_usage_path(_config_path(ctx)))
    return ctx.obj["usage"]


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="harv")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug output")
@click.option("--quiet", "-q", is_flag=True, help="Only print errors")
@click.option("--dry-run", "-n", is_flag=True, help="Show what would happen without changing Harvest")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to config.yml (default: ~/.config/harv/config.yml)",
)
@click.pass_context
def cli(
    ctx: click.Context, verbose: bool, quiet: bool, dry_run: bool, config_path: Path | None
) -> None:
    """harv - track Harvest time from your git commits and Jira tickets.

    Without a command, runs `harv sync`.
    """
    ctx.ensure_object(dict)
    configure_logging(verbose=verbose, quiet=quiet)
    ctx.obj["run"] = RunContext(dry_run=dry_run, verbose=verbose, quiet=quiet)
    if config_path is not None:
        ctx.obj["config_path"] = config_path
    ctx.obj.setdefault("console", Console(quiet=quiet))
    ctx.obj.setdefault("prompter", TerminalPrompter(Console()))

    if ctx.invoked_subcommand is None:
        ctx.invoke(sync)


@cli.command()
@click.option("--auto-start", is_flag=True, help="Never prompt; track the first ticket found")
@click.option("--auto-stop", is_flag=True, help="Stop a different running timer without asking")
@click.option(
    "--repo",
    "repos",
    multiple=True,
    type=click.Path(file_okay=False),
    help="Repository to scan (repeatable, replaces the configured list)",
)
@click.pass_context
@handle_errors
def sync(ctx: click.Context, auto_start: bool, auto_stop: bool, repos: tuple[str, ...]) -> None:
    """Start a timer for the ticket you committed to today.

    Examples:

        harv sync
        harv sync --auto-start --auto-stop
        harv --dry-run sync --repo ~/src/backend
    """
    config = _config(ctx)
    result = run_sync(
        config,
        _harvest(ctx),
        _jira(ctx),
        ctx.obj["prompter"],
        _run(ctx),
        repositories=list(repos),
        auto_start=auto_start or config.settings.auto_start,
        auto_stop=auto_stop or config.settings.auto_stop,
        usage=_usage(ctx),
    )
    format_sync_result(_console(ctx), result, _run(ctx))


@cli.command()
@click.pass_context
@handle_errors
def status(ctx: click.Context) -> None:
    """Show the running timer and today's entries."""
    harvest = _harvest(ctx)
    format_status(_console(ctx), harvest.get_running_timer(), harvest.todays_entries())


@cli.command()
@click.pass_context
@handle_errors
def stop(ctx: click.Context) -> None:
    """Stop the running timer."""
    harvest = _harvest(ctx)
    console = _console(ctx)
    running = harvest.get_running_timer()
    if running is None:
        console.print("[dim]No timer running[/dim]")
        return

    harvest.stop_entry(running, _run(ctx))
    prefix = escape("[DRY RUN] ") if _run(ctx).dry_run else ""
    console.print(f"[green]✓ {prefix}Stopped:[/green] {escape(running.notes or '(no description)')}")


@cli.command("continue")
@click.option("--days", "-d", type=click.IntRange(min=1), help="Days to look back (1 = today)")
@click.option("--restart", is_flag=True, help="Restart the entry on its original date")
@click.option("--new-entry", is_flag=True, help="Start a new entry for today")
@click.option("--auto-start", is_flag=True, help="Stop any running timer without asking")
@click.pass_context
@handle_errors
def continue_(
    ctx: click.Context, days: int | None, restart: bool, new_entry: bool, auto_start: bool
) -> None:
    """Resume a previous time entry."""
    if restart and new_entry:
        raise click.UsageError("--restart and --new-entry cannot be used together")

    config = _config(ctx)
    lookback = resolve_lookback_days(days, config.settings.continue_days)
    mode = resolve_continue_mode(restart, new_entry, config.settings.continue_mode)

    engine = ContinueEngine(_harvest(ctx), ctx.obj["prompter"], _run(ctx))
    result = engine.run(
        lookback,
        mode,
        auto_start=auto_start or config.settings.auto_start,
        auto_stop=config.settings.auto_stop,
    )
    if result is None:
        when = "today" if lookback == 1 else f"in the last {lookback} days"
        _console(ctx).print(f"[yellow]No stopped time entries found {when}[/yellow]")
        return
    format_continue_result(_console(ctx), result, _run(ctx))


def _target_hours(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return parse_hours(value)
    except ProposalValidationError as e:
        raise click.BadParameter(str(e), param_hint="--target-hours")


@cli.command()
@click.argument("summary", required=False)
@click.option("--provider", help="AI provider to use (openai, anthropic)")
@click.option("--auto-approve", is_flag=True, help="Create all valid entries without review")
@click.option("--target-hours", help="Hours to fill today, e.g. 8 or 7:30")
@click.pass_context
@handle_errors
def generate(
    ctx: click.Context,
    summary: str | None,
    provider: str | None,
    auto_approve: bool,
    target_hours: str | None,
) -> None:
    """Generate time entries from a summary of your day.

    Examples:

        harv generate "Fixed the login bug, 1h standup, reviewed PRs"
        harv generate --provider anthropic --target-hours 7:30
    """
    hours = _target_hours(target_hours)
    config = _config(ctx)
    if not config.ai.enabled:
        raise ConfigurationError(
            "AI features are disabled. Set ai.enabled: true in your config file."
        )

    prompter = ctx.obj["prompter"]
    if not summary:
        summary = prompter.multiline("Describe what you worked on today")
    if not summary.strip():
        raise click.UsageError("A work summary is required")

    pipeline = GenerationPipeline(
        _harvest(ctx),
        ctx.obj.get("ai_provider") or create_provider(config.ai, name=provider),
        prompter,
        _run(ctx),
    )
    report = pipeline.run(
        summary,
        hours if hours is not None else config.ai.target_hours,
        auto_approve=auto_approve,
    )
    format_generation_report(_console(ctx), report, _run(ctx))


@cli.command()
@click.pass_context
@handle_errors
def add(ctx: click.Context) -> None:
    """Create a time entry interactively."""
    flow = ManualEntryFlow(_harvest(ctx), ctx.obj["prompter"], _run(ctx), usage=_usage(ctx))
    result = flow.run(today=date.today())
    if result is None:
        _console(ctx).print("[yellow]Entry creation cancelled[/yellow]")
        return
    format_add_result(_console(ctx), result, _run(ctx))


@cli.group("config")
def config_group() -> None:
    """Manage the configuration file."""


@config_group.command("init")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing config file")
@click.pass_context
@handle_errors
def config_init(ctx: click.Context, force: bool) -> None:
    """Write a commented configuration template."""
    path = _config_path(ctx)
    if path.exists() and not force:
        _console(ctx).print(f"[yellow]Config already exists: {path}[/yellow]")
        _console(ctx).print("Use --force to overwrite")
        return

    create_template(path, force=force)
    _console(ctx).print(f"[green]✓ Created {path}[/green]")
    _console(ctx).print(
        "Add your Harvest and Jira credentials, then run [bold]harv config validate[/bold]"
    )


@config_group.command("show")
@click.pass_context
@handle_errors
def config_show(ctx: click.Context) -> None:
    """Print the configuration with secrets masked."""
    path = _config_path(ctx)
    if not path.exists():
        raise ConfigurationError(
            f"Configuration file not found at {path}. Run 'harv config init' to create one."
        )
    config = apply_env_overrides(parse_config(path.read_text(encoding="utf-8"), path=path))
    format_config(_console(ctx), config)


@config_group.command("validate")
@click.pass_context
@handle_errors
def config_validate(ctx: click.Context) -> None:
    """Check the configuration file."""
    config = load_config(_config_path(ctx))
    _console(ctx).print(f"[green]✓ Configuration is valid[/green] [dim]({config.path})[/dim]")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
