"""The sync run path: commits, tickets, selection, timer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Sequence

import structlog

from harv.config import Config
from harv.enrichment import enrich_tickets, select_ticket
from harv.errors import ConfigurationError
from harv.git import discover_repositories, scan_repositories
from harv.manual import choose_project_task
from harv.models import Commit, RunContext, SelectableTicket, TimeEntry
from harv.prompts import Prompter
from harv.resolver import Resolution, TimerConflictResolver, TimerTarget
from harv.tickets import extract_tickets
from harv.usage import UsageCache

logger = structlog.get_logger()


@dataclass
class SyncResult:
    commits: list[Commit] = field(default_factory=list)
    keys: list[str] = field(default_factory=list)
    tickets: list[SelectableTicket] = field(default_factory=list)
    selected: SelectableTicket | None = None
    resolution: Resolution | None = None


def external_reference(key: str, permalink: str) -> dict[str, str]:
    return {"id": key, "group_id": "jira", "permalink": permalink}


def run_sync(
    config: Config,
    harvest,
    jira,
    prompter: Prompter,
    ctx: RunContext,
    repositories: Sequence[str] | None = None,
    auto_start: bool = False,
    auto_stop: bool = False,
    now: datetime | None = None,
    usage: UsageCache | None = None,
) -> SyncResult:
    """Detect today's tickets and start a timer for the chosen one.

    ``repositories`` replaces the configured list when given. Stops early,
    without touching Harvest, when no tickets are found or the user keeps
    the current timer. The project and task are only settled, from the
    configuration or by asking, once a timer is actually going to start.
    """
    result = SyncResult()

    repos = discover_repositories(
        repositories if repositories else config.git.repositories, cwd=Path.cwd()
    )
    result.commits = scan_repositories(repos, now=now)
    result.keys = extract_tickets(
        (commit.message for commit in result.commits), config.ticket_filter.denylist
    )
    logger.info("Detected tickets", count=len(result.keys), keys=result.keys)
    if not result.keys:
        return result

    result.tickets = enrich_tickets(jira, result.keys)
    result.selected = select_ticket(
        result.tickets,
        prompter,
        auto_select_single=config.settings.auto_select_single,
        auto_start=auto_start,
    )
    if result.selected is None:
        return result

    project_id, task_id = config.harvest.project_id, config.harvest.task_id
    chosen = False

    def choose_assignment() -> None:
        nonlocal project_id, task_id, chosen
        if project_id is not None and task_id is not None:
            return
        if auto_start:
            raise ConfigurationError(
                "harvest.project_id and harvest.task_id must be set for non-interactive runs"
            )
        project, task = choose_project_task(harvest, prompter, usage)
        project_id, task_id, chosen = project.id, task.id, True

    ticket = result.selected

    def start() -> TimeEntry:
        return harvest.create_timer(
            ticket.notes,
            project_id,
            task_id,
            ctx,
            external_reference=external_reference(ticket.key, jira.ticket_url(ticket.key)),
        )

    resolver = TimerConflictResolver(harvest, prompter, ctx)
    result.resolution = resolver.resolve(
        TimerTarget(match_token=ticket.key, description=ticket.label),
        start,
        auto_stop=auto_stop,
        prepare=choose_assignment,
    )
    if chosen and result.resolution.mutated and usage is not None and not ctx.dry_run:
        usage.record_use(project_id, task_id)
    return result
