"""Interactive manual time entry creation (``harv add``)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

import structlog

from harv.errors import ProposalValidationError
from harv.models import Project, RunContext, Task, TimeEntry
from harv.prompts import Prompter
from harv.resolver import Resolution, TimerConflictResolver, TimerTarget
from harv.timeparse import parse_hours
from harv.usage import UsageCache, sort_by_usage

logger = structlog.get_logger()

RECENT_DAYS = 6
MAX_PAST_DAYS = 90
MAX_DESCRIPTION_LENGTH = 500


class EntryType(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


def date_choices(today: date) -> list[tuple[str, date | None]]:
    """Today, the previous six days, then a custom-date choice (``None``)."""
    choices: list[tuple[str, date | None]] = [
        (f"Today ({today.isoformat()})", today),
        (f"Yesterday ({(today - timedelta(days=1)).isoformat()})", today - timedelta(days=1)),
    ]
    for days in range(2, RECENT_DAYS + 1):
        day = today - timedelta(days=days)
        choices.append((f"{days} days ago ({day.isoformat()})", day))
    choices.append(("Custom date...", None))
    return choices


def parse_custom_date(text: str, today: date) -> date:
    """Parse ``YYYY-MM-DD`` no later than today and at most 90 days back.

    Raises:
        ValueError: with a message suitable for the user.
    """
    try:
        day = datetime.strptime(text.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(f"Invalid date '{text}'. Use YYYY-MM-DD")
    if day > today:
        raise ValueError("Date cannot be in the future")
    if day < today - timedelta(days=MAX_PAST_DAYS):
        raise ValueError(f"Date cannot be more than {MAX_PAST_DAYS} days in the past")
    return day


def choose_project_task(
    harvest, prompter: Prompter, usage: UsageCache | None = None
) -> tuple[Project, Task]:
    """Fuzzy-select a project, then one of its tasks.

    With a usage history, recently used projects and tasks are listed first.
    """
    projects = harvest.list_projects()
    if usage is not None:
        projects = sort_by_usage(projects, lambda p: usage.project_score(p.id))
    if not projects:
        raise ProposalValidationError("No active projects available")
    project = projects[prompter.fuzzy_select("Select a project", [p.label for p in projects])]

    tasks = harvest.list_project_tasks(project.id)
    if usage is not None:
        tasks = sort_by_usage(tasks, lambda t: usage.task_score(t.id))
    if not tasks:
        raise ProposalValidationError(f"Project '{project.name}' has no active tasks")
    task = tasks[prompter.fuzzy_select("Select a task", [t.name for t in tasks])]
    return project, task


@dataclass
class ManualEntry:
    entry_type: EntryType
    spent_date: date
    project: Project
    task: Task
    description: str
    hours: float | None = None

    @property
    def summary(self) -> str:
        duration = f"{self.hours:.2f}h" if self.hours is not None else "running"
        return (
            f"{self.project.name} > {self.task.name}: {self.description} "
            f"({duration}) on {self.spent_date.isoformat()}"
        )


@dataclass
class AddResult:
    request: ManualEntry
    entry: TimeEntry | None = None
    resolution: Resolution | None = None


class ManualEntryFlow:
    """Collects a manual entry interactively and creates it."""

    def __init__(
        self,
        harvest,
        prompter: Prompter,
        ctx: RunContext,
        usage: UsageCache | None = None,
    ) -> None:
        self.harvest = harvest
        self.prompter = prompter
        self.ctx = ctx
        self.usage = usage

    def _record_usage(self, request: ManualEntry) -> None:
        if self.usage is None or self.ctx.dry_run:
            return
        self.usage.record_use(request.project.id, request.task.id)

    def _choose_date(self, today: date) -> date:
        choices = date_choices(today)
        label_index = self.prompter.select("Select date for time entry", [c[0] for c in choices])
        chosen = choices[label_index][1]
        if chosen is not None:
            return chosen

        while True:
            answer = self.prompter.text("Date (YYYY-MM-DD)", default=today.isoformat())
            try:
                return parse_custom_date(answer, today)
            except ValueError as e:
                logger.warning("Invalid date", error=str(e))

    def _description(self) -> str:
        while True:
            description = self.prompter.text("Description").strip()
            if not description:
                logger.warning("Description cannot be empty")
            elif len(description) > MAX_DESCRIPTION_LENGTH:
                logger.warning(
                    "Description too long", length=len(description), limit=MAX_DESCRIPTION_LENGTH
                )
            else:
                return description

    def _hours(self) -> float:
        while True:
            answer = self.prompter.text("Hours (e.g., 1.5 or 1:30)")
            try:
                return parse_hours(answer)
            except ProposalValidationError as e:
                logger.warning("Invalid hours", error=str(e))

    def collect(self, today: date) -> ManualEntry:
        kind = self.prompter.select(
            "What type of entry would you like to create?",
            ["Running timer (start now, stop later)", "Stopped entry (specify hours worked)"],
        )
        entry_type = EntryType.RUNNING if kind == 0 else EntryType.STOPPED
        spent_date = self._choose_date(today)
        project, task = choose_project_task(self.harvest, self.prompter, self.usage)
        description = self._description()
        hours = self._hours() if entry_type is EntryType.STOPPED else None
        return ManualEntry(entry_type, spent_date, project, task, description, hours)

    def run(self, today: date | None = None) -> AddResult | None:
        """Collect, confirm and create. Returns ``None`` if the user declines."""
        today = today or date.today()
        request = self.collect(today)
        if not self.prompter.confirm(f"Create {request.summary}?", default=True):
            return None

        if request.entry_type is EntryType.STOPPED:
            entry = self.harvest.create_stopped_entry(
                request.description,
                request.project.id,
                request.task.id,
                request.hours,
                self.ctx,
                spent_date=request.spent_date,
            )
            self._record_usage(request)
            return AddResult(request, entry=entry)

        def start() -> TimeEntry:
            return self.harvest.create_timer(
                request.description,
                request.project.id,
                request.task.id,
                self.ctx,
                spent_date=request.spent_date,
            )

        # An empty match token never matches, so any running timer triggers the stop prompt.
        resolver = TimerConflictResolver(self.harvest, self.prompter, self.ctx)
        resolution = resolver.resolve(TimerTarget("", request.description), start)
        if resolution.mutated:
            self._record_usage(request)
        return AddResult(request, entry=resolution.entry, resolution=resolution)
