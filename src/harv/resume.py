"""Continue work on a previous time entry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Protocol

import structlog

from harv.models import RunContext, TimeEntry
from harv.prompts import Prompter
from harv.resolver import Resolution, TimerConflictResolver, TimerService, TimerTarget

logger = structlog.get_logger()

DEFAULT_LOOKBACK_DAYS = 1


class ContinueMode(str, Enum):
    """How a chosen entry is resumed."""

    RESTART = "restart"
    NEW = "new"
    ASK = "ask"


class ContinueService(TimerService, Protocol):
    def list_entries(self, start: date, end: date) -> list[TimeEntry]: ...

    def restart_entry(self, entry: TimeEntry, ctx: RunContext) -> TimeEntry: ...

    def create_timer(
        self,
        notes: str,
        project_id: int,
        task_id: int,
        ctx: RunContext,
        spent_date: date | None = None,
        external_reference: dict[str, str] | None = None,
    ) -> TimeEntry: ...


def resolve_lookback_days(flag: int | None, configured: int | None) -> int:
    """CLI flag, then configured ``continue_days``, then one day."""
    if flag is not None:
        return flag
    if configured is not None:
        return configured
    return DEFAULT_LOOKBACK_DAYS


def resolve_continue_mode(restart: bool, new_entry: bool, configured: str | None) -> ContinueMode:
    """CLI flags, then configured ``continue_mode``, then ask.

    Raises:
        ValueError: if both flags are set.
    """
    if restart and new_entry:
        raise ValueError("--restart and --new-entry are mutually exclusive")
    if restart:
        return ContinueMode.RESTART
    if new_entry:
        return ContinueMode.NEW
    if configured:
        return ContinueMode(configured)
    return ContinueMode.ASK


def lookback_range(days: int, today: date) -> tuple[date, date]:
    """``[today - (days - 1), today]``."""
    return today - timedelta(days=days - 1), today


def continuable_entries(entries: Iterable[TimeEntry]) -> list[TimeEntry]:
    """Stopped entries that carry both a project and a task."""
    return [
        entry
        for entry in entries
        if not entry.is_running and entry.project is not None and entry.task is not None
    ]


def format_entry_label(entry: TimeEntry) -> str:
    notes = entry.notes or "(no description)"
    project = entry.project.name if entry.project else "Unknown"
    task = entry.task.name if entry.task else "Unknown"
    hours = entry.hours or 0.0
    return f"{notes} • {project} > {task} ({hours:.2f}h) [{entry.spent_date}]"


@dataclass
class ContinueResult:
    entry: TimeEntry
    mode: ContinueMode
    resolution: Resolution


class ContinueEngine:
    """Select a past entry and resume it, restarting it or starting a sibling for today."""

    def __init__(self, harvest: ContinueService, prompter: Prompter, ctx: RunContext) -> None:
        self.harvest = harvest
        self.prompter = prompter
        self.ctx = ctx
        self.resolver = TimerConflictResolver(harvest, prompter, ctx)

    def candidates(self, days: int, today: date) -> list[TimeEntry]:
        start, end = lookback_range(days, today)
        entries = continuable_entries(self.harvest.list_entries(start, end))
        logger.debug("Found entries to continue", count=len(entries), start=str(start))
        return entries

    def _ask_mode(self, entry: TimeEntry) -> ContinueMode:
        choices = [
            f"Restart existing entry (keeps date {entry.spent_date}, resets hours)",
            "Start a new entry for today",
        ]
        index = self.prompter.select("How do you want to continue?", choices)
        return ContinueMode.RESTART if index == 0 else ContinueMode.NEW

    def run(
        self,
        days: int,
        mode: ContinueMode,
        auto_start: bool = False,
        auto_stop: bool = False,
        today: date | None = None,
    ) -> ContinueResult | None:
        """Resume a chosen entry. Returns ``None`` when nothing can be continued."""
        today = today or date.today()
        entries = self.candidates(days, today)
        if not entries:
            logger.info("No stopped time entries to continue", days=days)
            return None

        index = self.prompter.fuzzy_select(
            "Select an entry to continue", [format_entry_label(e) for e in entries]
        )
        entry = entries[index]

        def choose_mode() -> None:
            nonlocal mode
            if mode is ContinueMode.ASK:
                mode = self._ask_mode(entry)

        def start() -> TimeEntry:
            if mode is ContinueMode.RESTART:
                return self.harvest.restart_entry(entry, self.ctx)
            return self.harvest.create_timer(
                entry.notes or "",
                entry.project.id,
                entry.task.id,
                self.ctx,
                spent_date=today,
            )

        target = TimerTarget(match_token=entry.notes or "", description=format_entry_label(entry))
        # auto_start implies auto_stop when continuing.
        resolution = self.resolver.resolve(
            target, start, auto_stop=auto_stop or auto_start, prepare=choose_mode
        )
        return ContinueResult(entry=entry, mode=mode, resolution=resolution)


__all__ = [
    "ContinueEngine",
    "ContinueMode",
    "ContinueResult",
    "continuable_entries",
    "format_entry_label",
    "lookback_range",
    "resolve_continue_mode",
    "resolve_lookback_days",
]
