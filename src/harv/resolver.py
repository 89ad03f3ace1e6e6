"""Timer conflict resolution shared by the sync, continue and add flows.

Harvest allows one running timer per user. Before starting a timer the
resolver reads the current one and decides between starting, doing nothing,
or stopping the current timer first. Nothing here locks: two invocations
running at the same moment can both see no timer and both start one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

import structlog

from harv.models import RunContext, TimeEntry
from harv.prompts import Prompter

logger = structlog.get_logger()


class ConflictAction(str, Enum):
    """What to do given the current timer."""

    START = "start"
    ALREADY_TRACKING = "already_tracking"
    STOP_AND_START = "stop_and_start"
    CONFIRM = "confirm"


class Outcome(str, Enum):
    """How a resolution ended."""

    STARTED = "started"
    SWITCHED = "switched"
    ALREADY_TRACKING = "already_tracking"
    DECLINED = "declined"


@dataclass(frozen=True)
class TimerTarget:
    """What the caller wants to track.

    ``match_token`` is compared against the running timer's notes;
    ``description`` is only used in messages.
    """

    match_token: str
    description: str


@dataclass
class Resolution:
    outcome: Outcome
    entry: TimeEntry | None = None
    stopped: TimeEntry | None = None

    @property
    def mutated(self) -> bool:
        return self.outcome in (Outcome.STARTED, Outcome.SWITCHED)


class TimerService(Protocol):
    def get_running_timer(self) -> TimeEntry | None: ...

    def stop_entry(self, entry: TimeEntry, ctx: RunContext) -> TimeEntry: ...


def is_same_work(current: TimeEntry, match_token: str) -> bool:
    # Substring containment, so PROJ-1 also matches a timer noted "PROJ-12 - ...".
    return bool(match_token) and match_token in (current.notes or "")


def decide(current: TimeEntry | None, match_token: str, auto_stop: bool) -> ConflictAction:
    """Map (running timer, target, auto-stop) to an action."""
    if current is None:
        return ConflictAction.START
    if is_same_work(current, match_token):
        return ConflictAction.ALREADY_TRACKING
    if auto_stop:
        return ConflictAction.STOP_AND_START
    return ConflictAction.CONFIRM


class TimerConflictResolver:
    """Applies :func:`decide` against the live timer and performs the mutations."""

    def __init__(self, harvest: TimerService, prompter: Prompter, ctx: RunContext) -> None:
        self.harvest = harvest
        self.prompter = prompter
        self.ctx = ctx

    def resolve(
        self,
        target: TimerTarget,
        start: Callable[[], TimeEntry],
        auto_stop: bool = False,
        prepare: Callable[[], None] | None = None,
    ) -> Resolution:
        """Start ``target`` unless it is already running, stopping any other timer first.

        ``prepare`` gathers whatever ``start`` still needs (a project and task, or
        a continue mode) and runs only once the target is known not to be
        running already, before any confirmation or mutation. ``start``
        performs the actual creation or restart and is only called once the
        running timer has been dealt with.
        """
        current = self.harvest.get_running_timer()
        action = decide(current, target.match_token, auto_stop)
        logger.debug("Timer conflict decision", action=action.value, target=target.match_token)

        if action is ConflictAction.ALREADY_TRACKING:
            logger.info("Already tracking", notes=current.notes)
            return Resolution(Outcome.ALREADY_TRACKING, entry=current)

        if prepare is not None:
            prepare()

        if action is ConflictAction.CONFIRM:
            question = (
                f"A timer is already running for '{current.notes or '(no notes)'}'. "
                f"Stop it and start '{target.description}'?"
            )
            if not self.prompter.confirm(question, default=False):
                logger.info("Keeping current timer", notes=current.notes)
                return Resolution(Outcome.DECLINED, entry=current)

        stopped = None
        if current is not None:
            stopped = self.harvest.stop_entry(current, self.ctx)

        entry = start()
        outcome = Outcome.SWITCHED if stopped is not None else Outcome.STARTED
        return Resolution(outcome, entry=entry, stopped=stopped)


__all__ = [
    "ConflictAction",
    "Outcome",
    "Resolution",
    "TimerConflictResolver",
    "TimerTarget",
    "decide",
    "is_same_work",
]
