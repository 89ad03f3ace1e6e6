"""Data model shared across the sync, continue and generate flows."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union


@dataclass(frozen=True)
class Commit:
    """A commit found by the scanner. Identity is the commit hash."""

    id: str
    message: str = field(compare=False)
    author: str = field(compare=False)
    timestamp: int = field(compare=False)
    branch: str = field(compare=False)


@dataclass(frozen=True)
class Ticket:
    """An issue-tracker ticket resolved to its summary and status."""

    key: str
    summary: str
    status: str | None = None

    is_placeholder: ClassVar[bool] = False

    @property
    def notes(self) -> str:
        return f"{self.key} - {self.summary}"

    @property
    def label(self) -> str:
        status = f" [{self.status}]" if self.status else ""
        return f"{self.key} - {self.summary}{status}"


@dataclass(frozen=True)
class PlaceholderTicket:
    """Stand-in for a ticket whose lookup failed."""

    key: str
    error: str

    is_placeholder: ClassVar[bool] = True

    @property
    def summary(self) -> str:
        return ""

    @property
    def status(self) -> str | None:
        return None

    @property
    def notes(self) -> str:
        return self.key

    @property
    def label(self) -> str:
        return f"{self.key} - (lookup failed: {self.error})"


SelectableTicket = Union[Ticket, PlaceholderTicket]


@dataclass(frozen=True)
class Project:
    """A time-tracking project."""

    id: int
    name: str
    code: str | None = None

    @property
    def label(self) -> str:
        return f"{self.name} [{self.code}]" if self.code else self.name


@dataclass(frozen=True)
class Task:
    """A time-tracking task."""

    id: int
    name: str


@dataclass(frozen=True)
class ProjectTask:
    """A task as assigned to a specific project."""

    project_id: int
    task: Task


@dataclass
class TimeEntry:
    """A time entry, running or stopped.

    A running entry doubles as the RunningTimer: ``hours`` is the elapsed
    time and ``started_time`` the wall-clock start reported by the service.
    """

    id: int
    spent_date: str
    hours: float | None = None
    notes: str | None = None
    is_running: bool = False
    project: Project | None = None
    task: Task | None = None
    started_time: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> TimeEntry:
        project = data.get("project")
        task = data.get("task")
        return cls(
            id=data["id"],
            spent_date=data["spent_date"],
            hours=data.get("hours"),
            notes=data.get("notes"),
            is_running=bool(data.get("is_running", False)),
            project=Project(id=project["id"], name=project["name"], code=project.get("code"))
            if project
            else None,
            task=Task(id=task["id"], name=task["name"]) if task else None,
            started_time=data.get("started_time"),
        )


@dataclass
class ProposedEntry:
    """A time entry proposed by the AI provider, pending approval."""

    description: str
    project_id: int
    task_id: int
    hours: float
    confidence: float | None = None

    def dedup_key(self) -> tuple[str, int, int, int]:
        return (self.description, self.project_id, self.task_id, round(self.hours * 100))


@dataclass(frozen=True)
class RunContext:
    """Per-invocation flags. Never persisted."""

    dry_run: bool = False
    verbose: bool = False
    quiet: bool = False


__all__ = [
    "Commit",
    "PlaceholderTicket",
    "Project",
    "ProjectTask",
    "ProposedEntry",
    "RunContext",
    "SelectableTicket",
    "Task",
    "Ticket",
    "TimeEntry",
]
