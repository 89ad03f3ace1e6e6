"""Shared fixtures for harv tests."""

from __future__ import annotations

import os
import subprocess
from datetime import date, datetime
from pathlib import Path

import pytest
import structlog

from harv.errors import HarvestApiError, TicketNotFoundError
from harv.models import Project, RunContext, Task, Ticket, TimeEntry

MUTATIONS = {"create_timer", "create_stopped_entry", "stop_entry", "restart_entry"}


class FakeHarvest:
    """In-memory stand-in for HarvestClient."""

    def __init__(
        self,
        running: TimeEntry | None = None,
        entries: list[TimeEntry] | None = None,
        projects: list[Project] | None = None,
        tasks: dict[int, list[Task]] | None = None,
    ) -> None:
        self.running = running
        self.entries = list(entries or [])
        self.projects = list(projects or [])
        self.tasks = dict(tasks or {})
        self.task_errors: set[int] = set()
        self.create_failures: dict[tuple[int, int], Exception] = {}
        self.calls: list[tuple[str, tuple]] = []
        self._next_id = 1000

    @property
    def mutations(self) -> list[str]:
        return [name for name, _ in self.calls if name in MUTATIONS]

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id

    def get_running_timer(self) -> TimeEntry | None:
        self.calls.append(("get_running_timer", ()))
        return self.running

    def list_entries(self, start: date, end: date) -> list[TimeEntry]:
        self.calls.append(("list_entries", (start, end)))
        return [e for e in self.entries if start <= date.fromisoformat(e.spent_date) <= end]

    def todays_entries(self, today: date | None = None) -> list[TimeEntry]:
        today = today or date.today()
        return self.list_entries(today, today)

    def list_projects(self) -> list[Project]:
        self.calls.append(("list_projects", ()))
        return self.projects

    def list_project_tasks(self, project_id: int) -> list[Task]:
        self.calls.append(("list_project_tasks", (project_id,)))
        if project_id in self.task_errors:
            raise HarvestApiError("Failed to fetch tasks (500): boom", status_code=500)
        return self.tasks.get(project_id, [])

    def create_timer(
        self, notes, project_id, task_id, ctx, spent_date=None, external_reference=None
    ) -> TimeEntry:
        spent_date = spent_date or date.today()
        self.calls.append(
            ("create_timer", (notes, project_id, task_id, spent_date, external_reference))
        )
        entry = TimeEntry(
            id=0 if ctx.dry_run else self._id(),
            spent_date=spent_date.isoformat(),
            hours=0.0,
            notes=notes,
            is_running=True,
            project=Project(id=project_id, name=f"Project {project_id}"),
            task=Task(id=task_id, name=f"Task {task_id}"),
        )
        if not ctx.dry_run:
            self.running = entry
            self.entries.append(entry)
        return entry

    def create_stopped_entry(
        self, notes, project_id, task_id, hours, ctx, spent_date=None
    ) -> TimeEntry:
        spent_date = spent_date or date.today()
        self.calls.append(
            ("create_stopped_entry", (notes, project_id, task_id, hours, spent_date))
        )
        failure = self.create_failures.get((project_id, task_id))
        if failure is not None:
            raise failure
        entry = TimeEntry(
            id=0 if ctx.dry_run else self._id(),
            spent_date=spent_date.isoformat(),
            hours=hours,
            notes=notes,
            project=Project(id=project_id, name=f"Project {project_id}"),
            task=Task(id=task_id, name=f"Task {task_id}"),
        )
        if not ctx.dry_run:
            self.entries.append(entry)
        return entry

    def stop_entry(self, entry: TimeEntry, ctx: RunContext) -> TimeEntry:
        self.calls.append(("stop_entry", (entry.id,)))
        if not ctx.dry_run:
            self.running = None
            entry.is_running = False
        return entry

    def restart_entry(self, entry: TimeEntry, ctx: RunContext) -> TimeEntry:
        self.calls.append(("restart_entry", (entry.id, entry.spent_date)))
        restarted = TimeEntry(
            id=entry.id,
            spent_date=entry.spent_date,
            hours=0.0,
            notes=entry.notes,
            is_running=True,
            project=entry.project,
            task=entry.task,
        )
        if not ctx.dry_run:
            self.running = restarted
        return restarted


class FakeJira:
    """Issue lookup backed by a dict; missing keys raise TicketNotFoundError."""

    def __init__(self, tickets: dict[str, Ticket] | None = None, errors=None) -> None:
        self.tickets = dict(tickets or {})
        self.errors = dict(errors or {})
        self.lookups: list[str] = []

    def get_issue(self, key: str) -> Ticket:
        self.lookups.append(key)
        if key in self.errors:
            raise self.errors[key]
        if key not in self.tickets:
            raise TicketNotFoundError(key, f"Ticket {key} not found.")
        return self.tickets[key]

    def ticket_url(self, key: str) -> str:
        return f"https://example.atlassian.net/browse/{key}"


def make_entry(
    entry_id: int,
    notes: str | None = "CS-1 - Fix login",
    spent_date: str | None = None,
    hours: float = 1.5,
    is_running: bool = False,
    project: Project | None = Project(id=1, name="Backend"),
    task: Task | None = Task(id=10, name="Development"),
) -> TimeEntry:
    return TimeEntry(
        id=entry_id,
        spent_date=spent_date or date.today().isoformat(),
        hours=hours,
        notes=notes,
        is_running=is_running,
        project=project,
        task=task,
    )


class GitRepo:
    """Throw-away git repository with controllable commit dates."""

    def __init__(self, path: Path) -> None:
        self.path = path
        path.mkdir(parents=True, exist_ok=True)
        self.git("init", "-q")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")

    def git(self, *args: str, timestamp: int | None = None) -> str:
        env = dict(os.environ)
        if timestamp is not None:
            env["GIT_AUTHOR_DATE"] = f"{timestamp} +0000"
            env["GIT_COMMITTER_DATE"] = f"{timestamp} +0000"
        result = subprocess.run(
            [
                "git",
                "-c", "user.name=Test User",
                "-c", "user.email=test@example.com",
                "-c", "commit.gpgsign=false",
                *args,
            ],
            cwd=self.path,
            env=env,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout

    def commit(self, message: str, when: datetime) -> str:
        self.git("commit", "-q", "--allow-empty", "-m", message, timestamp=int(when.timestamp()))
        return self.git("rev-parse", "HEAD").strip()

    def branch(self, name: str) -> None:
        self.git("checkout", "-q", "-b", name)

    def checkout(self, name: str) -> None:
        self.git("checkout", "-q", name)


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    """Keep the config and usage files out of the real home directory."""
    monkeypatch.setenv("HARV_CONFIG", str(tmp_path / "home-config" / "config.yml"))


@pytest.fixture
def noon() -> datetime:
    return datetime.now().astimezone().replace(hour=12, minute=0, second=0, microsecond=0)


@pytest.fixture
def git_repo(tmp_path):
    def factory(name: str = "repo") -> GitRepo:
        return GitRepo(tmp_path / name)

    return factory


@pytest.fixture
def ctx() -> RunContext:
    return RunContext()


@pytest.fixture
def dry_ctx() -> RunContext:
    return RunContext(dry_run=True)
