"""Billing context handed to the AI provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

import structlog

from harv.errors import HarvestApiError
from harv.models import Project, ProjectTask, TimeEntry

logger = structlog.get_logger()


@dataclass
class AiContext:
    """What the provider needs to allocate today's remaining hours."""

    projects: list[Project]
    tasks: list[ProjectTask]
    existing_entries: list[TimeEntry]
    target_hours: float
    logged_hours: float = 0.0
    project_names: dict[int, str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.project_names = {project.id: project.name for project in self.projects}

    @property
    def remaining_hours(self) -> float:
        return max(self.target_hours - self.logged_hours, 0.0)

    def has_project(self, project_id: int) -> bool:
        return project_id in self.project_names

    def has_task(self, task_id: int) -> bool:
        return any(assignment.task.id == task_id for assignment in self.tasks)

    def fallback_assignment(self) -> tuple[int, int] | None:
        """Project and task of the most recent entry today that has both."""
        for entry in self.existing_entries:
            if entry.project is not None and entry.task is not None:
                return entry.project.id, entry.task.id
        return None


def gather_context(harvest, target_hours: float, today: date | None = None) -> AiContext:
    """Fetch projects, their tasks and today's entries.

    A project whose tasks cannot be fetched is skipped; the rest of the
    catalog is still used.
    """
    projects = harvest.list_projects()

    tasks: list[ProjectTask] = []
    for project in projects:
        try:
            project_tasks = harvest.list_project_tasks(project.id)
        except HarvestApiError as e:
            logger.warning("Skipping project tasks", project_id=project.id, error=str(e))
            continue
        tasks.extend(ProjectTask(project_id=project.id, task=task) for task in project_tasks)

    entries = harvest.todays_entries(today)
    logged = sum(entry.hours or 0.0 for entry in entries)
    logger.debug(
        "Gathered AI context",
        projects=len(projects),
        tasks=len(tasks),
        entries=len(entries),
        logged_hours=logged,
    )
    return AiContext(
        projects=projects,
        tasks=tasks,
        existing_entries=entries,
        target_hours=target_hours,
        logged_hours=logged,
    )
