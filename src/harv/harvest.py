"""Harvest v2 REST client.

Every mutating call goes through :meth:`HarvestClient._mutate`, the single
place where dry-run suppresses network writes.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Iterator

import httpx
import structlog

from harv.config import HarvestConfig
from harv.errors import HarvestApiError, RemoteMutationError
from harv.models import Project, RunContext, Task, TimeEntry

logger = structlog.get_logger()


class HarvestClient:
    """Client for the Harvest time-tracking API."""

    def __init__(
        self,
        config: HarvestConfig,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.config.access_token}",
                    "Harvest-Account-Id": self.config.account_id,
                    "User-Agent": self.config.user_agent,
                    "Accept": "application/json",
                },
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _request(self, method: str, path: str, action: str, **kwargs: Any) -> Any:
        """Make an authenticated request and return the decoded JSON body."""
        logger.debug("Harvest request", method=method, path=path)
        try:
            response = self._get_client().request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise HarvestApiError(f"Failed to {action}: {e}") from e

        if response.is_error:
            raise HarvestApiError(
                f"Failed to {action} ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise HarvestApiError(f"Failed to parse response to {action}: {e}") from e

    def _paginate(
        self, path: str, key: str, action: str, params: dict[str, Any] | None = None
    ) -> Iterator[dict[str, Any]]:
        page: int | None = 1
        while page is not None:
            data = self._request("GET", path, action, params={**(params or {}), "page": page})
            yield from data.get(key) or []
            page = data.get("next_page")

    def _mutate(
        self,
        ctx: RunContext,
        method: str,
        path: str,
        action: str,
        preview: TimeEntry,
        json: dict[str, Any] | None = None,
    ) -> TimeEntry:
        if ctx.dry_run:
            logger.info(f"[DRY RUN] Would {action}", path=path, body=json)
            return preview

        try:
            data = self._request(method, path, action, json=json)
        except HarvestApiError as e:
            raise RemoteMutationError(str(e), status_code=e.status_code) from e
        return TimeEntry.from_api(data)

    def _parse_project(self, data: dict[str, Any]) -> Project:
        return Project(id=data["id"], name=data["name"], code=data.get("code"))

    def _parse_task(self, data: dict[str, Any]) -> Task:
        return Task(id=data["id"], name=data["name"])

    # Reads

    def get_running_timer(self) -> TimeEntry | None:
        """Return the running timer, if any."""
        data = self._request(
            "GET", "/time_entries", "fetch running timer", params={"is_running": "true"}
        )
        for item in data.get("time_entries") or []:
            entry = TimeEntry.from_api(item)
            if entry.is_running:
                return entry
        return None

    def list_entries(self, start: date, end: date) -> list[TimeEntry]:
        """Return all entries with ``spent_date`` in ``[start, end]``."""
        params = {"from": start.isoformat(), "to": end.isoformat()}
        return [
            TimeEntry.from_api(item)
            for item in self._paginate("/time_entries", "time_entries", "fetch time entries", params)
        ]

    def todays_entries(self, today: date | None = None) -> list[TimeEntry]:
        today = today or date.today()
        return self.list_entries(today, today)

    def _project_assignments(self) -> list[dict[str, Any]]:
        return [
            assignment
            for assignment in self._paginate(
                "/users/me/project_assignments",
                "project_assignments",
                "fetch user project assignments",
            )
            if assignment.get("is_active", True)
        ]

    def list_projects(self) -> list[Project]:
        """Return active projects, via user assignments when the account lacks admin access."""
        try:
            items = list(
                self._paginate("/projects", "projects", "fetch projects", {"is_active": "true"})
            )
        except HarvestApiError as e:
            if e.status_code != 403:
                raise
            logger.warning("Access denied to /projects, using user project assignments")
            items = [assignment["project"] for assignment in self._project_assignments()]

        projects = [self._parse_project(item) for item in items]
        logger.debug("Retrieved projects", count=len(projects))
        return projects

    def list_project_tasks(self, project_id: int) -> list[Task]:
        """Return the active tasks assigned to one project."""
        try:
            items = list(
                self._paginate(
                    f"/projects/{project_id}/task_assignments",
                    "task_assignments",
                    "fetch tasks",
                )
            )
        except HarvestApiError as e:
            if e.status_code != 403:
                raise
            logger.warning(
                "Access denied to project task assignments, using user project assignments",
                project_id=project_id,
            )
            for assignment in self._project_assignments():
                if assignment["project"]["id"] == project_id:
                    items = assignment.get("task_assignments") or []
                    break
            else:
                raise HarvestApiError(
                    f"Project {project_id} not found in user assignments or not accessible"
                )

        return [
            self._parse_task(item["task"]) for item in items if item.get("is_active", True)
        ]

    # Mutations

    def create_timer(
        self,
        notes: str,
        project_id: int,
        task_id: int,
        ctx: RunContext,
        spent_date: date | None = None,
        external_reference: dict[str, str] | None = None,
    ) -> TimeEntry:
        """Start a running timer."""
        spent_date = spent_date or date.today()
        body: dict[str, Any] = {
            "project_id": project_id,
            "task_id": task_id,
            "spent_date": spent_date.isoformat(),
            "notes": notes,
        }
        if external_reference:
            body["external_reference"] = external_reference

        preview = TimeEntry(
            id=0, spent_date=spent_date.isoformat(), hours=0.0, notes=notes, is_running=True
        )
        entry = self._mutate(ctx, "POST", "/time_entries", "create time entry", preview, json=body)
        logger.info("Created time entry", notes=notes, entry_id=entry.id)
        return entry

    def create_stopped_entry(
        self,
        notes: str,
        project_id: int,
        task_id: int,
        hours: float,
        ctx: RunContext,
        spent_date: date | None = None,
    ) -> TimeEntry:
        """Create a completed entry with a fixed duration."""
        spent_date = spent_date or date.today()
        body = {
            "project_id": project_id,
            "task_id": task_id,
            "spent_date": spent_date.isoformat(),
            "notes": notes,
            "hours": hours,
        }
        preview = TimeEntry(
            id=0, spent_date=spent_date.isoformat(), hours=hours, notes=notes, is_running=False
        )
        entry = self._mutate(
            ctx, "POST", "/time_entries", "create stopped time entry", preview, json=body
        )
        logger.info("Created stopped time entry", notes=notes, hours=hours)
        return entry

    def stop_entry(self, entry: TimeEntry, ctx: RunContext) -> TimeEntry:
        """Stop a running timer."""
        preview = TimeEntry(
            id=entry.id,
            spent_date=entry.spent_date,
            hours=entry.hours,
            notes=entry.notes,
            is_running=False,
            project=entry.project,
            task=entry.task,
        )
        stopped = self._mutate(
            ctx, "PATCH", f"/time_entries/{entry.id}/stop", "stop time entry", preview
        )
        logger.info("Stopped time entry", entry_id=entry.id)
        return stopped

    def restart_entry(self, entry: TimeEntry, ctx: RunContext) -> TimeEntry:
        """Reset an entry's hours to zero and restart it on its original date."""
        preview = TimeEntry(
            id=entry.id,
            spent_date=entry.spent_date,
            hours=0.0,
            notes=entry.notes,
            is_running=True,
            project=entry.project,
            task=entry.task,
        )
        self._mutate(
            ctx, "PATCH", f"/time_entries/{entry.id}", "reset time entry hours", preview,
            json={"hours": 0},
        )
        restarted = self._mutate(
            ctx, "PATCH", f"/time_entries/{entry.id}/restart", "restart time entry", preview
        )
        logger.info("Restarted time entry", entry_id=entry.id, spent_date=entry.spent_date)
        return restarted


__all__ = ["HarvestClient"]
