"""Project and task usage history.

Pickers list recently used projects and tasks first. The history is a small
JSON file next to the configuration file; a missing or unreadable file just
means no history.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol, TypeVar

import structlog

from harv.config import default_config_path

logger = structlog.get_logger()

USAGE_FILE_NAME = "usage.json"
USAGE_FILE_VERSION = 1


class Named(Protocol):
    @property
    def name(self) -> str: ...


N = TypeVar("N", bound=Named)


@dataclass
class UsageRecord:
    last_used: datetime
    use_count: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {"last_used": self.last_used.isoformat(), "use_count": self.use_count}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UsageRecord:
        return cls(
            last_used=datetime.fromisoformat(data["last_used"]),
            use_count=int(data["use_count"]),
        )


def default_usage_path(config_path: Path | None = None) -> Path:
    return (config_path or default_config_path()).parent / USAGE_FILE_NAME


def _records(raw: Any) -> dict[int, UsageRecord]:
    return {int(key): UsageRecord.from_dict(value) for key, value in (raw or {}).items()}


def _touch(records: dict[int, UsageRecord], key: int, now: datetime | None) -> None:
    now = now or datetime.now(timezone.utc)
    record = records.get(key)
    if record is None:
        records[key] = UsageRecord(last_used=now)
    else:
        record.last_used = now
        record.use_count += 1


@dataclass
class UsageCache:
    """Last use and use count per project id and per task id."""

    path: Path
    projects: dict[int, UsageRecord] = field(default_factory=dict)
    tasks: dict[int, UsageRecord] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path | None = None) -> UsageCache:
        """Read the history, starting empty when the file is missing or corrupt."""
        path = path or default_usage_path()
        if not path.exists():
            logger.debug("No usage history yet", path=str(path))
            return cls(path)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            version = data.get("version", USAGE_FILE_VERSION)
            if version > USAGE_FILE_VERSION:
                raise ValueError(
                    f"version {version} is newer than supported version {USAGE_FILE_VERSION}"
                )
            cache = cls(
                path,
                projects=_records(data.get("projects")),
                tasks=_records(data.get("tasks")),
            )
        except (OSError, ValueError, TypeError, KeyError, AttributeError) as e:
            logger.warning(
                "Failed to load usage history, starting fresh", path=str(path), error=str(e)
            )
            return cls(path)

        logger.debug(
            "Loaded usage history", projects=len(cache.projects), tasks=len(cache.tasks)
        )
        return cache

    def save(self) -> None:
        """Write the history atomically with owner-only permissions.

        A failed write is logged and otherwise ignored.
        """
        data = {
            "version": USAGE_FILE_VERSION,
            "projects": {str(key): record.to_dict() for key, record in self.projects.items()},
            "tasks": {str(key): record.to_dict() for key, record in self.tasks.items()},
        }
        temp_path = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            if os.name == "posix":
                temp_path.chmod(0o600)
            os.replace(temp_path, self.path)
        except OSError as e:
            logger.warning("Failed to save usage history", path=str(self.path), error=str(e))
            return
        logger.debug("Saved usage history", path=str(self.path))

    def record_project(self, project_id: int, now: datetime | None = None) -> None:
        _touch(self.projects, project_id, now)

    def record_task(self, task_id: int, now: datetime | None = None) -> None:
        _touch(self.tasks, task_id, now)

    def project_score(self, project_id: int) -> UsageRecord | None:
        return self.projects.get(project_id)

    def task_score(self, task_id: int) -> UsageRecord | None:
        return self.tasks.get(task_id)

    def record_use(self, project_id: int, task_id: int, now: datetime | None = None) -> None:
        """Record one use of a project and task, then save."""
        self.record_project(project_id, now)
        self.record_task(task_id, now)
        self.save()


def sort_by_usage(items: Iterable[N], score: Callable[[N], UsageRecord | None]) -> list[N]:
    """Most recently used first, ties broken by use count; unused items follow by name."""
    used: list[tuple[UsageRecord, N]] = []
    unused: list[N] = []
    for item in items:
        record = score(item)
        if record is None:
            unused.append(item)
        else:
            used.append((record, item))

    used.sort(key=lambda pair: (pair[0].last_used, pair[0].use_count), reverse=True)
    unused.sort(key=lambda item: item.name)
    return [item for _, item in used] + unused


__all__ = [
    "USAGE_FILE_NAME",
    "UsageCache",
    "UsageRecord",
    "default_usage_path",
    "sort_by_usage",
]
