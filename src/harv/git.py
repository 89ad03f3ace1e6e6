"""Commit scanning across local git repositories.

Shells out to the ``git`` executable. Each repository is scanned branch by
branch for commits made since local midnight; commits reachable from several
branches are reported once.
"""

from __future__ import annotations

import subprocess
from datetime import datetime, time
from pathlib import Path
from typing import Iterable, Sequence

import structlog

from harv.errors import RepositoryError
from harv.models import Commit

logger = structlog.get_logger()

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = f"--format=%H{_FIELD_SEP}%an{_FIELD_SEP}%ct{_FIELD_SEP}%B{_RECORD_SEP}"


def discover_repositories(configured: Sequence[str], cwd: Path | None = None) -> list[Path]:
    """Return the repositories to scan: the configured list, or the working directory."""
    if configured:
        return [Path(path).expanduser() for path in configured]
    return [cwd or Path.cwd()]


def start_of_day(now: datetime) -> datetime:
    """Return local midnight for the day containing ``now``.

    Midnight gets its own UTC offset, which differs from ``now``'s on a
    daylight-saving change day.
    """
    local_date = now.astimezone().date()
    return datetime.combine(local_date, time()).astimezone()


def _run_git(repo: Path, *args: str) -> str:
    try:
        result = subprocess.run(
            ["git", "-C", str(repo), *args],
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise RepositoryError(str(repo), f"could not run git: {e}") from e

    if result.returncode != 0:
        detail = result.stderr.strip() or f"git {args[0]} exited with {result.returncode}"
        raise RepositoryError(str(repo), detail)
    return result.stdout


def list_local_branches(repo: Path) -> list[str]:
    """Return the full ref names of all local branches (no remotes)."""
    output = _run_git(repo, "for-each-ref", "--format=%(refname)", "refs/heads")
    return [line.strip() for line in output.splitlines() if line.strip()]


def _parse_log(output: str, branch: str) -> list[Commit]:
    commits = []
    for record in output.split(_RECORD_SEP):
        record = record.lstrip("\n")
        if not record:
            continue
        sha, author, timestamp, message = record.split(_FIELD_SEP, 3)
        commits.append(
            Commit(
                id=sha,
                message=message.strip(),
                author=author or "unknown",
                timestamp=int(timestamp),
                branch=branch,
            )
        )
    return commits


def scan_repository(repo: Path, now: datetime | None = None) -> list[Commit]:
    """Return today's commits across all local branches of one repository.

    Raises:
        RepositoryError: if the path is not a readable git repository.
    """
    now = now or datetime.now().astimezone()
    since = start_of_day(now)
    lower, upper = int(since.timestamp()), int(now.timestamp())

    if not repo.is_dir():
        raise RepositoryError(str(repo), "not a directory")
    _run_git(repo, "rev-parse", "--git-dir")

    seen: dict[str, Commit] = {}
    for ref in list_local_branches(repo):
        branch = ref.removeprefix("refs/heads/")
        logger.debug("Checking branch", repo=str(repo), branch=branch)
        output = _run_git(
            repo,
            "log",
            ref,
            f"--since={since.isoformat(timespec='seconds')}",
            _LOG_FORMAT,
            "--",
        )
        for commit in _parse_log(output, branch):
            if lower <= commit.timestamp <= upper and commit.id not in seen:
                seen[commit.id] = commit

    logger.debug("Scanned repository", repo=str(repo), commits=len(seen))
    return sorted(seen.values(), key=lambda c: (-c.timestamp, c.id))


def scan_repositories(repos: Iterable[Path], now: datetime | None = None) -> list[Commit]:
    """Scan every repository, skipping the ones that fail.

    One unreadable repository never aborts the scan; it is logged and the
    remaining repositories are still processed in order.
    """
    now = now or datetime.now().astimezone()
    merged: dict[str, Commit] = {}
    for repo in repos:
        try:
            commits = scan_repository(repo, now=now)
        except RepositoryError as e:
            logger.warning("Skipping repository", path=str(repo), error=str(e))
            continue

        if not commits:
            logger.warning("No commits from today", path=str(repo))
            continue

        for commit in commits:
            merged.setdefault(commit.id, commit)

    return sorted(merged.values(), key=lambda c: (-c.timestamp, c.id))


__all__ = [
    "discover_repositories",
    "list_local_branches",
    "scan_repositories",
    "scan_repository",
    "start_of_day",
]
