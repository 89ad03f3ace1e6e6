"""Tests for the commit scanner, using real throw-away repositories."""

import time
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest
from structlog.testing import capture_logs

from harv.errors import RepositoryError
from harv.git import (
    discover_repositories,
    list_local_branches,
    scan_repositories,
    scan_repository,
    start_of_day,
)


class TestDiscoverRepositories:
    """Tests for discover_repositories."""

    def test_configured_paths(self, tmp_path):
        """Configured paths are used as given, with ~ expanded."""
        repos = discover_repositories(["~/a", str(tmp_path)], cwd=Path("/elsewhere"))
        assert repos[0] == Path("~/a").expanduser()
        assert repos[1] == tmp_path

    def test_empty_means_cwd(self, tmp_path):
        """An empty list falls back to the working directory."""
        assert discover_repositories([], cwd=tmp_path) == [tmp_path]


class TestStartOfDay:
    """Tests for start_of_day."""

    def test_midnight(self, noon):
        """Time components are zeroed and the local date kept."""
        midnight = start_of_day(noon)
        assert midnight.hour == 0 and midnight.minute == 0 and midnight.second == 0
        assert midnight.date() == noon.date()
        assert midnight.utcoffset() is not None

    @pytest.mark.skipif(not hasattr(time, "tzset"), reason="needs time.tzset")
    def test_daylight_saving_change_day(self, monkeypatch):
        """Midnight keeps its own offset on the day clocks move forward."""
        monkeypatch.setenv("TZ", "America/New_York")
        time.tzset()
        try:
            noon = datetime(2026, 3, 8, 12).astimezone()
            assert noon.utcoffset() == timedelta(hours=-4)

            midnight = start_of_day(noon)

            assert (midnight.date(), midnight.hour) == (date(2026, 3, 8), 0)
            assert midnight.utcoffset() == timedelta(hours=-5)
            assert noon - midnight == timedelta(hours=11)
        finally:
            monkeypatch.undo()
            time.tzset()


class TestScanRepository:
    """Tests for scan_repository."""

    def test_todays_commits_only(self, git_repo, noon):
        """Commits from before midnight are excluded."""
        repo = git_repo()
        repo.commit("OLD-1 yesterday", noon - timedelta(days=1))
        sha = repo.commit("CS-1 today", noon - timedelta(hours=1))

        commits = scan_repository(repo.path, now=noon)

        assert [c.id for c in commits] == [sha]
        assert commits[0].message == "CS-1 today"
        assert commits[0].author == "Test User"
        assert commits[0].branch == "main"

    def test_commits_after_now_excluded(self, git_repo, noon):
        """The window ends at now."""
        repo = git_repo()
        repo.commit("CS-2 later", noon + timedelta(hours=1))
        assert scan_repository(repo.path, now=noon) == []

    def test_all_local_branches(self, git_repo, noon):
        """Commits on every local branch are found."""
        repo = git_repo()
        repo.commit("CS-1 on main", noon - timedelta(hours=3))
        repo.branch("feature")
        repo.commit("CS-2 on feature", noon - timedelta(hours=2))
        repo.checkout("main")

        commits = scan_repository(repo.path, now=noon)

        assert {c.message for c in commits} == {"CS-1 on main", "CS-2 on feature"}
        assert sorted(list_local_branches(repo.path)) == ["refs/heads/feature", "refs/heads/main"]

    def test_shared_commit_counted_once(self, git_repo, noon):
        """A commit reachable from two branches appears once."""
        repo = git_repo()
        sha = repo.commit("CS-1 shared", noon - timedelta(hours=3))
        repo.branch("feature")

        commits = scan_repository(repo.path, now=noon)

        assert [c.id for c in commits] == [sha]

    def test_newest_first(self, git_repo, noon):
        """Commits are ordered newest first."""
        repo = git_repo()
        first = repo.commit("CS-1 first", noon - timedelta(hours=3))
        second = repo.commit("CS-2 second", noon - timedelta(hours=1))

        assert [c.id for c in scan_repository(repo.path, now=noon)] == [second, first]

    def test_multiline_message(self, git_repo, noon):
        """The full message body is kept."""
        repo = git_repo()
        repo.commit("Subject line\n\nRefs CS-7", noon - timedelta(hours=1))

        (commit,) = scan_repository(repo.path, now=noon)
        assert "Refs CS-7" in commit.message

    def test_missing_path(self, tmp_path, noon):
        """A missing directory raises RepositoryError."""
        with pytest.raises(RepositoryError) as exc:
            scan_repository(tmp_path / "missing", now=noon)
        assert exc.value.path == str(tmp_path / "missing")

    def test_not_a_repository(self, tmp_path, noon):
        """A plain directory raises RepositoryError."""
        plain = tmp_path / "plain"
        plain.mkdir()
        with pytest.raises(RepositoryError):
            scan_repository(plain, now=noon)

    def test_empty_repository(self, git_repo, noon):
        """A repository without commits yields nothing."""
        repo = git_repo()
        assert scan_repository(repo.path, now=noon) == []


class TestScanRepositories:
    """Tests for scan_repositories."""

    def test_bad_repository_skipped(self, git_repo, tmp_path, noon):
        """One unreadable repository does not stop the others."""
        good = git_repo("good")
        good.commit("CS-1 work", noon - timedelta(hours=1))
        good.commit("CS-1 more work", noon - timedelta(minutes=30))

        with capture_logs() as logs:
            commits = scan_repositories([tmp_path / "broken", good.path], now=noon)

        assert len(commits) == 2
        warnings = [log for log in logs if log["log_level"] == "warning"]
        assert warnings[0]["event"] == "Skipping repository"
        assert warnings[0]["path"] == str(tmp_path / "broken")

    def test_repository_without_todays_commits_warns(self, git_repo, noon):
        """A repository with nothing from today is reported."""
        repo = git_repo()
        repo.commit("OLD-1", noon - timedelta(days=2))

        with capture_logs() as logs:
            assert scan_repositories([repo.path], now=noon) == []

        assert any(log["event"] == "No commits from today" for log in logs)

    def test_merged_across_repositories(self, git_repo, noon):
        """Commits from several repositories are merged newest first."""
        a = git_repo("a")
        b = git_repo("b")
        older = a.commit("CS-1", noon - timedelta(hours=2))
        newer = b.commit("CS-2", noon - timedelta(hours=1))

        commits = scan_repositories([a.path, b.path], now=noon)

        assert [c.id for c in commits] == [newer, older]
