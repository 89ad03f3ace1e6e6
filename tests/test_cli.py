"""Tests for the command line interface."""

import json
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner
from rich.console import Console

from conftest import FakeHarvest, FakeJira, make_entry
from harv.ai.providers import ProviderName
from harv.cli import cli
from harv.config import CONFIG_TEMPLATE, parse_config
from harv.models import Project, Task
from harv.prompts import ScriptedPrompter

CONFIG = """
harvest:
  access_token: harvest-token-123
  account_id: "1"
  project_id: 100
  task_id: 200
jira:
  access_token: jira-token-456
  base_url: https://acme.atlassian.net
ai:
  enabled: true
  api_key: sk-secret-key
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def harvest():
    return FakeHarvest(
        projects=[Project(1, "Backend")],
        tasks={1: [Task(10, "Development")]},
    )


def invoke(runner, args, harvest=None, answers=(), config=CONFIG, **obj):
    state = {
        "config": parse_config(config),
        "harvest": harvest or FakeHarvest(),
        "jira": FakeJira(),
        "prompter": ScriptedPrompter(answers),
        "console": Console(width=200),
        **obj,
    }
    return runner.invoke(cli, args, obj=state)


class TestCli:
    """Tests for the top-level group."""

    def test_version(self, runner):
        """--version prints the version."""
        result = runner.invoke(cli, ["--version"], obj={})
        assert result.exit_code == 0
        assert "harv" in result.output

    def test_no_command_runs_sync(self, runner, tmp_path, monkeypatch):
        """Bare harv runs sync."""
        monkeypatch.chdir(tmp_path)
        result = invoke(runner, [])
        assert result.exit_code == 0
        assert "No tickets found in today's commits" in result.output


class TestStatus:
    """Tests for harv status."""

    def test_running_and_entries(self, runner):
        """The running timer and today's table are shown."""
        running = make_entry(1, notes="CS-1 - Fix login", hours=0.75, is_running=True)
        harvest = FakeHarvest(running=running, entries=[running, make_entry(2, notes="Standup")])

        result = invoke(runner, ["status"], harvest=harvest)

        assert result.exit_code == 0
        assert "Running:" in result.output
        assert "CS-1 - Fix login" in result.output
        assert "Standup" in result.output
        assert "2.25" in result.output

    def test_nothing(self, runner):
        """An empty day says so."""
        result = invoke(runner, ["status"])
        assert "No timer running" in result.output
        assert "No time entries today" in result.output


class TestStop:
    """Tests for harv stop."""

    def test_stop(self, runner):
        """The running timer is stopped."""
        harvest = FakeHarvest(running=make_entry(1, is_running=True))
        result = invoke(runner, ["stop"], harvest=harvest)

        assert result.exit_code == 0
        assert "Stopped:" in result.output
        assert harvest.mutations == ["stop_entry"]

    def test_dry_run(self, runner):
        """Dry-run leaves the timer running."""
        running = make_entry(1, is_running=True)
        harvest = FakeHarvest(running=running)
        result = invoke(runner, ["--dry-run", "stop"], harvest=harvest)

        assert "[DRY RUN] Stopped:" in result.output
        assert harvest.running is running

    def test_nothing_running(self, runner):
        """Nothing to stop is not an error."""
        result = invoke(runner, ["stop"])
        assert result.exit_code == 0
        assert "No timer running" in result.output


class TestContinue:
    """Tests for harv continue."""

    def test_conflicting_flags(self, runner):
        """--restart and --new-entry are mutually exclusive."""
        result = invoke(runner, ["continue", "--restart", "--new-entry"])
        assert result.exit_code == 2
        assert "cannot be used together" in result.output

    def test_nothing_to_continue(self, runner):
        """An empty day prints a notice."""
        result = invoke(runner, ["continue"])
        assert result.exit_code == 0
        assert "No stopped time entries found today" in result.output

    def test_nothing_in_window(self, runner):
        """The notice names the lookback window."""
        result = invoke(runner, ["continue", "--days", "3"])
        assert "No stopped time entries found in the last 3 days" in result.output

    def test_restart(self, runner):
        """--restart restarts the chosen entry."""
        harvest = FakeHarvest(entries=[make_entry(4, notes="CS-1 - Fix login")])
        result = invoke(runner, ["continue", "--restart"], harvest=harvest, answers=[0])

        assert result.exit_code == 0
        assert harvest.mutations == ["restart_entry"]
        assert "Started timer:" in result.output


class TestGenerate:
    """Tests for harv generate."""

    def provider(self, entries):
        provider = MagicMock()
        provider.name = ProviderName.OPENAI
        provider.complete.return_value = json.dumps({"time_entries": entries})
        return provider

    def test_auto_approve(self, runner, harvest):
        """Valid entries are created without review."""
        provider = self.provider(
            [{"description": "Built export", "project_id": 1, "task_id": 10, "hours": 2}]
        )
        result = invoke(
            runner,
            ["generate", "Built the export", "--auto-approve"],
            harvest=harvest,
            ai_provider=provider,
        )

        assert result.exit_code == 0, result.output
        assert "Created: 2.00h - Built export" in result.output
        assert "Total time today: 2.00 hours" in result.output
        assert harvest.mutations == ["create_stopped_entry"]

    def test_summary_prompted(self, runner, harvest):
        """Without an argument the summary is asked for."""
        provider = self.provider([])
        result = invoke(
            runner, ["generate"], harvest=harvest, answers=["Meetings all day"], ai_provider=provider
        )

        assert result.exit_code == 0
        assert "Meetings all day" in provider.complete.call_args[0][0]
        assert "The AI returned no valid time entries" in result.output

    def test_empty_summary(self, runner, harvest):
        """An empty summary is a usage error."""
        result = invoke(runner, ["generate"], harvest=harvest, answers=[""])
        assert result.exit_code == 2

    def test_bad_target_hours(self, runner):
        """--target-hours is validated like any hours input."""
        result = invoke(runner, ["generate", "x", "--target-hours", "30"])
        assert result.exit_code == 2
        assert "Hours cannot exceed 24" in result.output

    def test_ai_disabled(self, runner):
        """generate refuses to run with AI disabled."""
        config = CONFIG.replace("enabled: true", "enabled: false")
        result = invoke(runner, ["generate", "x"], config=config)
        assert result.exit_code == 1
        assert "AI features are disabled" in result.output


class TestAdd:
    """Tests for harv add."""

    def test_stopped_entry(self, runner, harvest):
        """The flow ends with the created entry."""
        result = invoke(
            runner,
            ["add"],
            harvest=harvest,
            answers=["Stopped", "Today", "Backend", "Development", "Docs", "0:45", True],
        )

        assert result.exit_code == 0, result.output
        assert "Created entry:" in result.output
        assert harvest.mutations == ["create_stopped_entry"]

    def test_cancelled(self, runner, harvest):
        """Running out of input cancels with exit status 1."""
        result = invoke(runner, ["add"], harvest=harvest, answers=["Stopped"])
        assert result.exit_code == 1
        assert harvest.mutations == []

    def test_usage_saved_next_to_config(self, runner, harvest, tmp_path):
        """The chosen project and task are remembered beside the config file."""
        config_path = tmp_path / "cfg" / "config.yml"
        result = invoke(
            runner,
            ["--config", str(config_path), "add"],
            harvest=harvest,
            answers=["Stopped", "Today", "Backend", "Development", "Docs", "1", True],
        )

        assert result.exit_code == 0, result.output
        data = json.loads((tmp_path / "cfg" / "usage.json").read_text(encoding="utf-8"))
        assert set(data["projects"]) == {"1"}
        assert set(data["tasks"]) == {"10"}

    def test_dry_run_leaves_usage_alone(self, runner, harvest, tmp_path):
        """Dry-run adds do not touch the usage file."""
        config_path = tmp_path / "cfg" / "config.yml"
        result = invoke(
            runner,
            ["--dry-run", "--config", str(config_path), "add"],
            harvest=harvest,
            answers=["Stopped", "Today", "Backend", "Development", "Docs", "1", True],
        )

        assert result.exit_code == 0, result.output
        assert not (tmp_path / "cfg" / "usage.json").exists()


class ClosingHarvest(FakeHarvest):
    def __init__(self, settings=None):
        super().__init__()
        self.closed = False

    def close(self):
        self.closed = True


class ClosingJira(FakeJira):
    def __init__(self, settings=None):
        super().__init__()
        self.closed = False

    def close(self):
        self.closed = True


class TestClientLifecycle:
    """Tests for closing the API clients."""

    def test_harvest_closed(self, runner, monkeypatch):
        """A client built for a command is closed when the command ends."""
        created = []

        def build(settings):
            created.append(ClosingHarvest(settings))
            return created[-1]

        monkeypatch.setattr("harv.cli.HarvestClient", build)

        result = runner.invoke(cli, ["status"], obj={"config": parse_config(CONFIG)})

        assert result.exit_code == 0, result.output
        assert len(created) == 1
        assert created[0].closed

    def test_both_clients_closed_after_sync(self, runner, monkeypatch, tmp_path):
        """sync closes the Harvest and Jira clients."""
        monkeypatch.chdir(tmp_path)
        clients = {"harvest": ClosingHarvest(), "jira": ClosingJira()}
        monkeypatch.setattr("harv.cli.HarvestClient", lambda settings: clients["harvest"])
        monkeypatch.setattr("harv.cli.JiraClient", lambda settings: clients["jira"])

        result = runner.invoke(
            cli,
            ["sync"],
            obj={"config": parse_config(CONFIG), "prompter": ScriptedPrompter()},
        )

        assert result.exit_code == 0, result.output
        assert clients["harvest"].closed
        assert clients["jira"].closed

    def test_injected_client_untouched(self, runner):
        """Clients handed in by the caller are left open."""
        harvest = ClosingHarvest()
        result = invoke(runner, ["status"], harvest=harvest)

        assert result.exit_code == 0, result.output
        assert not harvest.closed


class TestConfigCommands:
    """Tests for harv config."""

    def test_init(self, runner, tmp_path):
        """init writes the template and refuses to overwrite."""
        path = tmp_path / "harv" / "config.yml"

        result = runner.invoke(cli, ["--config", str(path), "config", "init"], obj={})
        assert result.exit_code == 0
        assert path.read_text() == CONFIG_TEMPLATE

        path.write_text("custom: true\n")
        result = runner.invoke(cli, ["--config", str(path), "config", "init"], obj={})
        assert "already exists" in result.output
        assert path.read_text() == "custom: true\n"

    def test_show_masks_secrets(self, runner, tmp_path, monkeypatch):
        """Secrets are masked."""
        for var in ("HARVEST_ACCESS_TOKEN", "JIRA_ACCESS_TOKEN", "AI_API_KEY"):
            monkeypatch.delenv(var, raising=False)
        path = tmp_path / "config.yml"
        path.write_text(CONFIG)

        result = runner.invoke(
            cli, ["--config", str(path), "config", "show"], obj={"console": Console(width=200)}
        )

        assert result.exit_code == 0
        assert "harvest-***" in result.output
        assert "harvest-token-123" not in result.output
        assert "sk-secret-key" not in result.output

    def test_validate(self, runner, tmp_path, monkeypatch):
        """A valid private file passes."""
        monkeypatch.delenv("JIRA_BASE_URL", raising=False)
        path = tmp_path / "config.yml"
        path.write_text(CONFIG)
        path.chmod(0o600)

        result = runner.invoke(cli, ["--config", str(path), "config", "validate"], obj={})

        assert result.exit_code == 0, result.output
        assert "Configuration is valid" in result.output

    def test_validate_missing(self, runner, tmp_path):
        """A missing file is an error with exit status 1."""
        result = runner.invoke(
            cli, ["--config", str(tmp_path / "nope.yml"), "config", "validate"], obj={}
        )
        assert result.exit_code == 1
        assert "Error: Configuration file not found" in result.output
