"""Configuration handling for harv.

Configuration lives in a YAML file (``~/.config/harv/config.yml`` by
default). Credentials can be overridden from the environment so scheduled,
non-interactive runs never need secrets on disk.
"""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import structlog
import yaml

from harv.errors import ConfigurationError

logger = structlog.get_logger()

CONFIG_ENV_VAR = "HARV_CONFIG"
DEFAULT_HARVEST_URL = "https://api.harvestapp.com/v2"
SUPPORTED_PROVIDERS = ("openai", "anthropic", "claude")
CONTINUE_MODES = ("restart", "new", "ask")


@dataclass
class HarvestConfig:
    """Time-tracking service credentials."""

    access_token: str = ""
    account_id: str = ""
    user_agent: str = "harv"
    project_id: int | None = None
    task_id: int | None = None
    base_url: str = DEFAULT_HARVEST_URL


@dataclass
class JiraConfig:
    """Issue-tracker credentials."""

    access_token: str = ""
    base_url: str = ""


@dataclass
class GitConfig:
    repositories: list[str] = field(default_factory=list)


@dataclass
class Settings:
    """Persisted behaviour switches."""

    auto_start: bool = False
    auto_stop: bool = False
    auto_select_single: bool = True
    continue_days: int | None = None
    continue_mode: str | None = None


@dataclass
class TicketFilterConfig:
    # Prefixes such as CWE or CVE that look like ticket keys but are not.
    denylist: list[str] = field(default_factory=list)


@dataclass
class AIConfig:
    """AI-assisted entry generation."""

    enabled: bool = False
    provider: str = "openai"
    api_key: str = ""
    model: str | None = None
    target_hours: float = 8.0


@dataclass
class Config:
    """Complete harv configuration."""

    harvest: HarvestConfig = field(default_factory=HarvestConfig)
    jira: JiraConfig = field(default_factory=JiraConfig)
    git: GitConfig = field(default_factory=GitConfig)
    settings: Settings = field(default_factory=Settings)
    ticket_filter: TicketFilterConfig = field(default_factory=TicketFilterConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    path: Path | None = None


def default_config_path() -> Path:
    """Return the configuration path, honouring ``HARV_CONFIG``."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "harv" / "config.yml"


def _section(data: Mapping[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{name}' must be a mapping")
    return value


def _optional_int(value: Any, name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def parse_config(content: str, path: Path | None = None) -> Config:
    """Parse configuration from a YAML string."""
    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a YAML mapping")

    harvest = _section(data, "harvest")
    jira = _section(data, "jira")
    git = _section(data, "git")
    settings = _section(data, "settings")
    ticket_filter = _section(data, "ticket_filter")
    ai = _section(data, "ai")

    try:
        target_hours = float(ai.get("target_hours", 8.0))
    except (TypeError, ValueError):
        raise ConfigurationError(f"ai.target_hours must be a number, got {ai.get('target_hours')!r}")

    return Config(
        harvest=HarvestConfig(
            access_token=str(harvest.get("access_token") or ""),
            account_id=str(harvest.get("account_id") or ""),
            user_agent=str(harvest.get("user_agent") or "harv"),
            project_id=_optional_int(harvest.get("project_id"), "harvest.project_id"),
            task_id=_optional_int(harvest.get("task_id"), "harvest.task_id"),
            base_url=str(harvest.get("base_url") or DEFAULT_HARVEST_URL),
        ),
        jira=JiraConfig(
            access_token=str(jira.get("access_token") or ""),
            base_url=str(jira.get("base_url") or ""),
        ),
        git=GitConfig(repositories=[str(repo) for repo in git.get("repositories") or []]),
        settings=Settings(
            auto_start=bool(settings.get("auto_start", False)),
            auto_stop=bool(settings.get("auto_stop", False)),
            auto_select_single=bool(settings.get("auto_select_single", True)),
            continue_days=_optional_int(settings.get("continue_days"), "settings.continue_days"),
            continue_mode=settings.get("continue_mode"),
        ),
        ticket_filter=TicketFilterConfig(
            denylist=[str(prefix) for prefix in ticket_filter.get("denylist") or []],
        ),
        ai=AIConfig(
            enabled=bool(ai.get("enabled", False)),
            provider=str(ai.get("provider") or "openai"),
            api_key=str(ai.get("api_key") or ""),
            model=ai.get("model"),
            target_hours=target_hours,
        ),
        path=path,
    )


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def apply_env_overrides(config: Config, environ: Mapping[str, str] | None = None) -> Config:
    """Overlay credential and behaviour overrides from the environment."""
    env = os.environ if environ is None else environ

    if "HARVEST_ACCESS_TOKEN" in env:
        config.harvest.access_token = env["HARVEST_ACCESS_TOKEN"]
    if "HARVEST_ACCOUNT_ID" in env:
        config.harvest.account_id = env["HARVEST_ACCOUNT_ID"]
    if "JIRA_ACCESS_TOKEN" in env:
        config.jira.access_token = env["JIRA_ACCESS_TOKEN"]
    if "JIRA_BASE_URL" in env:
        config.jira.base_url = env["JIRA_BASE_URL"]
    if "AI_ENABLED" in env:
        config.ai.enabled = _parse_bool(env["AI_ENABLED"])
    if "AI_PROVIDER" in env:
        config.ai.provider = env["AI_PROVIDER"]
    if "AI_API_KEY" in env:
        config.ai.api_key = env["AI_API_KEY"]
    if "AI_MODEL" in env:
        config.ai.model = env["AI_MODEL"]
    if "AI_TARGET_HOURS" in env:
        try:
            config.ai.target_hours = float(env["AI_TARGET_HOURS"])
        except ValueError:
            logger.warning("Ignoring invalid AI_TARGET_HOURS", value=env["AI_TARGET_HOURS"])
    if "CONTINUE_MODE" in env:
        config.settings.continue_mode = env["CONTINUE_MODE"]

    return config


def _looks_unset(value: str, placeholder: str) -> bool:
    return not value.strip() or placeholder in value


def validate_config(config: Config) -> None:
    """Validate a loaded configuration.

    Raises:
        ConfigurationError: describing the first problem found.
    """
    if _looks_unset(config.harvest.access_token, "your_harvest"):
        raise ConfigurationError(
            "Harvest access token not configured. Please update your config file."
        )
    if _looks_unset(config.harvest.account_id, "your_account"):
        raise ConfigurationError(
            "Harvest account ID not configured. Please update your config file."
        )
    if _looks_unset(config.jira.access_token, "your_jira"):
        raise ConfigurationError(
            "Jira access token not configured. Please update your config file."
        )
    if _looks_unset(config.jira.base_url, "your-company"):
        raise ConfigurationError("Jira base URL not configured. Please update your config file.")
    if not config.jira.base_url.startswith("http"):
        raise ConfigurationError("Jira base URL must start with http:// or https://")

    if config.ai.enabled:
        if _looks_unset(config.ai.api_key, "your_"):
            raise ConfigurationError(
                "AI is enabled but API key not configured. Please update your config file."
            )
        if config.ai.provider.lower() not in SUPPORTED_PROVIDERS:
            raise ConfigurationError(
                f"Unsupported AI provider: {config.ai.provider}. Supported: openai, anthropic"
            )
        if not 0 < config.ai.target_hours <= 24:
            raise ConfigurationError("AI target_hours must be between 0 and 24")

    mode = config.settings.continue_mode
    if mode is not None and mode not in CONTINUE_MODES:
        raise ConfigurationError(
            f"Invalid continue_mode: '{mode}'. Must be 'restart', 'new', or 'ask'"
        )

    days = config.settings.continue_days
    if days is not None and days < 1:
        raise ConfigurationError("continue_days must be at least 1")


def check_permissions(path: Path) -> None:
    """Refuse configuration files readable by group or others."""
    if os.name != "posix":
        return
    mode = stat.S_IMODE(path.stat().st_mode)
    if mode & 0o077:
        raise ConfigurationError(
            f"Configuration file {path} has permissions {mode:o}; "
            f"it must not be accessible by group or others. Run: chmod 600 {path}"
        )


def load_config(path: Path | None = None, environ: Mapping[str, str] | None = None) -> Config:
    """Load, override and validate the configuration file."""
    path = path or default_config_path()
    if not path.exists():
        raise ConfigurationError(
            f"Configuration file not found at {path}. Run 'harv config init' to create one."
        )

    check_permissions(path)
    config = parse_config(path.read_text(encoding="utf-8"), path=path)
    apply_env_overrides(config, environ)
    validate_config(config)
    logger.debug("Loaded configuration", path=str(path))
    return config


CONFIG_TEMPLATE = """\
# harv configuration
# Harvest API docs: https://help.getharvest.com/api-v2/
# Jira API docs: https://developer.atlassian.com/cloud/jira/platform/rest/v3/

harvest:
  # Get your access token from: https://id.getharvest.com/developers
  access_token: "your_harvest_access_token_here"
  account_id: "your_account_id_here"
  user_agent: "harv (your.email@example.com)"
  # Default project and task for timers started from commits
  # project_id: 12345678
  # task_id: 87654321

jira:
  # Personal access token: https://id.atlassian.com/manage-profile/security/api-tokens
  access_token: "your_jira_personal_access_token_here"
  base_url: "https://your-company.atlassian.net"

git:
  # Leave empty to scan the current working directory
  repositories: []
  # repositories:
  #   - /home/user/projects/backend
  #   - /home/user/projects/frontend

settings:
  # Start timers without prompting (useful for scheduled runs)
  auto_start: false
  # Stop a different running timer without prompting
  auto_stop: false
  # Pick the ticket automatically when only one is found
  auto_select_single: true
  # Days to look back when continuing work (1 = today only)
  # continue_days: 1
  # restart: reuse the entry (keeps its date, resets hours)
  # new: start a new timer dated today
  # ask: prompt each time (default)
  # continue_mode: ask

ticket_filter:
  # Prefixes that match the ticket pattern but are not Jira tickets
  denylist: ["CWE", "CVE"]

ai:
  enabled: false
  # openai or anthropic
  provider: openai
  # OpenAI: https://platform.openai.com/api-keys
  # Anthropic: https://console.anthropic.com/settings/keys
  api_key: ""
  # model: gpt-4o
  target_hours: 8.0
"""


def create_template(path: Path | None = None, force: bool = False) -> Path:
    """Write the commented configuration template with owner-only permissions."""
    path = path or default_config_path()
    if path.exists() and not force:
        raise ConfigurationError(f"Configuration file already exists at {path}")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
    if os.name == "posix":
        path.chmod(0o600)
    return path


def mask_secret(value: str) -> str:
    if not value:
        return "(not set)"
    return f"{value[:8]}***"


__all__ = [
    "AIConfig",
    "CONFIG_TEMPLATE",
    "Config",
    "GitConfig",
    "HarvestConfig",
    "JiraConfig",
    "Settings",
    "TicketFilterConfig",
    "apply_env_overrides",
    "check_permissions",
    "create_template",
    "default_config_path",
    "load_config",
    "mask_secret",
    "parse_config",
    "validate_config",
]
