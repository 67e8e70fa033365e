import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "repo": None,  # "owner/name" of the tracked repository (required)
    "api_url": "https://api.github.com",
    "poll_interval": 30,
    "approvals_until_format": 2,
    "skip_existing_on_startup": False,
    "working_dir": "./repo",
    "committer": {"name": "formatbot", "email": "formatbot@users.noreply.github.com"},
    "style_check": {
        "cmd": ["java", "-jar", "checkstyle.jar", "-c", "/google_checks.xml"],
        "extensions": [".java"],
        "timeout": 300,
    },
    "formatter": {"idea_path": "/opt/idea", "extensions": [".java"], "timeout": 600},
    "build": {"cmd": "mvn -B", "goals": [{"name": "verify", "required": True}], "timeout": 1800},
    "workflow_timeout": 3600,
    "lock_timeout": None,  # None = wait for the working tree as long as it takes
    "comment_retries": 3,
    "fetch_retries": 3,
    "alerting": {"webhook_url": None, "pings_on_error": []},
    "log_dir": "./log",
}

# Sections merged key-by-key so a config file can override a single field.
_SECTIONS = ("committer", "style_check", "formatter", "build", "alerting")

_REPO_RE = re.compile(r"^[\w.-]+/[\w.-]+$")


@dataclass(frozen=True)
class GoalConfig:
    name: str
    required: bool = True


@dataclass(frozen=True)
class BotConfig:
    """Immutable runtime configuration handed to every component at construction."""

    repo: str
    github_token: Optional[str] = None
    api_url: str = "https://api.github.com"
    poll_interval: float = 30
    approvals_until_format: int = 2
    skip_existing_on_startup: bool = False
    working_dir: str = "./repo"
    committer_name: str = "formatbot"
    committer_email: str = "formatbot@users.noreply.github.com"
    checkstyle_cmd: tuple = ()
    style_extensions: tuple = (".java",)
    style_timeout: float = 300
    idea_path: str = "/opt/idea"
    format_extensions: tuple = (".java",)
    formatter_timeout: float = 600
    build_cmd: str = "mvn -B"
    build_goals: tuple = field(default_factory=tuple)
    build_timeout: float = 1800
    workflow_timeout: Optional[float] = 3600
    lock_timeout: Optional[float] = None
    comment_retries: int = 3
    fetch_retries: int = 3
    webhook_url: Optional[str] = None
    webhook_pings: tuple = ()
    log_dir: str = "./log"


def _copy_defaults() -> dict:
    config = dict(DEFAULT_CONFIG)
    for section in _SECTIONS:
        config[section] = dict(DEFAULT_CONFIG[section])
    return config


def _parse_goals(raw) -> tuple:
    goals = []
    for item in raw or []:
        if isinstance(item, str):
            goals.append(GoalConfig(name=item))
        elif isinstance(item, dict) and item.get("name"):
            goals.append(GoalConfig(name=str(item["name"]), required=bool(item.get("required", True))))
        else:
            raise ValueError(f"Invalid build goal entry: {item!r}")
    return tuple(goals)


def load_config(config_path: str = ".formatbot.yml", overrides: Optional[dict] = None) -> BotConfig:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .formatbot.yml in the current directory
      3. Explicit overrides (None values ignored)
    and freeze the result into a BotConfig.
    """
    config = _copy_defaults()

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        for key, value in file_config.items():
            if key in _SECTIONS and isinstance(value, dict):
                config[key].update(value)
            else:
                config[key] = value

    if overrides:
        for key, value in overrides.items():
            if value is not None:
                config[key] = value

    # Credentials come from the environment, never from the config file.
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    webhook_env = os.environ.get("FORMATBOT_WEBHOOK_URL")
    if webhook_env:
        config["alerting"]["webhook_url"] = webhook_env

    return build_config(config)


def build_config(config: dict) -> BotConfig:
    """Validate a merged config dict and freeze it into a BotConfig."""
    repo = config.get("repo")
    if not repo or not _REPO_RE.match(str(repo)):
        raise ValueError(f"'repo' must be set to 'owner/name', got {repo!r}")

    threshold = int(config["approvals_until_format"])
    if threshold < 1:
        raise ValueError("'approvals_until_format' must be at least 1")

    style = config["style_check"]
    formatter = config["formatter"]
    build = config["build"]
    alerting = config["alerting"]
    committer = config["committer"]

    cmd = style["cmd"]
    if isinstance(cmd, str):
        cmd = cmd.split()

    return BotConfig(
        repo=str(repo),
        github_token=config.get("github_token"),
        api_url=config["api_url"],
        poll_interval=float(config["poll_interval"]),
        approvals_until_format=threshold,
        skip_existing_on_startup=bool(config["skip_existing_on_startup"]),
        working_dir=str(config["working_dir"]),
        committer_name=committer["name"],
        committer_email=committer["email"],
        checkstyle_cmd=tuple(cmd),
        style_extensions=tuple(style["extensions"]),
        style_timeout=float(style["timeout"]),
        idea_path=str(formatter["idea_path"]),
        format_extensions=tuple(formatter["extensions"]),
        formatter_timeout=float(formatter["timeout"]),
        build_cmd=str(build["cmd"]),
        build_goals=_parse_goals(build["goals"]),
        build_timeout=float(build["timeout"]),
        workflow_timeout=config["workflow_timeout"],
        lock_timeout=config["lock_timeout"],
        comment_retries=max(1, int(config["comment_retries"])),
        fetch_retries=max(1, int(config["fetch_retries"])),
        webhook_url=alerting.get("webhook_url"),
        webhook_pings=tuple(alerting.get("pings_on_error") or ()),
        log_dir=str(config["log_dir"]),
    )
