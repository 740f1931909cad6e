"""Project configuration loader.

Supports .claude/track.config.yaml or .claude/track.config.json. Values are
overlaid on built-in defaults and parsed into frozen dataclasses.
"""

from __future__ import annotations

import copy
import json
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

CONFIG_YAML = Path(".claude") / "track.config.yaml"
CONFIG_JSON = Path(".claude") / "track.config.json"

DEFAULT_CONFIG: dict[str, Any] = {
    "features": {
        "github_integration": {
            "enabled": False,
            "auto_create_prs": True,
            "draft_prs": False,
        },
    },
    "git": {
        "default_branch": "main",
        "remote": "origin",
        "command_timeout_seconds": None,
    },
    "validation": {
        "typecheck": {
            "enabled": False,
            "command": "mypy .",
            "count_pattern": r"error:",
        },
        "lint": {
            "enabled": False,
            "command": "ruff check .",
            "count_pattern": r"^\S+:\d+:\d+: ",
        },
        "tests": {
            "enabled": False,
            "command": "pytest -q",
            "count_pattern": r"(\d+) failed",
        },
    },
    "commit_message": {"command": None},
    "logging": {"level": "INFO"},
}


class ConfigError(RuntimeError):
    """Raised when a config file is malformed or structurally invalid."""


@dataclass(frozen=True)
class CheckConfig:
    """One validation check command."""

    name: str
    enabled: bool
    command: str
    count_pattern: str | None = None

    def validate(self) -> None:
        """Raise ConfigError if the command or count pattern cannot be used."""
        try:
            argv = shlex.split(self.command)
        except ValueError as e:
            raise ConfigError(f"Check {self.name!r}: cannot parse command {self.command!r}: {e}") from e
        if not argv:
            raise ConfigError(f"Check {self.name!r}: command is empty")
        if self.count_pattern:
            try:
                re.compile(self.count_pattern)
            except re.error as e:
                raise ConfigError(
                    f"Check {self.name!r}: invalid count_pattern {self.count_pattern!r}: {e}"
                ) from e


@dataclass(frozen=True)
class GitHubConfig:
    enabled: bool = False
    auto_create_prs: bool = True
    draft_prs: bool = False

    @property
    def pr_workflow(self) -> bool:
        return self.enabled and self.auto_create_prs


@dataclass(frozen=True)
class GitConfig:
    default_branch: str = "main"
    remote: str = "origin"
    command_timeout_seconds: float | None = None


@dataclass(frozen=True)
class TrackConfig:
    """Resolved tasktrack configuration."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    git: GitConfig = field(default_factory=GitConfig)
    checks: tuple[CheckConfig, ...] = ()
    commit_message_command: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrackConfig:
        """Parse a (defaults-merged) config dict into TrackConfig."""
        features = data.get("features", {})
        github_data = features.get("github_integration", {})
        git_data = data.get("git", {})

        timeout = git_data.get("command_timeout_seconds")
        checks = tuple(
            CheckConfig(
                name=name,
                enabled=bool(check.get("enabled", False)),
                command=str(check["command"]),
                count_pattern=check.get("count_pattern"),
            )
            for name, check in data.get("validation", {}).items()
        )
        for check in checks:
            if check.enabled:
                check.validate()

        return cls(
            github=GitHubConfig(
                enabled=bool(github_data.get("enabled", False)),
                auto_create_prs=bool(github_data.get("auto_create_prs", True)),
                draft_prs=bool(github_data.get("draft_prs", False)),
            ),
            git=GitConfig(
                default_branch=str(git_data.get("default_branch") or "main"),
                remote=str(git_data.get("remote") or "origin"),
                command_timeout_seconds=float(timeout) if timeout is not None else None,
            ),
            checks=checks,
            commit_message_command=data.get("commit_message", {}).get("command"),
            log_level=str(data.get("logging", {}).get("level", "INFO")).upper(),
        )


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(project_root: Path) -> TrackConfig:
    """Load configuration for ``project_root``.

    Priority order:
    1. .claude/track.config.yaml (preferred)
    2. .claude/track.config.json (fallback)
    3. built-in defaults

    Raises:
        ConfigError: If a config file is malformed or invalid
    """
    yaml_path = project_root / CONFIG_YAML
    json_path = project_root / CONFIG_JSON

    user_config: Any = None
    source: Path | None = None
    try:
        if yaml_path.exists():
            source = yaml_path
            with open(yaml_path, encoding="utf-8") as f:
                user_config = yaml.safe_load(f)
        elif json_path.exists():
            source = json_path
            with open(json_path, encoding="utf-8") as f:
                user_config = json.load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML config at {source}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Malformed JSON config at {source}: {e}") from e

    if user_config is None:
        user_config = {}
    if not isinstance(user_config, dict):
        raise ConfigError(f"Invalid config structure in {source}: expected a mapping")

    try:
        return TrackConfig.from_dict(_deep_merge(DEFAULT_CONFIG, user_config))
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ConfigError(f"Invalid config structure in {source}: {e}") from e
