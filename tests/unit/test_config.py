"""Tests for tasktrack configuration loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tasktrack.config import ConfigError, load_config


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_defaults_when_no_config(tmp_path: Path) -> None:
    config = load_config(tmp_path)
    assert config.github.pr_workflow is False
    assert config.git.default_branch == "main"
    assert config.git.remote == "origin"
    assert {check.name for check in config.checks} == {"typecheck", "lint", "tests"}
    assert all(not check.enabled for check in config.checks)
    assert config.commit_message_command is None


def test_yaml_config_overlays_defaults(tmp_path: Path) -> None:
    _write(
        tmp_path / ".claude" / "track.config.yaml",
        "features:\n"
        "  github_integration:\n"
        "    enabled: true\n"
        "    draft_prs: true\n"
        "git:\n"
        "  command_timeout_seconds: 30\n"
        "validation:\n"
        "  tests:\n"
        "    enabled: true\n"
        "logging:\n"
        "  level: debug\n",
    )
    config = load_config(tmp_path)
    assert config.github.pr_workflow is True
    assert config.github.draft_prs is True
    assert config.git.command_timeout_seconds == 30.0
    tests_check = next(check for check in config.checks if check.name == "tests")
    assert tests_check.enabled is True
    assert tests_check.command == "pytest -q"
    assert config.log_level == "DEBUG"


def test_json_config_fallback(tmp_path: Path) -> None:
    _write(
        tmp_path / ".claude" / "track.config.json",
        json.dumps({"git": {"default_branch": "trunk", "remote": "upstream"}}),
    )
    config = load_config(tmp_path)
    assert config.git.default_branch == "trunk"
    assert config.git.remote == "upstream"


def test_malformed_yaml_raises(tmp_path: Path) -> None:
    _write(tmp_path / ".claude" / "track.config.yaml", "features: [unclosed\n")
    with pytest.raises(ConfigError, match="Malformed YAML"):
        load_config(tmp_path)


def test_non_mapping_config_raises(tmp_path: Path) -> None:
    _write(tmp_path / ".claude" / "track.config.yaml", "- just\n- a list\n")
    with pytest.raises(ConfigError, match="expected a mapping"):
        load_config(tmp_path)


def test_invalid_structure_raises(tmp_path: Path) -> None:
    _write(tmp_path / ".claude" / "track.config.yaml", "git:\n  command_timeout_seconds: soon\n")
    with pytest.raises(ConfigError, match="Invalid config structure"):
        load_config(tmp_path)


@pytest.mark.parametrize(
    ("check_yaml", "message"),
    [
        ('    command: ""\n', "command is empty"),
        ("    command: \"pytest -k 'unterminated\"\n", "cannot parse command"),
        ('    count_pattern: "(\\\\d+ failed"\n', "invalid count_pattern"),
    ],
)
def test_unusable_check_raises(tmp_path: Path, check_yaml: str, message: str) -> None:
    _write(
        tmp_path / ".claude" / "track.config.yaml",
        "validation:\n  tests:\n    enabled: true\n" + check_yaml,
    )
    with pytest.raises(ConfigError, match=message):
        load_config(tmp_path)


def test_disabled_check_is_not_validated(tmp_path: Path) -> None:
    _write(
        tmp_path / ".claude" / "track.config.yaml",
        'features:\n  git_branching:\n    enabled: true\nvalidation:\n  lint:\n    enabled: false\n    command: ""\n',
    )
    config = load_config(tmp_path)
    assert next(check for check in config.checks if check.name == "lint").command == ""
