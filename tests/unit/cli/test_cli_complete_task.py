"""CLI tests for complete-task and validation-checks."""

from __future__ import annotations

import json
import shlex
import sys
from pathlib import Path

from typer.testing import CliRunner

from tasktrack import __version__
from tasktrack.cli import cli

RUNNER = CliRunner()


def _write_config(repo: Path, text: str) -> None:
    path = repo / ".claude" / "track.config.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _failing_tests_config(repo: Path) -> None:
    script = 'import sys; print("3 failed, 1 passed"); sys.exit(1)'
    command = f"{shlex.quote(sys.executable)} -c {shlex.quote(script)}"
    _write_config(repo, f"validation:\n  tests:\n    enabled: true\n    command: {json.dumps(command)}\n")


def test_version() -> None:
    result = RUNNER.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_complete_task_json_success(task_branch_project: Path) -> None:
    result = RUNNER.invoke(
        cli,
        ["complete-task", "--skip-validation", "--json", "--project-root", str(task_branch_project)],
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["success"] is True
    assert payload["outcome"] == "done"
    assert payload["data"]["git"]["squashed"] is True
    assert payload["data"]["git"]["wip_commit_count"] == 4


def test_complete_task_rejected_exit_code(task_branch_project: Path, monkeypatch) -> None:
    _failing_tests_config(task_branch_project)
    monkeypatch.chdir(task_branch_project)

    result = RUNNER.invoke(cli, ["complete-task"])

    assert result.exit_code == 2
    assert "Pre-flight validation failed" in result.output
    assert "3 failures" in result.output
    task = (task_branch_project / ".claude" / "tasks" / "TASK_001.md").read_text(encoding="utf-8")
    assert "**Status:** in_progress" in task


def test_complete_task_precondition_exit_code(repo: Path) -> None:
    result = RUNNER.invoke(cli, ["complete-task", "--skip-validation", "--project-root", str(repo)])
    assert result.exit_code == 1
    assert "CLAUDE.md not found" in result.output


def test_complete_task_report_lists_summary(task_branch_project: Path) -> None:
    result = RUNNER.invoke(
        cli,
        ["complete-task", "--skip-validation", "--no-branch", "--project-root", str(task_branch_project)],
    )
    assert result.exit_code == 0, result.output
    assert "Task TASK_001 completed" in result.output
    assert "Completion summary" in result.output


def test_validation_checks_command(task_project: Path) -> None:
    _failing_tests_config(task_project)
    result = RUNNER.invoke(cli, ["validation-checks", "--project-root", str(task_project)])
    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["ready_for_completion"] is False
    assert payload["summaries"]["tests"] == "3 failures"


def test_validation_checks_ready_with_defaults(task_project: Path) -> None:
    result = RUNNER.invoke(cli, ["validation-checks", "--project-root", str(task_project)])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["ready_for_completion"] is True


def test_validation_checks_malformed_config(tmp_path: Path) -> None:
    _write_config(tmp_path, "validation: [broken\n")
    result = RUNNER.invoke(cli, ["validation-checks", "--project-root", str(tmp_path)])
    assert result.exit_code == 1
    assert "Malformed YAML" in result.output
