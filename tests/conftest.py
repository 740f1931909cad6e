"""Pytest configuration and fixtures for tasktrack tests."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

TASK_MARKDOWN = (
    "# Task 001: Example\n"
    "\n"
    "<!-- branch: feature/TASK_001 -->\n"
    "**Status:** in_progress\n"
    "**Started:** 2026-10-01\n"
    "\n"
    "## Current Focus\n"
    "\n"
    "Do the work\n"
    "\n"
    "## Notes\n"
    "\n"
    "Keep this paragraph.\n"
)

MANIFEST_MARKDOWN = "# Project\n\nSome guidance.\n\n@.claude/tasks/TASK_001.md\n"

NO_ACTIVE_MARKDOWN = "# No Active Task\n\nNothing in progress.\n"


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def _init_repo(repo: Path) -> None:
    repo.mkdir(parents=True, exist_ok=True)
    _git(repo, "init")
    _git(repo, "config", "user.email", "test@example.com")
    _git(repo, "config", "user.name", "Test User")
    _git(repo, "config", "commit.gpgsign", "false")


def write_bookkeeping(repo: Path, task_markdown: str = TASK_MARKDOWN) -> None:
    (repo / "CLAUDE.md").write_text(MANIFEST_MARKDOWN, encoding="utf-8")
    tasks_dir = repo / ".claude" / "tasks"
    tasks_dir.mkdir(parents=True, exist_ok=True)
    (tasks_dir / "TASK_001.md").write_text(task_markdown, encoding="utf-8")
    (repo / ".claude" / "no_active_task.md").write_text(NO_ACTIVE_MARKDOWN, encoding="utf-8")


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """Plain repository on ``main`` with one commit and no remote."""
    path = tmp_path / "repo"
    _init_repo(path)
    (path / "README.md").write_text("# test\n", encoding="utf-8")
    _git(path, "add", "README.md")
    _git(path, "commit", "-m", "initial")
    _git(path, "branch", "-M", "main")
    return path


@pytest.fixture
def repo_with_origin(repo: Path, tmp_path: Path) -> Path:
    remote = tmp_path / "origin.git"
    subprocess.run(["git", "init", "--bare", str(remote)], check=True, capture_output=True)
    _git(repo, "remote", "add", "origin", str(remote))
    _git(repo, "push", "-u", "origin", "main")
    return repo


@pytest.fixture
def task_project(repo_with_origin: Path) -> Path:
    """Repository with committed task bookkeeping for TASK_001 on ``main``."""
    repo = repo_with_origin
    write_bookkeeping(repo)
    _git(repo, "add", "-A")
    _git(repo, "commit", "-m", "chore: start TASK_001")
    _git(repo, "push", "origin", "main")
    return repo


@pytest.fixture
def task_branch_project(task_project: Path) -> Path:
    """``task_project`` checked out on feature/TASK_001 with four WIP commits."""
    repo = task_project
    _git(repo, "checkout", "-b", "feature/TASK_001")
    for index in range(1, 5):
        (repo / f"feature_{index}.txt").write_text(f"step {index}\n", encoding="utf-8")
        _git(repo, "add", f"feature_{index}.txt")
        _git(repo, "commit", "-m", f"wip: step {index}")
    return repo
