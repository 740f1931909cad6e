"""Commit and pull request text for task completion."""

from __future__ import annotations

import logging
import re
import shlex
from pathlib import Path
from typing import Protocol

from tasktrack.git.exec import ExecError, run_command

logger = logging.getLogger(__name__)

MAX_PROMPT_DIFF_CHARS = 3000
GENERATOR_TIMEOUT_SECONDS = 30.0

_CONVENTIONAL_RE = re.compile(r"^(feat|fix|docs|style|refactor|test|chore|build|ci|perf)(\([^)]+\))?:")


class CommitMessageGenerator(Protocol):
    def generate(self, diff: str, task_id: str) -> str | None:
        """Return a one-line commit message, or None to use the template."""


class CommandMessageGenerator:
    """Ask an external command for a conventional commit line.

    The prompt is written to the command's stdin; the first stdout line in
    conventional-commit form is used.
    """

    def __init__(self, command: str, *, cwd: Path, timeout: float = GENERATOR_TIMEOUT_SECONDS):
        self.argv = shlex.split(command)
        self.cwd = cwd
        self.timeout = timeout

    def generate(self, diff: str, task_id: str) -> str | None:
        prompt = build_prompt(diff, task_id)
        try:
            result = run_command(self.argv, cwd=self.cwd, timeout=self.timeout, input_text=prompt)
        except ExecError as exc:
            logger.warning("Commit message generator failed: %s", exc)
            return None
        for line in result.stdout.splitlines():
            candidate = line.strip()
            if _CONVENTIONAL_RE.match(candidate):
                return candidate
        logger.warning("Commit message generator returned no conventional commit line")
        return None


def build_prompt(diff: str, task_id: str) -> str:
    return (
        "Write a conventional commit message for these changes. "
        "Return only the commit message, nothing else.\n"
        f"Active task: {task_id}\n\n"
        f"{diff[:MAX_PROMPT_DIFF_CHARS]}\n\n"
        f"Use format: type: {task_id} description\n"
    )


def completion_commit_message(task_id: str, title: str) -> str:
    return f"feat: complete {task_id} - {title}"


def safety_commit_message(task_id: str, *, reason: str) -> str:
    """Message for committing leftover work before history is touched.

    ``reason`` is ``squash``, ``pr_feedback`` or ``docs``.
    """
    if reason == "pr_feedback":
        return f"docs: final docs for PR feedback on {task_id}"
    if reason == "docs":
        return f"docs: final docs update for {task_id}"
    return f"chore: save remaining work for {task_id}"


def pull_request_title(task_id: str, title: str) -> str:
    if title.startswith(task_id):
        return title
    return f"{task_id}: {title}"


def pull_request_body(
    *,
    task_id: str,
    title: str,
    commit_message: str | None,
    squashed: bool,
    original_commits: int,
    changed_files: list[str],
    issue_number: int | None,
) -> str:
    lines = [f"## {task_id}: {title}", ""]
    if squashed and original_commits > 1:
        lines.append(f"Squashed {original_commits} commits into `{commit_message}`.")
    elif commit_message:
        lines.append(f"Final commit: `{commit_message}`.")
    if changed_files:
        lines.extend(["", "### Changed files", ""])
        lines.extend(f"- `{path}`" for path in changed_files[:50])
        if len(changed_files) > 50:
            lines.append(f"- ... and {len(changed_files) - 50} more")
    if issue_number is not None:
        lines.extend(["", f"Closes #{issue_number}"])
    lines.append("")
    return "\n".join(lines)
