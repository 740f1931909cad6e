"""Task record parsing and in-place markdown rewrites."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

STATUS_COMPLETED = "completed"

_TITLE_RE = re.compile(r"^#[ \t]+([^\r\n]+?)[ \t]*(?=\r?$)", re.MULTILINE)
_STATUS_RE = re.compile(r"^\*\*Status:\*\*[ \t]*([^\r\n]*?)[ \t]*(?=\r?$)", re.MULTILINE)
_STARTED_RE = re.compile(r"^\*\*Started:\*\*.*(?:\r?\n|\Z)", re.MULTILINE)
_COMPLETED_RE = re.compile(r"^\*\*Completed:\*\*[^\r\n]*", re.MULTILINE)
_ANNOTATION_RE = re.compile(r"<!--\s*(branch|issue_branch|github_issue):\s*(.*?)\s*-->")
_FOCUS_RE = re.compile(r"^## Current Focus[^\n]*\n(.*?)(?=^## |\Z)", re.MULTILINE | re.DOTALL)


@dataclass(frozen=True)
class TaskAnnotations:
    """Branch and issue metadata attached to a task."""

    branch: str | None = None
    issue_branch: str | None = None
    github_issue: int | None = None

    @property
    def task_branch(self) -> str | None:
        return self.branch or self.issue_branch


@dataclass(frozen=True)
class TaskRecord:
    """Parsed view of one task markdown document."""

    task_id: str
    title: str
    status: str
    path: Path
    content: str
    annotations: TaskAnnotations = field(default_factory=TaskAnnotations)

    @property
    def branch_name(self) -> str | None:
        return self.annotations.task_branch

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED


def parse_title(content: str, fallback: str) -> str:
    match = _TITLE_RE.search(content)
    return match.group(1) if match else fallback


def parse_status(content: str) -> str:
    match = _STATUS_RE.search(content)
    return match.group(1) if match else ""


def parse_annotations(content: str) -> TaskAnnotations:
    """Read ``<!-- key: value -->`` annotations; the first of each key wins."""
    values: dict[str, str] = {}
    for key, value in _ANNOTATION_RE.findall(content):
        if value and key not in values:
            values[key] = value

    issue: int | None = None
    raw_issue = values.get("github_issue", "").lstrip("#")
    if raw_issue.isdigit():
        issue = int(raw_issue)

    return TaskAnnotations(
        branch=values.get("branch"),
        issue_branch=values.get("issue_branch"),
        github_issue=issue,
    )


def parse_task_record(task_id: str, content: str, path: Path) -> TaskRecord:
    return TaskRecord(
        task_id=task_id,
        title=parse_title(content, task_id),
        status=parse_status(content),
        path=path,
        content=content,
        annotations=parse_annotations(content),
    )


def apply_completion(content: str, completion_date: date) -> str:
    """Return ``content`` with the completion fields rewritten.

    Only the status line, the ``**Completed:**`` line and the body of the
    ``## Current Focus`` section change; every other byte is preserved.
    Applying it twice with the same date yields the same document.
    """
    stamp = completion_date.isoformat()
    newline = "\r\n" if "\r\n" in content else "\n"

    if _STATUS_RE.search(content):
        content = _STATUS_RE.sub("**Status:** completed", content, count=1)
    else:
        content = _insert_after_title(content, f"**Status:** completed{newline}", newline)

    if _COMPLETED_RE.search(content):
        content = _COMPLETED_RE.sub(f"**Completed:** {stamp}", content, count=1)
    else:
        started = _STARTED_RE.search(content)
        if started:
            line = started.group(0)
            if not line.endswith("\n"):
                line = f"{line}{newline}"
            content = (
                content[: started.start()]
                + line
                + f"**Completed:** {stamp}{newline}"
                + content[started.end():]
            )

    focus_line = f"Task completed on {stamp}"
    focus = _FOCUS_RE.search(content)
    if focus:
        trailing = newline if focus.end() < len(content) else ""
        body = f"{newline}{focus_line}{newline}{trailing}"
        content = content[: focus.start(1)] + body + content[focus.end():]
    else:
        if content and not content.endswith("\n"):
            content += newline
        content += f"{newline}## Current Focus{newline}{newline}{focus_line}{newline}"

    return content


def _insert_after_title(content: str, line: str, newline: str) -> str:
    title = _TITLE_RE.search(content)
    if not title:
        return f"{line}{newline}{content}"
    end = title.end()
    if content[end:end + len(newline)] == newline:
        end += len(newline)
    return f"{content[:end]}{newline}{line}{content[end:]}"
