"""File-backed task bookkeeping: task records, active pointer, completed index.

None of these stores keep history. Callers take a ``DocumentSnapshot`` before
mutating so a failed completion can put every document back verbatim.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from tasktrack.tasks.record import (
    TaskAnnotations,
    TaskRecord,
    apply_completion,
    parse_task_record,
)

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "CLAUDE.md"
TRACK_DIR = ".claude"
TASKS_DIRNAME = "tasks"
NO_ACTIVE_TASK_FILENAME = "no_active_task.md"
PROGRESS_LOG_FILENAME = "progress_log.md"
METADATA_SUFFIX = ".meta.yaml"

NO_ACTIVE_POINTER = "@.claude/no_active_task.md"
COMPLETED_SECTION_HEADER = "## Completed Tasks"

_ACTIVE_POINTER_RE = re.compile(r"@\.claude/tasks/(TASK_\d+)\.md")
_SECTION_RE = re.compile(r"^## ", re.MULTILINE)


class CompletionPrecondition(RuntimeError):
    """Base class for artifacts that must exist before completion starts."""


class ManifestNotFound(CompletionPrecondition):
    """Raised when the project manifest (CLAUDE.md) is missing."""


class NoActiveTask(CompletionPrecondition):
    """Raised when the manifest does not point at an active task."""


class TaskNotFound(CompletionPrecondition):
    """Raised when the task record document is missing."""


class UnreadableDocument(CompletionPrecondition):
    """Raised when a bookkeeping document is not valid UTF-8."""


@dataclass(frozen=True)
class DocumentSnapshot:
    """Verbatim bytes of a document, or ``None`` when it did not exist."""

    path: Path
    content: bytes | None

    @classmethod
    def capture(cls, path: Path) -> DocumentSnapshot:
        return cls(path=path, content=path.read_bytes() if path.exists() else None)

    def restore(self) -> bool:
        """Write the captured bytes back; returns True when the file changed."""
        if self.content is None:
            if self.path.exists():
                self.path.unlink()
                return True
            return False
        if self.path.exists() and self.path.read_bytes() == self.content:
            return False
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(self.content)
        return True


@dataclass(frozen=True)
class ProjectPaths:
    """Canonical bookkeeping locations under a project root."""

    root: Path

    @property
    def manifest(self) -> Path:
        return self.root / MANIFEST_FILENAME

    @property
    def tasks_dir(self) -> Path:
        return self.root / TRACK_DIR / TASKS_DIRNAME

    @property
    def completed_index(self) -> Path:
        return self.root / TRACK_DIR / NO_ACTIVE_TASK_FILENAME

    @property
    def progress_log(self) -> Path:
        return self.root / TRACK_DIR / PROGRESS_LOG_FILENAME

    def task_file(self, task_id: str) -> Path:
        return self.tasks_dir / f"{task_id}.md"

    def metadata_file(self, task_id: str) -> Path:
        return self.tasks_dir / f"{task_id}{METADATA_SUFFIX}"


def _read_text(path: Path) -> str:
    try:
        return path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise UnreadableDocument(f"{path} is not valid UTF-8: {exc}") from exc


def _write_text(path: Path, text: str) -> None:
    path.write_bytes(text.encode("utf-8"))


def load_task_metadata(path: Path) -> TaskAnnotations | None:
    """Load the typed sidecar record for a task, if one exists."""
    if not path.exists():
        return None
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        logger.warning("Ignoring malformed task metadata %s: %s", path, exc)
        return None
    if not isinstance(data, dict):
        logger.warning("Ignoring task metadata %s: expected a mapping", path)
        return None

    issue = data.get("github_issue")
    return TaskAnnotations(
        branch=str(data["branch"]) if data.get("branch") else None,
        issue_branch=str(data["issue_branch"]) if data.get("issue_branch") else None,
        github_issue=int(issue) if isinstance(issue, int) or str(issue or "").isdigit() else None,
    )


def save_task_metadata(path: Path, annotations: TaskAnnotations) -> None:
    payload = {
        "branch": annotations.branch,
        "issue_branch": annotations.issue_branch,
        "github_issue": annotations.github_issue,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump({k: v for k, v in payload.items() if v is not None}, sort_keys=True),
        encoding="utf-8",
    )


class TaskStore:
    """Reads and rewrites task record documents."""

    def __init__(self, paths: ProjectPaths):
        self.paths = paths

    def read(self, task_id: str) -> TaskRecord:
        path = self.paths.task_file(task_id)
        if not path.exists():
            raise TaskNotFound(f"Task file not found: {path}")
        record = parse_task_record(task_id, _read_text(path), path)

        sidecar = load_task_metadata(self.paths.metadata_file(task_id))
        if sidecar is not None:
            merged = TaskAnnotations(
                branch=sidecar.branch or record.annotations.branch,
                issue_branch=sidecar.issue_branch or record.annotations.issue_branch,
                github_issue=(
                    sidecar.github_issue
                    if sidecar.github_issue is not None
                    else record.annotations.github_issue
                ),
            )
            record = TaskRecord(
                task_id=record.task_id,
                title=record.title,
                status=record.status,
                path=record.path,
                content=record.content,
                annotations=merged,
            )
        return record

    def snapshot(self, task_id: str) -> DocumentSnapshot:
        return DocumentSnapshot.capture(self.paths.task_file(task_id))

    def mark_completed(self, task_id: str, completion_date: date) -> None:
        path = self.paths.task_file(task_id)
        if not path.exists():
            raise TaskNotFound(f"Task file not found: {path}")
        _write_text(path, apply_completion(_read_text(path), completion_date))
        logger.info("Marked %s completed on %s", task_id, completion_date.isoformat())


class ActiveTaskRegistry:
    """Single-slot pointer to the active task, stored in the project manifest."""

    def __init__(self, paths: ProjectPaths):
        self.paths = paths

    def active_task_id(self) -> str | None:
        manifest = self.paths.manifest
        if not manifest.exists():
            raise ManifestNotFound(f"{MANIFEST_FILENAME} not found at {manifest}")
        match = _ACTIVE_POINTER_RE.search(_read_text(manifest))
        return match.group(1) if match else None

    def require_active_task_id(self) -> str:
        task_id = self.active_task_id()
        if task_id is None:
            raise NoActiveTask(f"No active task found in {MANIFEST_FILENAME}")
        return task_id

    def snapshot(self) -> DocumentSnapshot:
        return DocumentSnapshot.capture(self.paths.manifest)

    def clear(self) -> bool:
        """Point the manifest at no_active_task.md; returns False if nothing changed."""
        manifest = self.paths.manifest
        content = _read_text(manifest)
        updated = _ACTIVE_POINTER_RE.sub(NO_ACTIVE_POINTER, content, count=1)
        if updated == content:
            return False
        _write_text(manifest, updated)
        return True

    def restore(self, snapshot: DocumentSnapshot) -> bool:
        return snapshot.restore()


class CompletedIndex:
    """Human-readable list of finished tasks."""

    def __init__(self, paths: ProjectPaths):
        self.paths = paths

    def snapshot(self) -> DocumentSnapshot:
        return DocumentSnapshot.capture(self.paths.completed_index)

    def append(self, task_id: str, title: str) -> bool:
        """Add ``- TASK_ID: title`` under the completed section.

        Returns False when the exact entry is already listed.
        """
        path = self.paths.completed_index
        entry = f"- {task_id}: {title}"
        content = _read_text(path) if path.exists() else ""
        if any(line.strip() == entry for line in content.splitlines()):
            return False

        header_at = content.find(COMPLETED_SECTION_HEADER)
        if header_at == -1:
            if content and not content.endswith("\n"):
                content += "\n"
            if content:
                content += "\n"
            content += f"{COMPLETED_SECTION_HEADER}\n\n"
            header_at = content.find(COMPLETED_SECTION_HEADER)

        body_start = content.find("\n", header_at)
        body_start = len(content) if body_start == -1 else body_start + 1
        next_section = _SECTION_RE.search(content, body_start)
        section_end = next_section.start() if next_section else len(content)

        section = content[body_start:section_end].rstrip("\n")
        rest = content[section_end:]
        section = f"{section}\n{entry}\n" if section else f"\n{entry}\n"
        if rest:
            section += "\n"

        path.parent.mkdir(parents=True, exist_ok=True)
        _write_text(path, content[:body_start] + section + rest)
        return True


class ProgressLog:
    """Dated completion entries in ``.claude/progress_log.md``.

    Only appended to when the project already keeps the file.
    """

    def __init__(self, paths: ProjectPaths):
        self.paths = paths

    def snapshot(self) -> DocumentSnapshot:
        return DocumentSnapshot.capture(self.paths.progress_log)

    def append(self, task_id: str, completion_date: date) -> bool:
        """Returns False when the project has no progress log."""
        path = self.paths.progress_log
        if not path.exists():
            return False
        entry = f"\n## [{completion_date.isoformat()}] {task_id} Completed\n\nTask completed successfully.\n"
        _write_text(path, _read_text(path) + entry)
        return True
