"""Types threaded through one completion attempt."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from tasktrack.hosting.github import PullRequest
from tasktrack.tasks.store import DocumentSnapshot


class Phase(str, Enum):
    """Completion state machine phases."""

    IDLE = "idle"
    PREFLIGHT_CHECKED = "preflight_checked"
    TASK_MARKED = "task_marked"
    BRANCH_CONTEXT_RESOLVED = "branch_context_resolved"
    HISTORY_CONSOLIDATED = "history_consolidated"
    REMOTE_RECONCILED = "remote_reconciled"
    DONE = "done"
    REJECTED = "rejected"
    ROLLED_BACK = "rolled_back"
    PRECONDITION_FAILED = "precondition_failed"


_ALLOWED_TRANSITIONS: dict[Phase, frozenset[Phase]] = {
    Phase.IDLE: frozenset({Phase.PREFLIGHT_CHECKED, Phase.REJECTED, Phase.PRECONDITION_FAILED}),
    Phase.PREFLIGHT_CHECKED: frozenset({Phase.TASK_MARKED, Phase.ROLLED_BACK, Phase.PRECONDITION_FAILED}),
    Phase.TASK_MARKED: frozenset({Phase.BRANCH_CONTEXT_RESOLVED, Phase.ROLLED_BACK}),
    Phase.BRANCH_CONTEXT_RESOLVED: frozenset({Phase.HISTORY_CONSOLIDATED, Phase.ROLLED_BACK}),
    Phase.HISTORY_CONSOLIDATED: frozenset({Phase.REMOTE_RECONCILED, Phase.ROLLED_BACK}),
    Phase.REMOTE_RECONCILED: frozenset({Phase.DONE, Phase.ROLLED_BACK}),
}


class InvalidTransition(RuntimeError):
    """Raised when the reconciler attempts an impossible phase change."""


@dataclass(frozen=True)
class CompletionOptions:
    """Caller switches for one completion attempt."""

    no_squash: bool = False
    no_branch: bool = False
    skip_validation: bool = False
    message: str | None = None


@dataclass(frozen=True)
class BranchContext:
    """Per-invocation view of branch, remote and pull request state."""

    current_branch: str
    default_branch: str
    task_branch: str | None
    existing_pull_request: PullRequest | None
    remote_has_commits: bool
    remote_check_note: str | None = None

    @property
    def on_task_branch(self) -> bool:
        return bool(self.task_branch) and self.current_branch == self.task_branch


@dataclass
class ValidationSummary:
    passed: bool | None = None
    skipped: bool = False
    checks: dict[str, str] = field(default_factory=dict)


@dataclass
class UpdatesSummary:
    task_file: str = "unchanged"
    active_pointer: str = "unchanged"
    completed_index: str = "unchanged"
    progress_log: str = "unchanged"


@dataclass
class GitSummary:
    safety_commit: bool = False
    safety_commit_message: str | None = None
    squash_attempted: bool = False
    squashed: bool = False
    squash_failed: bool = False
    wip_commit_count: int = 0
    commit_message: str | None = None
    notes: str | None = None
    changed_files: list[str] = field(default_factory=list)
    pushed: bool = False
    branch_switched: bool = False
    branch_merged: bool | None = None
    reverted: bool = False

    def add_note(self, note: str) -> None:
        self.notes = note if not self.notes else f"{self.notes}; {note}"


@dataclass
class GitHubSummary:
    pr_workflow: bool = False
    pr_exists: bool = False
    pr_created: bool = False
    pr_url: str | None = None
    pr_number: int | None = None
    issue_number: int | None = None


@dataclass
class CompletionState:
    """Mutable accumulator for one attempt; never persisted."""

    task_id: str | None = None
    task_title: str | None = None
    phase: Phase = Phase.IDLE
    transitions: list[Phase] = field(default_factory=lambda: [Phase.IDLE])
    messages: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    validation: ValidationSummary = field(default_factory=ValidationSummary)
    updates: UpdatesSummary = field(default_factory=UpdatesSummary)
    git: GitSummary = field(default_factory=GitSummary)
    github: GitHubSummary = field(default_factory=GitHubSummary)
    task_snapshot: DocumentSnapshot | None = None
    pointer_snapshot: DocumentSnapshot | None = None
    index_snapshot: DocumentSnapshot | None = None
    progress_snapshot: DocumentSnapshot | None = None

    def advance(self, phase: Phase) -> None:
        allowed = _ALLOWED_TRANSITIONS.get(self.phase, frozenset())
        if phase not in allowed:
            raise InvalidTransition(f"cannot move from {self.phase.value} to {phase.value}")
        self.phase = phase
        self.transitions.append(phase)

    @property
    def bookkeeping_mutated(self) -> bool:
        return self.task_snapshot is not None

    def to_dict(self) -> dict[str, Any]:
        """Machine-readable snapshot; excludes the raw document snapshots."""
        return {
            "task_id": self.task_id,
            "task_title": self.task_title,
            "phase": self.phase.value,
            "transitions": [phase.value for phase in self.transitions],
            "validation": asdict(self.validation),
            "updates": asdict(self.updates),
            "git": asdict(self.git),
            "github": asdict(self.github),
        }


class Outcome(str, Enum):
    DONE = "done"
    REJECTED = "rejected"
    ROLLED_BACK = "rolled_back"
    PRECONDITION_FAILED = "precondition_failed"


@dataclass(frozen=True)
class CompletionResult:
    """What ``complete_task`` returns to its caller; it never raises."""

    success: bool
    outcome: Outcome
    messages: list[str]
    warnings: list[str]
    error: str | None
    data: dict[str, Any]

    @property
    def exit_code(self) -> int:
        if self.outcome is Outcome.DONE:
            return 0
        if self.outcome is Outcome.REJECTED:
            return 2
        return 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "outcome": self.outcome.value,
            "messages": list(self.messages),
            "warnings": list(self.warnings),
            "error": self.error,
            "data": self.data,
        }
