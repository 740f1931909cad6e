"""Completion reconciler: drives one task completion attempt to a terminal state.

Phases run in order::

    idle -> preflight_checked -> task_marked -> branch_context_resolved
         -> history_consolidated -> remote_reconciled -> done

Validation failure ends in ``rejected`` before anything is written. A missing
manifest, pointer or task file ends in ``precondition_failed``. Once the task
has been marked, an unrecoverable failure (a failed push, or anything
unexpected) ends in ``rolled_back``: the bookkeeping documents are put
back byte-for-byte and the restoration is committed. Git history rewrites
already performed are left alone.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from pathlib import Path

from tasktrack.completion.consolidate import consolidate_history
from tasktrack.completion.context import resolve_branch_context
from tasktrack.completion.messages import CommandMessageGenerator, CommitMessageGenerator
from tasktrack.completion.state import (
    CompletionOptions,
    CompletionResult,
    CompletionState,
    Outcome,
    Phase,
)
from tasktrack.completion.strategies import (
    LocalMergeWorkflow,
    PullRequestWorkflow,
    reconcile_local_merge,
    reconcile_pull_request,
    select_strategy,
)
from tasktrack.config import ConfigError, TrackConfig, load_config
from tasktrack.git.exec import ExecError
from tasktrack.git.facade import GitFacade
from tasktrack.git.history import commit_all
from tasktrack.hosting.github import GitHubCli
from tasktrack.tasks.record import TaskRecord
from tasktrack.tasks.store import (
    ActiveTaskRegistry,
    CompletedIndex,
    CompletionPrecondition,
    ProgressLog,
    ProjectPaths,
    TaskStore,
    UnreadableDocument,
)
from tasktrack.validation.runner import ValidationReport, run_validation

logger = logging.getLogger(__name__)

Validator = Callable[[Path, TrackConfig], ValidationReport]


class _PushFailed(RuntimeError):
    """Internal signal: the remote step failed and bookkeeping must be restored."""


def rollback_commit_message(task_id: str) -> str:
    return f"chore: restore {task_id} bookkeeping after failed completion"


def _advance(state: CompletionState, phase: Phase) -> None:
    state.advance(phase)
    logger.info("Completion %s: %s", state.task_id or "-", phase.value)


def _finish(state: CompletionState, outcome: Outcome, error: str | None = None) -> CompletionResult:
    data = state.to_dict()
    data["outcome"] = outcome.value
    return CompletionResult(
        success=outcome is Outcome.DONE,
        outcome=outcome,
        messages=list(state.messages),
        warnings=list(state.warnings),
        error=error,
        data=data,
    )


def _precondition_failed(state: CompletionState, error: str) -> CompletionResult:
    logger.warning("Completion precondition failed: %s", error)
    _advance(state, Phase.PRECONDITION_FAILED)
    return _finish(state, Outcome.PRECONDITION_FAILED, error)


def _run_preflight(
    state: CompletionState,
    root: Path,
    config: TrackConfig,
    options: CompletionOptions,
    validator: Validator,
) -> bool:
    """Record validation results on ``state``; returns True when ready."""
    if options.skip_validation:
        state.validation.skipped = True
        state.messages.append("Validation skipped (--skip-validation)")
        return True

    report = validator(root, config)
    state.validation.checks = report.summaries()
    state.validation.passed = report.ready_for_completion
    if not report.ready_for_completion:
        for check in report.failing():
            state.messages.append(f"{check.name}: {check.summary()}")
    return report.ready_for_completion


def _mark_task(
    state: CompletionState,
    record: TaskRecord,
    tasks: TaskStore,
    registry: ActiveTaskRegistry,
    index: CompletedIndex,
    progress: ProgressLog,
    today: date,
) -> None:
    state.task_snapshot = tasks.snapshot(record.task_id)
    state.pointer_snapshot = registry.snapshot()
    state.index_snapshot = index.snapshot()
    state.progress_snapshot = progress.snapshot()

    if record.is_completed:
        state.warnings.append(f"{record.task_id} was already marked completed")
    tasks.mark_completed(record.task_id, today)
    state.updates.task_file = "completed"
    state.messages.append(f"Marked {record.task_id} as completed")

    state.updates.active_pointer = "cleared" if registry.clear() else "unchanged"

    try:
        appended = index.append(record.task_id, record.title)
    except (OSError, UnreadableDocument) as exc:
        state.updates.completed_index = "failed"
        state.warnings.append(f"Failed to update completed task index: {exc}")
        logger.warning("Completed index update failed: %s", exc)
    else:
        state.updates.completed_index = "appended" if appended else "already listed"

    try:
        logged = progress.append(record.task_id, today)
    except (OSError, UnreadableDocument) as exc:
        state.updates.progress_log = "failed"
        state.warnings.append(f"Failed to update progress log: {exc}")
        logger.warning("Progress log update failed: %s", exc)
    else:
        state.updates.progress_log = "appended" if logged else "absent"


def _rollback(state: CompletionState, git: GitFacade) -> None:
    """Restore bookkeeping documents, then commit the restoration if needed."""
    restored = False
    for snapshot in (
        state.task_snapshot,
        state.pointer_snapshot,
        state.index_snapshot,
        state.progress_snapshot,
    ):
        if snapshot is not None:
            restored = snapshot.restore() or restored
    state.updates.task_file = "restored"
    state.updates.active_pointer = "restored"
    state.updates.completed_index = "restored"
    if state.updates.progress_log == "appended":
        state.updates.progress_log = "restored"
    state.git.reverted = True
    state.messages.append(f"Restored {state.task_id} bookkeeping; the task is still in progress")

    if not restored:
        return
    try:
        if git.has_uncommitted_changes():
            commit_all(git.repo_root, rollback_commit_message(state.task_id or "task"), timeout=git.timeout)
    except ExecError as exc:
        state.warnings.append(f"Restored task files could not be committed: {exc}")
        logger.warning("Rollback commit failed: %s", exc)


def complete_task(
    project_root: Path | str,
    options: CompletionOptions | None = None,
    *,
    config: TrackConfig | None = None,
    hosting: GitHubCli | None = None,
    validator: Validator | None = None,
    generator: CommitMessageGenerator | None = None,
    today: date | None = None,
) -> CompletionResult:
    """Run one completion attempt for the active task under ``project_root``.

    Never raises for expected failures; the outcome is reported on the
    returned ``CompletionResult``.
    """
    options = options or CompletionOptions()
    root = Path(project_root).resolve()
    state = CompletionState()

    try:
        config = config or load_config(root)
    except ConfigError as exc:
        return _precondition_failed(state, str(exc))

    git = GitFacade(
        root,
        configured_default=config.git.default_branch,
        remote=config.git.remote,
        timeout=config.git.command_timeout_seconds,
    )
    if not git.is_repository():
        return _precondition_failed(state, f"Not a git repository: {root}")

    try:
        ready = _run_preflight(state, root, config, options, validator or run_validation)
    except Exception as exc:
        logger.exception("Validation could not run")
        return _precondition_failed(state, f"Validation could not run: {exc}")
    if not ready:
        _advance(state, Phase.REJECTED)
        logger.warning("Completion rejected: validation not ready (%s)", state.validation.checks)
        return _finish(state, Outcome.REJECTED, "Pre-flight validation failed")
    _advance(state, Phase.PREFLIGHT_CHECKED)

    paths = ProjectPaths(root)
    tasks = TaskStore(paths)
    registry = ActiveTaskRegistry(paths)
    index = CompletedIndex(paths)
    progress = ProgressLog(paths)
    try:
        task_id = registry.require_active_task_id()
        state.task_id = task_id
        record = tasks.read(task_id)
    except CompletionPrecondition as exc:
        return _precondition_failed(state, str(exc))
    state.task_title = record.title

    strategy = select_strategy(config, options)
    if hosting is None and isinstance(strategy, PullRequestWorkflow):
        hosting = GitHubCli(root, remote=config.git.remote, timeout=config.git.command_timeout_seconds)
    if generator is None and config.commit_message_command:
        try:
            generator = CommandMessageGenerator(config.commit_message_command, cwd=root)
        except ValueError as exc:
            state.warnings.append(f"Ignoring commit_message.command: {exc}")

    try:
        _mark_task(state, record, tasks, registry, index, progress, today or date.today())
        _advance(state, Phase.TASK_MARKED)

        context = resolve_branch_context(
            git=git,
            record=record,
            hosting=hosting,
            pr_workflow=isinstance(strategy, PullRequestWorkflow),
            warnings=state.warnings,
        )
        _advance(state, Phase.BRANCH_CONTEXT_RESOLVED)

        consolidate_history(
            git=git,
            record=record,
            context=context,
            options=options,
            state=state,
            generator=generator,
        )
        _advance(state, Phase.HISTORY_CONSOLIDATED)

        if isinstance(strategy, PullRequestWorkflow):
            assert hosting is not None
            if not reconcile_pull_request(
                strategy=strategy,
                git=git,
                hosting=hosting,
                record=record,
                context=context,
                state=state,
            ):
                raise _PushFailed(state.warnings[-1])
        elif isinstance(strategy, LocalMergeWorkflow):
            reconcile_local_merge(git=git, context=context, state=state)
        else:
            state.git.add_note("Branch handling skipped (--no-branch)")
        _advance(state, Phase.REMOTE_RECONCILED)
    except _PushFailed as exc:
        return _roll_back(state, git, str(exc))
    except Exception as exc:
        logger.exception("Completion of %s failed unexpectedly", state.task_id)
        if not state.bookkeeping_mutated:
            return _precondition_failed(state, f"Unexpected error before any change: {exc}")
        state.warnings.append(f"Unexpected error: {exc}")
        return _roll_back(state, git, str(exc))

    _advance(state, Phase.DONE)
    state.messages.append(f"Task {record.task_id} completed: {record.title}")
    return _finish(state, Outcome.DONE)


def _roll_back(state: CompletionState, git: GitFacade, reason: str) -> CompletionResult:
    _rollback(state, git)
    _advance(state, Phase.ROLLED_BACK)
    logger.warning("Completion of %s rolled back: %s", state.task_id, reason)
    return _finish(state, Outcome.ROLLED_BACK, reason)
