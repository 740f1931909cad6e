"""Commit consolidation: safety commit plus optional squash onto the merge base."""

from __future__ import annotations

import logging

from tasktrack.completion.messages import (
    CommitMessageGenerator,
    completion_commit_message,
    safety_commit_message,
)
from tasktrack.completion.state import BranchContext, CompletionOptions, CompletionState
from tasktrack.git.exec import GitCommandError
from tasktrack.git.facade import GitFacade
from tasktrack.git.history import commit, commit_all, soft_reset
from tasktrack.tasks.record import TaskRecord

logger = logging.getLogger(__name__)

REMOTE_COMMITS_NOTE = "Remote branch has commits - skipping squash to preserve history"


def should_squash(options: CompletionOptions, context: BranchContext) -> bool:
    """Squash only when allowed and nobody else can have seen the history."""
    return (
        not options.no_squash
        and context.existing_pull_request is None
        and not context.remote_has_commits
    )


def skip_reason(options: CompletionOptions, context: BranchContext) -> str:
    if options.no_squash:
        return "Squash disabled with --no-squash"
    if context.existing_pull_request is not None:
        pr = context.existing_pull_request
        return f"Open pull request #{pr.number} found - skipping squash to preserve review history"
    return context.remote_check_note or REMOTE_COMMITS_NOTE


def safety_commit(git: GitFacade, state: CompletionState, message: str) -> bool:
    """Commit every uncommitted change so later history rewrites cannot drop work."""
    if not git.has_uncommitted_changes():
        return False
    commit_all(git.repo_root, message, timeout=git.timeout)
    state.git.safety_commit = True
    state.git.safety_commit_message = message
    state.messages.append(f"Committed uncommitted changes: {message}")
    logger.info("Safety commit created: %s", message)
    return True


def _generated_message(
    git: GitFacade,
    generator: CommitMessageGenerator | None,
    base: str,
    record: TaskRecord,
) -> str:
    if generator is not None:
        try:
            generated = generator.generate(git.diff(f"{base}..HEAD"), record.task_id)
        except GitCommandError as exc:
            logger.warning("Could not read diff for commit message: %s", exc)
            generated = None
        if generated:
            return generated
    return completion_commit_message(record.task_id, record.title)


def consolidate_history(
    *,
    git: GitFacade,
    record: TaskRecord,
    context: BranchContext,
    options: CompletionOptions,
    state: CompletionState,
    generator: CommitMessageGenerator | None = None,
) -> None:
    """Decide whether to squash, then safety-commit and squash as allowed.

    Squash failures are recorded as warnings; the branch is left as git left
    it. A failed safety commit propagates because nothing after it is safe.
    """
    task_id = record.task_id

    if not should_squash(options, context):
        reason = skip_reason(options, context)
        state.git.add_note(reason)
        commit_reason = "pr_feedback" if context.existing_pull_request is not None else "docs"
        safety_commit(git, state, options.message or safety_commit_message(task_id, reason=commit_reason))
        state.git.changed_files = _branch_changed_files(git, context)
        logger.info("Squash skipped for %s: %s", task_id, reason)
        return

    state.git.squash_attempted = True
    current = context.current_branch
    default = context.default_branch

    base = ""
    prior_commits = 0
    if current and current != default:
        base = git.merge_base(current, default)
        if base:
            prior_commits = git.commit_count(f"{base}..HEAD")

    safety_commit(git, state, options.message or safety_commit_message(task_id, reason="squash"))

    if not current:
        state.git.add_note("Detached HEAD - skipping squash")
        return

    if current == default:
        state.git.add_note(f"On default branch {default} - nothing to squash")
        state.git.changed_files = git.last_commit_files()
        return

    if not base:
        state.git.add_note(f"Could not determine merge base with {default} - skipping squash")
        return

    # wip_commit_count reports the branch's own commits, not the safety commit.
    state.git.wip_commit_count = prior_commits
    count = git.commit_count(f"{base}..HEAD")
    if count == 0:
        state.git.add_note("No commits to squash")
        return
    if count == 1:
        state.git.add_note("Already a single commit - no squash needed")
        state.git.changed_files = git.changed_files(f"{base}..HEAD")
        return

    message = options.message or _generated_message(git, generator, base, record)
    try:
        soft_reset(git.repo_root, base, timeout=git.timeout)
        commit(git.repo_root, message, timeout=git.timeout)
    except GitCommandError as exc:
        state.git.squash_failed = True
        state.warnings.append(f"Failed to squash commits: {exc}")
        logger.warning("Squash failed for %s: %s", task_id, exc)
        return

    state.git.squashed = True
    state.git.commit_message = message
    state.git.changed_files = git.changed_files(f"{base}..HEAD")
    state.messages.append(f"Squashed {count} commits into: {message}")
    logger.info("Squashed %d commits on %s", count, current)


def _branch_changed_files(git: GitFacade, context: BranchContext) -> list[str]:
    current = context.current_branch
    if not current or current == context.default_branch:
        return git.last_commit_files()
    base = git.merge_base(current, context.default_branch)
    if not base:
        return []
    return git.changed_files(f"{base}..HEAD")
