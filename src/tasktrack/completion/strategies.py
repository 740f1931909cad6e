"""Remote reconciliation strategies, chosen once per completion attempt."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from tasktrack.completion.messages import pull_request_body, pull_request_title
from tasktrack.completion.state import BranchContext, CompletionOptions, CompletionState
from tasktrack.config import TrackConfig
from tasktrack.git.exec import ExecError, GitCommandError
from tasktrack.git.facade import GitFacade
from tasktrack.git.history import abort_merge, checkout, merge_no_ff, pull_ff_only
from tasktrack.hosting.github import GitHubCli, HostingError
from tasktrack.tasks.record import TaskRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PullRequestWorkflow:
    """Push the task branch and open or update a pull request."""

    draft: bool = False
    kind: Literal["pull_request"] = "pull_request"


@dataclass(frozen=True)
class LocalMergeWorkflow:
    """Merge the task branch into the default branch with --no-ff."""

    kind: Literal["local_merge"] = "local_merge"


@dataclass(frozen=True)
class SkipBranchWorkflow:
    """Leave branches alone (``--no-branch``)."""

    kind: Literal["skip"] = "skip"


CompletionStrategy = PullRequestWorkflow | LocalMergeWorkflow | SkipBranchWorkflow


def select_strategy(config: TrackConfig, options: CompletionOptions) -> CompletionStrategy:
    if options.no_branch:
        return SkipBranchWorkflow()
    if config.github.pr_workflow:
        return PullRequestWorkflow(draft=config.github.draft_prs)
    return LocalMergeWorkflow()


def _detail(exc: Exception) -> str:
    if isinstance(exc, ExecError):
        return (exc.result.stderr or exc.result.stdout).strip() or str(exc)
    return str(exc)


def _not_on_task_branch(context: BranchContext, state: CompletionState, action: str) -> None:
    current = context.current_branch or "(detached HEAD)"
    state.warnings.append(
        f"Not on task branch {context.task_branch} (currently on {current}) - skipping {action}"
    )
    state.git.add_note(f"Task branch {context.task_branch} is not currently checked out")


def reconcile_pull_request(
    *,
    strategy: PullRequestWorkflow,
    git: GitFacade,
    hosting: GitHubCli,
    record: TaskRecord,
    context: BranchContext,
    state: CompletionState,
) -> bool:
    """Push and open/update the pull request.

    Returns False only when the push failed, which the caller must roll back.
    """
    state.github.pr_workflow = True
    state.github.issue_number = record.annotations.github_issue
    task_branch = context.task_branch

    if not task_branch:
        state.warnings.append(f"No task branch recorded for {record.task_id} - skipping push and pull request")
        state.git.add_note("No task branch recorded")
        return True
    if not context.on_task_branch:
        _not_on_task_branch(context, state, "push and pull request")
        return True

    try:
        hosting.push_branch(task_branch)
    except ExecError as exc:
        state.warnings.append(f"Failed to push branch to {hosting.remote}: {_detail(exc)}")
        state.messages.extend(
            [
                "Push failed; task bookkeeping has been restored so the task stays in progress.",
                f"Push manually with: git push -u {hosting.remote} {task_branch}",
                "Then run complete-task again.",
            ]
        )
        logger.warning("Push of %s failed: %s", task_branch, exc)
        return False
    state.git.pushed = True
    state.messages.append(f"Pushed {task_branch} to {hosting.remote}")

    existing = context.existing_pull_request
    if existing is not None:
        state.github.pr_exists = True
        state.github.pr_url = existing.url
        state.github.pr_number = existing.number
        state.messages.append(f"Pull Request Updated: #{existing.number} {existing.url}")
    else:
        _create_pull_request(strategy, hosting, record, context, state)

    _return_to_default_branch(git, hosting.remote, context, state)
    return True


def _create_pull_request(
    strategy: PullRequestWorkflow,
    hosting: GitHubCli,
    record: TaskRecord,
    context: BranchContext,
    state: CompletionState,
) -> None:
    task_branch = context.task_branch or ""
    fallback = hosting.fallback_pr_url(task_branch)
    manual_hint = f" Create it manually: {fallback}" if fallback else ""
    if not hosting.available:
        state.warnings.append(f"GitHub CLI (gh) is not available; pull request not created.{manual_hint}")
        logger.warning("Skipping pull request creation: gh not found")
        return
    try:
        pull = hosting.create_pull_request(
            title=pull_request_title(record.task_id, record.title),
            body=pull_request_body(
                task_id=record.task_id,
                title=record.title,
                commit_message=state.git.commit_message,
                squashed=state.git.squashed,
                original_commits=state.git.wip_commit_count,
                changed_files=state.git.changed_files,
                issue_number=record.annotations.github_issue,
            ),
            base=context.default_branch,
            head=task_branch,
            draft=strategy.draft,
        )
    except HostingError as exc:
        state.warnings.append(f"Failed to create pull request: {exc}.{manual_hint}")
        logger.warning("Pull request creation failed: %s", exc)
        return

    state.github.pr_created = True
    state.github.pr_url = pull.url
    state.github.pr_number = pull.number
    state.messages.append(f"Pull Request Created: #{pull.number} {pull.url}")


def _return_to_default_branch(
    git: GitFacade,
    remote: str,
    context: BranchContext,
    state: CompletionState,
) -> None:
    default = context.default_branch
    try:
        checkout(git.repo_root, default, timeout=git.timeout)
    except GitCommandError as exc:
        state.warnings.append(f"Failed to switch back to {default}: {_detail(exc)}")
        return
    state.git.branch_switched = True
    state.messages.append(f"Switched back to {default}")
    try:
        pull_ff_only(git.repo_root, remote, default, timeout=git.timeout)
    except GitCommandError as exc:
        state.warnings.append(f"Failed to pull latest {default}: {_detail(exc)}")


def reconcile_local_merge(
    *,
    git: GitFacade,
    context: BranchContext,
    state: CompletionState,
) -> bool:
    """Merge the task branch into the default branch; conflicts are not fatal."""
    task_branch = context.task_branch
    default = context.default_branch

    if not task_branch:
        state.git.add_note("No task branch recorded - nothing to merge")
        return True
    if not context.on_task_branch:
        _not_on_task_branch(context, state, "merge")
        return True

    try:
        checkout(git.repo_root, default, timeout=git.timeout)
    except GitCommandError as exc:
        state.git.branch_merged = False
        state.warnings.append(f"Failed to switch to {default} for merge: {_detail(exc)}")
        return True

    try:
        merge_no_ff(git.repo_root, task_branch, timeout=git.timeout)
    except GitCommandError as exc:
        state.git.branch_merged = False
        abort_merge(git.repo_root, timeout=git.timeout)
        state.warnings.append(
            f"Auto-merge of {task_branch} into {default} failed: {_detail(exc)}. "
            f"Merge manually with: git merge {task_branch}"
        )
        try:
            checkout(git.repo_root, task_branch, timeout=git.timeout)
        except GitCommandError as checkout_exc:
            state.git.branch_switched = True
            state.warnings.append(f"Failed to return to {task_branch}: {_detail(checkout_exc)}")
        return True

    state.git.branch_merged = True
    state.git.branch_switched = True
    state.messages.append(f"Merged {task_branch} into {default}")
    return True
