"""Resolve branch, remote and pull request context for a completion attempt."""

from __future__ import annotations

import logging

from tasktrack.completion.state import BranchContext
from tasktrack.git.exec import GitCommandError
from tasktrack.git.facade import GitFacade
from tasktrack.git.history import fetch_branch
from tasktrack.hosting.github import GitHubCli, HostingError, PullRequest
from tasktrack.tasks.record import TaskRecord

logger = logging.getLogger(__name__)


def check_remote_commits(git: GitFacade, task_branch: str, default_branch: str) -> tuple[bool, str | None]:
    """Return (remote_has_commits, note) for ``task_branch`` on the remote.

    A missing remote or a missing remote branch means False. A lookup that
    fails for any other reason (network, auth) means True so the caller
    keeps history intact. An existing branch is always fetched so a stale
    remote-tracking ref cannot hide commits pushed from elsewhere. Errors
    after the branch is known to exist (fetch, merge-base, rev-list) fall
    back to False.
    """
    if not git.has_remote():
        return False, None

    try:
        exists = git.remote_branch_exists(task_branch)
    except GitCommandError as exc:
        logger.warning("Remote lookup for %s failed: %s", task_branch, exc.stderr.strip() or exc)
        return True, "Could not query remote branch - skipping squash to preserve history"
    if not exists:
        return False, None

    try:
        remote_ref = fetch_branch(git.repo_root, git.remote, task_branch, timeout=git.timeout)
        base = git.merge_base(default_branch, remote_ref)
        if not base:
            return False, None
        commits = git.rev_list(f"{base}..{remote_ref}")
    except GitCommandError as exc:
        logger.warning("Remote commit check for %s failed: %s", task_branch, exc)
        return False, None
    return len(commits) > 0, None


def find_existing_pull_request(hosting: GitHubCli, task_branch: str) -> tuple[PullRequest | None, str | None]:
    try:
        return hosting.find_open_pull_request(task_branch), None
    except HostingError as exc:
        logger.warning("Pull request lookup for %s failed: %s", task_branch, exc)
        return None, f"Could not check for existing pull request: {exc}"


def resolve_branch_context(
    *,
    git: GitFacade,
    record: TaskRecord,
    hosting: GitHubCli | None,
    pr_workflow: bool,
    warnings: list[str] | None = None,
) -> BranchContext:
    """Work out which branch belongs to the task and what the remote already has."""
    current = git.current_branch()
    default = git.default_branch()
    task_branch = record.branch_name

    existing: PullRequest | None = None
    if pr_workflow and hosting is not None and task_branch and current == task_branch:
        existing, warning = find_existing_pull_request(hosting, task_branch)
        if warning and warnings is not None:
            warnings.append(warning)

    remote_has_commits = False
    check_note: str | None = None
    if task_branch:
        remote_has_commits, check_note = check_remote_commits(git, task_branch, default)

    context = BranchContext(
        current_branch=current,
        default_branch=default,
        task_branch=task_branch,
        existing_pull_request=existing,
        remote_has_commits=remote_has_commits,
        remote_check_note=check_note,
    )
    logger.info(
        "Branch context: current=%s default=%s task=%s pr=%s remote_commits=%s",
        current or "(detached)",
        default,
        task_branch,
        existing.url if existing else None,
        remote_has_commits,
    )
    return context
