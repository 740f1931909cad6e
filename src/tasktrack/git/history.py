"""History-mutating git operations for task completion."""

from __future__ import annotations

from pathlib import Path

from tasktrack.git.exec import run_git


def stage_all(repo_root: Path, *, timeout: float | None = None) -> None:
    run_git(["add", "-A"], repo_root=repo_root, timeout=timeout)


def commit(repo_root: Path, message: str, *, timeout: float | None = None) -> str:
    """Create a commit from the index and return the new HEAD sha."""
    run_git(["commit", "-m", message], repo_root=repo_root, timeout=timeout)
    return run_git(["rev-parse", "HEAD"], repo_root=repo_root, timeout=timeout).stdout.strip()


def commit_all(repo_root: Path, message: str, *, timeout: float | None = None) -> str:
    """Stage every tracked and untracked change and commit it."""
    stage_all(repo_root, timeout=timeout)
    return commit(repo_root, message, timeout=timeout)


def soft_reset(repo_root: Path, ref: str, *, timeout: float | None = None) -> None:
    run_git(["reset", "--soft", ref], repo_root=repo_root, timeout=timeout)


def checkout(repo_root: Path, branch: str, *, timeout: float | None = None) -> None:
    run_git(["checkout", branch], repo_root=repo_root, timeout=timeout)


def merge_no_ff(
    repo_root: Path,
    branch: str,
    *,
    message: str | None = None,
    timeout: float | None = None,
) -> None:
    merge_message = message or f"Merge branch '{branch}'"
    run_git(["merge", branch, "--no-ff", "-m", merge_message], repo_root=repo_root, timeout=timeout)


def abort_merge(repo_root: Path, *, timeout: float | None = None) -> bool:
    """Abort an in-progress merge; returns False when there was nothing to abort."""
    result = run_git(["merge", "--abort"], repo_root=repo_root, check=False, timeout=timeout)
    return result.returncode == 0


def pull_ff_only(
    repo_root: Path,
    remote: str,
    branch: str,
    *,
    timeout: float | None = None,
) -> str:
    result = run_git(["pull", "--ff-only", remote, branch], repo_root=repo_root, timeout=timeout)
    return result.stdout.strip() or result.stderr.strip()


def fetch_branch(
    repo_root: Path,
    remote: str,
    branch: str,
    *,
    timeout: float | None = None,
) -> str:
    """Fetch ``branch`` into its remote-tracking ref and return that ref name."""
    tracking_ref = f"refs/remotes/{remote}/{branch}"
    run_git(
        ["fetch", remote, f"+refs/heads/{branch}:{tracking_ref}"],
        repo_root=repo_root,
        timeout=timeout,
    )
    return f"{remote}/{branch}"
