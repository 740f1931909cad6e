"""Read-only repository queries used by the completion engine."""

from __future__ import annotations

from pathlib import Path

from tasktrack.git.exec import ExecResult, GitCommandError, run_git

WELL_KNOWN_DEFAULT_BRANCHES = ("main", "master")


class GitFacade:
    """Primitive repository inspection rooted at one working tree.

    Every query may raise ``GitCommandError`` carrying git's stderr. Nothing
    here mutates the index, the working tree or any ref.
    """

    def __init__(
        self,
        repo_root: Path,
        *,
        configured_default: str = "main",
        remote: str = "origin",
        timeout: float | None = None,
    ):
        self.repo_root = repo_root.resolve()
        self.configured_default = configured_default
        self.remote = remote
        self.timeout = timeout
        self._default_branch: str | None = None

    def _git(self, args: list[str], *, check: bool = True) -> ExecResult:
        return run_git(args, repo_root=self.repo_root, check=check, timeout=self.timeout)

    def is_repository(self) -> bool:
        try:
            return self._git(["rev-parse", "--git-dir"], check=False).returncode == 0
        except GitCommandError:
            return False

    def current_branch(self) -> str:
        """Return the checked-out branch, or an empty string when detached."""
        return self._git(["branch", "--show-current"]).stdout.strip()

    def default_branch(self) -> str:
        """Resolve the default branch once: remote HEAD, well-known names, config."""
        if self._default_branch is None:
            self._default_branch = self._resolve_default_branch()
        return self._default_branch

    def _resolve_default_branch(self) -> str:
        remote_head = self._git(
            ["symbolic-ref", "--quiet", "--short", f"refs/remotes/{self.remote}/HEAD"],
            check=False,
        )
        if remote_head.returncode == 0:
            name = remote_head.stdout.strip()
            prefix = f"{self.remote}/"
            if name.startswith(prefix):
                name = name[len(prefix):]
            if name:
                return name

        for candidate in WELL_KNOWN_DEFAULT_BRANCHES:
            if self.ref_exists(f"refs/heads/{candidate}"):
                return candidate
        return self.configured_default

    def merge_base(self, a: str, b: str) -> str:
        """Return the merge-base hash of two refs, or an empty string when unrelated."""
        result = self._git(["merge-base", a, b], check=False)
        if result.returncode == 1:
            return ""
        if result.returncode != 0:
            raise GitCommandError(result)
        return result.stdout.strip()

    def commit_count(self, range_expr: str) -> int:
        output = self._git(["rev-list", "--count", range_expr]).stdout.strip()
        return int(output or "0")

    def rev_list(self, range_expr: str) -> list[str]:
        output = self._git(["rev-list", range_expr]).stdout
        return [line.strip() for line in output.splitlines() if line.strip()]

    def changed_files(self, range_expr: str) -> list[str]:
        output = self._git(["diff", "--name-only", range_expr]).stdout
        return [line.strip() for line in output.splitlines() if line.strip()]

    def last_commit_files(self) -> list[str]:
        """Files touched by HEAD, including when HEAD is a root commit."""
        if self.ref_exists("HEAD~1"):
            return self.changed_files("HEAD~1..HEAD")
        output = self._git(["show", "--name-only", "--pretty=format:", "HEAD"]).stdout
        return [line.strip() for line in output.splitlines() if line.strip()]

    def diff(self, range_expr: str) -> str:
        return self._git(["diff", range_expr]).stdout

    def has_uncommitted_changes(self) -> bool:
        status = self._git(["status", "--porcelain", "--untracked-files=all"]).stdout
        return bool(status.strip())

    def ref_exists(self, ref: str) -> bool:
        result = self._git(["rev-parse", "--verify", "--quiet", ref], check=False)
        return result.returncode == 0

    def has_remote(self, remote: str | None = None) -> bool:
        result = self._git(["remote", "get-url", remote or self.remote], check=False)
        return result.returncode == 0

    def remote_branch_exists(self, branch: str) -> bool:
        """Ask the remote whether ``branch`` exists.

        ``git ls-remote --exit-code`` returns 2 when no ref matched; that is
        the only outcome reported as absence. Any other failure (network,
        auth, unknown remote) raises ``GitCommandError``.
        """
        result = self._git(
            ["ls-remote", "--exit-code", "--heads", self.remote, branch],
            check=False,
        )
        if result.returncode == 0:
            return True
        if result.returncode == 2:
            return False
        raise GitCommandError(result)
