"""GitHub adapter built on the ``gh`` CLI and ``git push``."""

from __future__ import annotations

import json
import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from tasktrack.git.exec import ExecError, run_command, run_git

logger = logging.getLogger(__name__)

_PR_NUMBER_RE = re.compile(r"/pull/(\d+)/?$")


class HostingError(RuntimeError):
    """Raised when the hosting CLI is unavailable or a call fails."""


@dataclass(frozen=True)
class PullRequest:
    """Minimal pull request view: number, url and state."""

    number: int
    url: str
    state: str

    @property
    def is_open(self) -> bool:
        return self.state.upper() == "OPEN"


class GitHubCli:
    """List/create pull requests and push branches for one repository."""

    def __init__(
        self,
        repo_root: Path,
        *,
        remote: str = "origin",
        timeout: float | None = None,
        gh_path: str | None = None,
    ):
        self.repo_root = repo_root.resolve()
        self.remote = remote
        self.timeout = timeout
        self.gh_path = gh_path if gh_path is not None else shutil.which("gh")

    @property
    def available(self) -> bool:
        return bool(self.gh_path)

    def _gh(self, args: list[str]) -> str:
        if not self.gh_path:
            raise HostingError("GitHub CLI (gh) is not installed or not available in PATH")
        try:
            result = run_command([self.gh_path, *args], cwd=self.repo_root, timeout=self.timeout)
        except ExecError as exc:
            raise HostingError(str(exc)) from exc
        return result.stdout

    def list_open_pull_requests(self, head: str) -> list[PullRequest]:
        output = self._gh(
            ["pr", "list", "--head", head, "--state", "open", "--json", "number,url,state"]
        )
        try:
            payload = json.loads(output) if output.strip() else []
        except json.JSONDecodeError as exc:
            raise HostingError("Invalid JSON from gh pr list") from exc
        if not isinstance(payload, list):
            raise HostingError("Unexpected gh output for PR list")

        pulls: list[PullRequest] = []
        for entry in payload:
            if not isinstance(entry, dict) or not isinstance(entry.get("number"), int):
                continue
            pulls.append(
                PullRequest(
                    number=entry["number"],
                    url=str(entry.get("url") or ""),
                    state=str(entry.get("state") or ""),
                )
            )
        return pulls

    def find_open_pull_request(self, head: str) -> PullRequest | None:
        """First OPEN pull request for ``head`` in provider order."""
        for pull in self.list_open_pull_requests(head):
            if pull.is_open:
                return pull
        return None

    def create_pull_request(
        self,
        *,
        title: str,
        body: str,
        base: str,
        head: str,
        draft: bool = False,
    ) -> PullRequest:
        args = ["pr", "create", "--title", title, "--body", body, "--base", base, "--head", head]
        if draft:
            args.append("--draft")
        output = self._gh(args)
        url = extract_url(output)
        if url is None:
            raise HostingError(f"Could not find pull request URL in gh output: {output.strip()}")
        match = _PR_NUMBER_RE.search(url)
        if match is None:
            raise HostingError(f"Failed to extract PR number from URL: {url}")
        logger.info("Created pull request #%s %s", match.group(1), url)
        return PullRequest(number=int(match.group(1)), url=url, state="OPEN")

    def push_branch(self, branch: str) -> None:
        """Push ``branch``; sets upstream unless the branch already tracks one."""
        upstream = run_git(
            ["rev-parse", "--abbrev-ref", "--symbolic-full-name", f"{branch}@{{u}}"],
            repo_root=self.repo_root,
            check=False,
            timeout=self.timeout,
        )
        args = ["push", self.remote, branch]
        if upstream.returncode != 0:
            args = ["push", "-u", self.remote, branch]
        run_git(args, repo_root=self.repo_root, timeout=self.timeout)
        logger.info("Pushed %s to %s", branch, self.remote)

    def fallback_pr_url(self, branch: str) -> str | None:
        result = run_git(
            ["remote", "get-url", self.remote],
            repo_root=self.repo_root,
            check=False,
            timeout=self.timeout,
        )
        if result.returncode != 0:
            return None
        owner_repo = parse_owner_repo(result.stdout.strip())
        if owner_repo is None:
            return None
        return f"https://github.com/{owner_repo}/pull/new/{branch}"


def parse_owner_repo(remote_url: str) -> str | None:
    ssh_match = re.match(r"^git@github\.com:(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?$", remote_url)
    if ssh_match:
        return f"{ssh_match.group('owner')}/{ssh_match.group('repo')}"

    https_match = re.match(
        r"^https://github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$",
        remote_url,
    )
    if https_match:
        return f"{https_match.group('owner')}/{https_match.group('repo')}"

    return None


def extract_url(stdout_text: str) -> str | None:
    for line in stdout_text.splitlines():
        value = line.strip()
        if value.startswith("http://") or value.startswith("https://"):
            return value
    return None
