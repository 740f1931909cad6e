"""Hosting provider adapters."""

from tasktrack.hosting.github import GitHubCli, HostingError, PullRequest

__all__ = ["GitHubCli", "HostingError", "PullRequest"]
