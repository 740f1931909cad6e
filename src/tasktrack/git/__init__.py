"""Git operations for tasktrack task completion."""

from tasktrack.git.exec import ExecError, ExecResult, GitCommandError, run_command, run_git
from tasktrack.git.facade import GitFacade

__all__ = ["ExecError", "ExecResult", "GitCommandError", "GitFacade", "run_command", "run_git"]
