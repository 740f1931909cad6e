"""Command runners for tasktrack git and hosting workflows."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

TIMEOUT_RETURNCODE = 124


@dataclass(frozen=True)
class ExecResult:
    """Result envelope for subprocess execution."""

    argv: tuple[str, ...]
    cwd: Path
    returncode: int
    stdout: str
    stderr: str


class ExecError(RuntimeError):
    """Raised when a command returns non-zero in check mode."""

    def __init__(self, result: ExecResult):
        rendered = " ".join(result.argv)
        detail = (result.stderr or result.stdout).strip()
        super().__init__(f"command failed ({result.returncode}): {rendered}\n{detail}")
        self.result = result

    @property
    def stderr(self) -> str:
        return self.result.stderr


class GitCommandError(ExecError):
    """Raised when a git invocation fails."""


def run_command(
    argv: list[str],
    *,
    cwd: Path,
    check: bool = True,
    timeout: float | None = None,
    input_text: str | None = None,
) -> ExecResult:
    """Run command and return structured result.

    A timeout is reported as an ordinary failure with returncode 124.
    """
    try:
        completed = subprocess.run(
            argv,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
            input=input_text,
        )
    except subprocess.TimeoutExpired as exc:
        result = ExecResult(
            argv=tuple(argv),
            cwd=cwd.resolve(),
            returncode=TIMEOUT_RETURNCODE,
            stdout=_as_text(exc.stdout),
            stderr=f"timed out after {timeout}s",
        )
        raise ExecError(result) from exc
    except FileNotFoundError as exc:
        result = ExecResult(
            argv=tuple(argv),
            cwd=cwd.resolve(),
            returncode=127,
            stdout="",
            stderr=str(exc),
        )
        raise ExecError(result) from exc

    result = ExecResult(
        argv=tuple(argv),
        cwd=cwd.resolve(),
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )
    if check and result.returncode != 0:
        raise ExecError(result)
    return result


def run_git(
    args: list[str],
    *,
    repo_root: Path,
    check: bool = True,
    timeout: float | None = None,
) -> ExecResult:
    """Run git command rooted at repo."""
    try:
        return run_command(["git", *args], cwd=repo_root, check=check, timeout=timeout)
    except ExecError as exc:
        raise GitCommandError(exc.result) from exc


def _as_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
