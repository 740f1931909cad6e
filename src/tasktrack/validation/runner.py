"""Pre-completion validation checks (type checking, linting, tests).

Each enabled check is an external command run in the project root. A check
passes when its command exits zero. Problem counts are pulled from the output
with the check's ``count_pattern``:

- a pattern with a capture group reads the number from the first match
  (``(\\d+) failed``)
- a pattern without groups counts matching lines (``error:``)
"""

from __future__ import annotations

import logging
import re
import shlex
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Literal

from tasktrack.config import CheckConfig, TrackConfig
from tasktrack.git.exec import ExecError, run_command

logger = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 2000

PROBLEM_UNITS = {
    "typecheck": ("error", "errors"),
    "lint": ("issue", "issues"),
    "tests": ("failure", "failures"),
}


@dataclass
class CheckResult:
    """Outcome of one validation command."""

    name: str
    status: Literal["pass", "fail", "skipped"]
    command: str
    problem_count: int = 0
    output: str = ""

    @property
    def passed(self) -> bool:
        return self.status != "fail"

    def summary(self) -> str:
        if self.status == "skipped":
            return "skipped"
        if self.status == "pass":
            return "passed"
        singular, plural = PROBLEM_UNITS.get(self.name, ("problem", "problems"))
        unit = singular if self.problem_count == 1 else plural
        return f"{self.problem_count} {unit}"


@dataclass
class ValidationReport:
    """Aggregated validation outcome for the preflight gate."""

    project_root: str
    ready_for_completion: bool
    checks: list[CheckResult] = field(default_factory=list)

    def summaries(self) -> dict[str, str]:
        return {check.name: check.summary() for check in self.checks}

    def failing(self) -> list[CheckResult]:
        return [check for check in self.checks if not check.passed]

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["summaries"] = self.summaries()
        return payload


def count_problems(output: str, pattern: str | None) -> int:
    if not pattern:
        return 0
    try:
        regex = re.compile(pattern, re.MULTILINE)
    except re.error:
        logger.warning("Ignoring invalid count pattern %r", pattern)
        return 0
    if regex.groups:
        match = regex.search(output)
        if match and match.group(1) and match.group(1).isdigit():
            return int(match.group(1))
        return 0
    return len(regex.findall(output))


def run_check(project_root: Path, check: CheckConfig, *, timeout: float | None = None) -> CheckResult:
    if not check.enabled:
        return CheckResult(name=check.name, status="skipped", command=check.command)

    logger.info("Running %s check: %s", check.name, check.command)
    try:
        argv = shlex.split(check.command)
    except ValueError as exc:
        argv = []
        detail = f"cannot parse command: {exc}"
    else:
        detail = "command is empty"
    if not argv:
        logger.warning("%s check could not run: %s", check.name, detail)
        return CheckResult(name=check.name, status="fail", command=check.command, problem_count=1, output=detail)

    try:
        result = run_command(
            argv,
            cwd=project_root,
            check=False,
            timeout=timeout,
        )
    except ExecError as exc:
        detail = exc.result.stderr or str(exc)
        logger.warning("%s check could not run: %s", check.name, detail)
        return CheckResult(
            name=check.name,
            status="fail",
            command=check.command,
            problem_count=1,
            output=detail[:MAX_OUTPUT_CHARS],
        )

    output = (result.stdout + result.stderr).strip()
    if result.returncode == 0:
        return CheckResult(name=check.name, status="pass", command=check.command)

    count = count_problems(output, check.count_pattern) or 1
    logger.warning("%s check failed with %d problem(s)", check.name, count)
    return CheckResult(
        name=check.name,
        status="fail",
        command=check.command,
        problem_count=count,
        output=output[:MAX_OUTPUT_CHARS],
    )


def run_validation(project_root: Path, config: TrackConfig) -> ValidationReport:
    """Run every configured check; ready when no enabled check failed."""
    timeout = config.git.command_timeout_seconds
    checks = [run_check(project_root, check, timeout=timeout) for check in config.checks]
    return ValidationReport(
        project_root=str(project_root.resolve()),
        ready_for_completion=all(check.passed for check in checks),
        checks=checks,
    )
