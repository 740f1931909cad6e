"""Tests for task markdown parsing and the completion rewrite."""

from __future__ import annotations

from datetime import date
from pathlib import Path

from tasktrack.tasks.record import (
    STATUS_COMPLETED,
    apply_completion,
    parse_annotations,
    parse_task_record,
)

DONE_ON = date(2026, 10, 19)

BASIC_TASK = (
    "# Task 001: Example\n"
    "\n"
    "<!-- branch: feature/TASK_001 -->\n"
    "**Status:** in_progress\n"
    "\n"
    "## Current Focus\n"
    "\n"
    "Do the work\n"
)


def test_parse_task_record_reads_title_status_and_branch() -> None:
    record = parse_task_record("TASK_001", BASIC_TASK, Path("TASK_001.md"))
    assert record.title == "Task 001: Example"
    assert record.status == "in_progress"
    assert record.branch_name == "feature/TASK_001"
    assert record.is_completed is False


def test_parse_task_record_falls_back_to_task_id_for_title() -> None:
    record = parse_task_record("TASK_009", "**Status:** in_progress\n", Path("TASK_009.md"))
    assert record.title == "TASK_009"


def test_parse_annotations_issue_branch_and_issue_number() -> None:
    annotations = parse_annotations(
        "<!-- issue_branch: 42-fix-login -->\n<!-- github_issue: #42 -->\n<!-- github_issue: 7 -->\n"
    )
    assert annotations.branch is None
    assert annotations.task_branch == "42-fix-login"
    assert annotations.github_issue == 42


def test_apply_completion_rewrites_status_and_focus() -> None:
    updated = apply_completion(BASIC_TASK, DONE_ON)
    assert "**Status:** completed\n" in updated
    assert updated.endswith("## Current Focus\n\nTask completed on 2026-10-19\n")
    assert "Do the work" not in updated
    assert updated.startswith("# Task 001: Example\n\n<!-- branch: feature/TASK_001 -->\n")
    record = parse_task_record("TASK_001", updated, Path("TASK_001.md"))
    assert record.status == STATUS_COMPLETED


def test_apply_completion_inserts_completed_after_started_and_keeps_other_sections() -> None:
    content = (
        "# Task 002: Other\n"
        "\n"
        "**Status:** in_progress\n"
        "**Started:** 2026-10-01\n"
        "\n"
        "## Current Focus\n"
        "\n"
        "Working\n"
        "\n"
        "## Notes\n"
        "\n"
        "Keep this.\n"
    )
    updated = apply_completion(content, DONE_ON)
    assert "**Started:** 2026-10-01\n**Completed:** 2026-10-19\n" in updated
    assert "## Current Focus\n\nTask completed on 2026-10-19\n\n## Notes\n\nKeep this.\n" in updated


def test_apply_completion_is_idempotent() -> None:
    once = apply_completion(BASIC_TASK, DONE_ON)
    assert apply_completion(once, DONE_ON) == once


def test_apply_completion_adds_missing_status_and_focus() -> None:
    updated = apply_completion("# Task 003: Bare\n\nSome notes.\n", DONE_ON)
    assert updated.startswith("# Task 003: Bare\n\n**Status:** completed\n")
    assert "Some notes.\n" in updated
    assert updated.endswith("## Current Focus\n\nTask completed on 2026-10-19\n")


def test_apply_completion_preserves_crlf_line_endings() -> None:
    content = BASIC_TASK.replace("\n", "\r\n")
    updated = apply_completion(content, DONE_ON)
    assert "**Status:** completed\r\n" in updated
    assert "\n" not in updated.replace("\r\n", "")
