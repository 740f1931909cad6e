"""Validation runner used as the completion preflight gate."""

from tasktrack.validation.runner import CheckResult, ValidationReport, run_check, run_validation

__all__ = ["CheckResult", "ValidationReport", "run_check", "run_validation"]
