"""tasktrack - task completion and git history consolidation."""

__version__ = "0.4.0"
