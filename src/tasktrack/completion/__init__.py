"""Task completion engine."""

from tasktrack.completion.reconciler import complete_task
from tasktrack.completion.state import (
    BranchContext,
    CompletionOptions,
    CompletionResult,
    Outcome,
    Phase,
)
from tasktrack.completion.strategies import (
    LocalMergeWorkflow,
    PullRequestWorkflow,
    SkipBranchWorkflow,
    select_strategy,
)

__all__ = [
    "BranchContext",
    "CompletionOptions",
    "CompletionResult",
    "LocalMergeWorkflow",
    "Outcome",
    "Phase",
    "PullRequestWorkflow",
    "SkipBranchWorkflow",
    "complete_task",
    "select_strategy",
]
