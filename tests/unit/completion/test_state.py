"""Tests for completion phases, strategy selection and result shape."""

from __future__ import annotations

import pytest

from tasktrack.completion.state import (
    CompletionOptions,
    CompletionResult,
    CompletionState,
    InvalidTransition,
    Outcome,
    Phase,
)
from tasktrack.completion.strategies import (
    LocalMergeWorkflow,
    PullRequestWorkflow,
    SkipBranchWorkflow,
    select_strategy,
)
from tasktrack.config import GitHubConfig, TrackConfig


def test_advance_follows_allowed_transitions() -> None:
    state = CompletionState()
    for phase in (
        Phase.PREFLIGHT_CHECKED,
        Phase.TASK_MARKED,
        Phase.BRANCH_CONTEXT_RESOLVED,
        Phase.HISTORY_CONSOLIDATED,
        Phase.ROLLED_BACK,
    ):
        state.advance(phase)
    assert state.phase is Phase.ROLLED_BACK
    assert state.to_dict()["transitions"][-1] == "rolled_back"


def test_rejected_only_from_idle_and_terminal_states_are_final() -> None:
    state = CompletionState()
    state.advance(Phase.PREFLIGHT_CHECKED)
    with pytest.raises(InvalidTransition):
        state.advance(Phase.REJECTED)

    done = CompletionState()
    done.advance(Phase.REJECTED)
    with pytest.raises(InvalidTransition):
        done.advance(Phase.PREFLIGHT_CHECKED)


def test_git_notes_accumulate() -> None:
    state = CompletionState()
    state.git.add_note("first")
    state.git.add_note("second")
    assert state.git.notes == "first; second"


def test_select_strategy() -> None:
    assert isinstance(select_strategy(TrackConfig(), CompletionOptions()), LocalMergeWorkflow)

    pr_config = TrackConfig(github=GitHubConfig(enabled=True, draft_prs=True))
    strategy = select_strategy(pr_config, CompletionOptions())
    assert isinstance(strategy, PullRequestWorkflow)
    assert strategy.draft is True

    no_auto = TrackConfig(github=GitHubConfig(enabled=True, auto_create_prs=False))
    assert isinstance(select_strategy(no_auto, CompletionOptions()), LocalMergeWorkflow)
    assert isinstance(select_strategy(pr_config, CompletionOptions(no_branch=True)), SkipBranchWorkflow)


@pytest.mark.parametrize(
    ("outcome", "exit_code"),
    [
        (Outcome.DONE, 0),
        (Outcome.REJECTED, 2),
        (Outcome.ROLLED_BACK, 1),
        (Outcome.PRECONDITION_FAILED, 1),
    ],
)
def test_result_exit_codes(outcome: Outcome, exit_code: int) -> None:
    result = CompletionResult(
        success=outcome is Outcome.DONE,
        outcome=outcome,
        messages=[],
        warnings=[],
        error=None,
        data={},
    )
    assert result.exit_code == exit_code
    assert result.to_dict()["outcome"] == outcome.value
