import pytest

from orchestrator import (
    AgentState,
    ExecutionContext,
    InvalidTransition,
    StateTransition,
    VALID_TRANSITIONS,
    is_valid_walk,
    transition,
)
from orchestrator.state_machine import can_transition, is_terminal_state


def test_transition_appends_log_and_updates_state() -> None:
    context = ExecutionContext(session_id="s1")
    before = context.updated_at

    record = transition(context, AgentState.EXECUTING, "Plan generated")

    assert context.state == AgentState.EXECUTING
    assert context.transitions == [record]
    assert record.from_state == AgentState.PLANNING
    assert record.to_state == AgentState.EXECUTING
    assert record.reason == "Plan generated"
    assert context.updated_at >= before
    assert context.completed_at is None


def test_terminal_transition_sets_completed_at() -> None:
    context = ExecutionContext(session_id="s1")
    transition(context, AgentState.FAILED, "boom")

    assert context.is_terminal
    assert context.completed_at == context.transitions[-1].timestamp


def test_invalid_edge_raises_and_leaves_context_untouched() -> None:
    context = ExecutionContext(session_id="s1")

    with pytest.raises(InvalidTransition):
        transition(context, AgentState.VALIDATING)

    assert context.state == AgentState.PLANNING
    assert context.transitions == []


def test_terminal_states_only_allow_cancellation() -> None:
    for state in (AgentState.COMPLETED, AgentState.FAILED, AgentState.CANCELLED):
        assert is_terminal_state(state)
        assert VALID_TRANSITIONS[state] == {AgentState.CANCELLED}
        assert not can_transition(state, AgentState.EXECUTING)


def test_every_state_can_be_cancelled() -> None:
    for state in AgentState:
        assert can_transition(state, AgentState.CANCELLED)


def test_non_terminal_states_can_fail() -> None:
    for state in (AgentState.PLANNING, AgentState.EXECUTING, AgentState.VALIDATING, AgentState.RETRYING):
        assert not is_terminal_state(state)
        assert can_transition(state, AgentState.FAILED)


def test_retrying_only_returns_to_executing() -> None:
    assert can_transition(AgentState.RETRYING, AgentState.EXECUTING)
    assert not can_transition(AgentState.RETRYING, AgentState.VALIDATING)
    assert not can_transition(AgentState.RETRYING, AgentState.COMPLETED)


def test_is_valid_walk_detects_gaps_and_bad_edges() -> None:
    context = ExecutionContext(session_id="s1")
    transition(context, AgentState.EXECUTING)
    transition(context, AgentState.VALIDATING)
    transition(context, AgentState.COMPLETED)
    assert is_valid_walk(context)

    gapped = context.model_copy(deep=True)
    gapped.transitions.append(
        StateTransition(from_state=AgentState.EXECUTING, to_state=AgentState.VALIDATING)
    )
    assert not is_valid_walk(gapped)

    illegal = ExecutionContext(
        session_id="s2",
        transitions=[StateTransition(from_state=AgentState.PLANNING, to_state=AgentState.COMPLETED)],
    )
    assert not is_valid_walk(illegal)


def test_transition_log_serializes_with_from_and_to_keys() -> None:
    context = ExecutionContext(session_id="s1")
    transition(context, AgentState.EXECUTING, "Plan generated")

    payload = context.to_json_dict()

    entry = payload["transitions"][0]
    assert entry["from"] == "planning"
    assert entry["to"] == "executing"
    assert entry["reason"] == "Plan generated"
    assert ExecutionContext.model_validate(payload).transitions[0].to_state == AgentState.EXECUTING
