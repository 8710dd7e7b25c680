"""
Agent State Machine - Transition table and transition log

State Flow:
    PLANNING → EXECUTING → VALIDATING → (EXECUTING ...) → COMPLETED
                  ↑            │
                  └─ RETRYING ←┘

Rules:
- Every non-terminal state may fall to FAILED (errors caught by the loop)
- Every state, terminal ones included, may move to CANCELLED
- Transitions are appended to the context log in insertion order
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Set

from .errors import InvalidTransition
from .types import AgentState, ExecutionContext, StateTransition, TERMINAL_STATES, utcnow

logger = logging.getLogger(__name__)


VALID_TRANSITIONS: Dict[AgentState, Set[AgentState]] = {
    AgentState.PLANNING: {
        AgentState.EXECUTING,  # Plan built
        AgentState.FAILED,
        AgentState.CANCELLED,
    },
    AgentState.EXECUTING: {
        AgentState.VALIDATING,  # Step ok
        AgentState.RETRYING,  # Step failed, retries remain
        AgentState.COMPLETED,  # Nothing left to run
        AgentState.FAILED,
        AgentState.CANCELLED,
    },
    AgentState.VALIDATING: {
        AgentState.EXECUTING,  # Valid, more steps
        AgentState.COMPLETED,  # Valid, last step
        AgentState.RETRYING,  # Invalid, retries remain
        AgentState.FAILED,
        AgentState.CANCELLED,
    },
    AgentState.RETRYING: {
        AgentState.EXECUTING,
        AgentState.FAILED,
        AgentState.CANCELLED,
    },
    # Terminal states; cancel_session still records a cancellation on them.
    AgentState.COMPLETED: {AgentState.CANCELLED},
    AgentState.CANCELLED: {AgentState.CANCELLED},
    AgentState.FAILED: {AgentState.CANCELLED},
}


@dataclass(frozen=True)
class HandlerOutcome:
    """Next state decided by a state handler."""
    state: AgentState
    reason: Optional[str] = None


def can_transition(from_state: AgentState, to_state: AgentState) -> bool:
    return to_state in VALID_TRANSITIONS.get(from_state, set())


def is_terminal_state(state: AgentState) -> bool:
    return state in TERMINAL_STATES


def transition(
    context: ExecutionContext,
    to_state: AgentState,
    reason: Optional[str] = None,
) -> StateTransition:
    """
    Move a context to a new state and record it.

    Args:
        context: Context to mutate
        to_state: Target state
        reason: Human-readable reason, kept in the log

    Returns:
        The recorded transition

    Raises:
        InvalidTransition: If the edge is not in VALID_TRANSITIONS
    """
    from_state = context.state
    if not can_transition(from_state, to_state):
        raise InvalidTransition(
            f"Invalid transition: {from_state.value} → {to_state.value}"
        )

    now = utcnow()
    record = StateTransition(from_state=from_state, to_state=to_state, timestamp=now, reason=reason)
    context.transitions.append(record)
    context.state = to_state
    context.updated_at = now
    if is_terminal_state(to_state):
        context.completed_at = now

    logger.debug(
        f"State transition: {from_state.value} -> {to_state.value}"
        + (f" ({reason})" if reason else "")
    )
    return record


def is_valid_walk(context: ExecutionContext) -> bool:
    """Check that the recorded log is a connected walk over VALID_TRANSITIONS."""
    previous: Optional[AgentState] = None
    for record in context.transitions:
        if previous is not None and record.from_state != previous:
            return False
        if not can_transition(record.from_state, record.to_state):
            return False
        previous = record.to_state
    return True
