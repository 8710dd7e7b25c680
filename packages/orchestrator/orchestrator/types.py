from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(UTC)


class AgentState(str, Enum):
    """Agent execution states."""
    PLANNING = "planning"
    EXECUTING = "executing"
    VALIDATING = "validating"
    RETRYING = "retrying"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ToolCall(BaseModel):
    """Tool invocation attached to a step.

    ``result`` is only an echo slot; the orchestrator never fills it from a
    correlated backend response.
    """
    tool_name: str
    args: Any = None
    result: Any = None


class TaskStep(BaseModel):
    id: str
    description: str
    tool_call: Optional[ToolCall] = None
    success_criteria: str = ""
    status: StepStatus = StepStatus.PENDING
    retry_count: int = 0
    max_retries: int = 3


class TaskPlan(BaseModel):
    """Goal decomposed into an ordered list of steps (index = execution order)."""
    id: str
    goal: str
    steps: List[TaskStep] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def serialize(self) -> str:
        return self.model_dump_json(indent=2)

    @classmethod
    def deserialize(cls, payload: str) -> "TaskPlan":
        return cls.model_validate_json(payload)


class StepResult(BaseModel):
    step_id: str
    success: bool
    output: Any = None
    error: Optional[str] = None
    tool_call: Optional[ToolCall] = None
    verified: bool = False
    verified_at: Optional[datetime] = None


class StateTransition(BaseModel):
    """One entry of the append-only transition log (serialized as from/to)."""
    model_config = ConfigDict(populate_by_name=True)

    from_state: AgentState = Field(alias="from")
    to_state: AgentState = Field(alias="to")
    timestamp: datetime = Field(default_factory=utcnow)
    reason: Optional[str] = None


class ExecutionContext(BaseModel):
    """Per-session execution state, keyed by ``session_id``."""
    session_id: str
    state: AgentState = AgentState.PLANNING
    plan: Optional[TaskPlan] = None
    current_step_index: Optional[int] = None
    step_results: List[StepResult] = Field(default_factory=list)
    transitions: List[StateTransition] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    retry_count: int = 0
    max_retries: int = 3

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def current_step(self) -> Optional[TaskStep]:
        if self.plan is None:
            return None
        index = self.current_step_index or 0
        if index < 0 or index >= len(self.plan.steps):
            return None
        return self.plan.steps[index]

    def last_result(self) -> Optional[StepResult]:
        return self.step_results[-1] if self.step_results else None

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


TERMINAL_STATES = frozenset({
    AgentState.COMPLETED,
    AgentState.CANCELLED,
    AgentState.FAILED,
})
