"""Plan construction and the default step runner.

The backend is asked to generate a plan, but its reply is not parsed back;
planning always yields a single step describing the whole request.
"""

from __future__ import annotations

import json
import uuid
from typing import Optional, Sequence

from .collaborators import Backend, StepOutput
from .types import TaskPlan, TaskStep, ToolCall, utcnow

DEFAULT_SUCCESS_CRITERIA = "Task completed successfully"


def generate_plan_id() -> str:
    return f"plan_{uuid.uuid4().hex[:12]}"


def generate_step_id(index: Optional[int] = None) -> str:
    suffix = uuid.uuid4().hex[:8]
    return f"step_{suffix}" if index is None else f"step_{suffix}_{index}"


def create_step(
    description: str,
    success_criteria: str = DEFAULT_SUCCESS_CRITERIA,
    tool_call: Optional[ToolCall] = None,
    max_retries: int = 3,
    index: Optional[int] = None,
) -> TaskStep:
    return TaskStep(
        id=generate_step_id(index),
        description=description,
        tool_call=tool_call,
        success_criteria=success_criteria,
        max_retries=max_retries,
    )


def build_plan(goal: str, steps: Sequence[TaskStep]) -> TaskPlan:
    now = utcnow()
    return TaskPlan(id=generate_plan_id(), goal=goal, steps=list(steps), created_at=now, updated_at=now)


def build_single_step_plan(goal: str, max_retries: int) -> TaskPlan:
    """Default plan builder: one step whose description is the whole goal."""
    return build_plan(goal, [create_step(goal, DEFAULT_SUCCESS_CRITERIA, max_retries=max_retries, index=0)])


def format_tool_call(tool_call: ToolCall) -> str:
    return f"Execute tool: {tool_call.tool_name} {json.dumps(tool_call.args, default=str)}"


class BackendStepRunner:
    """Dispatches a step's tool call to the backend.

    The dispatch is treated as success; no tool result is awaited or
    correlated with the call.
    """

    def __init__(self, backend: Optional[Backend]) -> None:
        self._backend = backend

    async def run_step(self, session_id: str, step: TaskStep, plan: TaskPlan) -> StepOutput:
        if step.tool_call is not None and self._backend is not None:
            message = format_tool_call(step.tool_call)
            await self._backend.send_message(session_id, message)
        return StepOutput()
