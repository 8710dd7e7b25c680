from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol

from .types import ExecutionContext, TaskPlan, TaskStep


@dataclass
class RetrievalOptions:
    max_results: int
    max_tokens: int
    current_note_path: Optional[str] = None
    task_plan: Optional[TaskPlan] = None


@dataclass
class RetrievedContext:
    source: str
    content: str


@dataclass
class RetrievalResult:
    contexts: List[RetrievedContext] = field(default_factory=list)


@dataclass
class StepOutput:
    """What a step runner reports back for a successfully executed step."""
    output: Any = None


class Backend(Protocol):
    async def send_message(self, session_id: str, text: str) -> None:
        ...

    async def interrupt(self, session_id: str) -> None:
        ...


class ContextRetriever(Protocol):
    async def retrieve_context(self, query: str, options: RetrievalOptions) -> RetrievalResult:
        ...


class ContextStore(Protocol):
    async def save(self, context: ExecutionContext) -> None:
        ...

    async def load(self, session_id: str) -> Optional[ExecutionContext]:
        ...


class StepRunner(Protocol):
    async def run_step(self, session_id: str, step: TaskStep, plan: TaskPlan) -> StepOutput:
        ...


class PlanBuilder(Protocol):
    def __call__(self, goal: str, max_retries: int) -> TaskPlan:
        ...
