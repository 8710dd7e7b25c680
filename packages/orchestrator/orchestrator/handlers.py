"""
State handlers - one per non-terminal agent state.

Each handler mutates the plan/results of one ExecutionContext and returns a
HandlerOutcome; the orchestrator loop applies the outcome as a transition and
persists the context. Handlers never record transitions themselves.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from .collaborators import (
    Backend,
    ContextRetriever,
    PlanBuilder,
    RetrievalOptions,
    RetrievalResult,
    StepRunner,
)
from .config import OrchestratorConfig
from .errors import PlanningError, StepExecutionError
from .plan import BackendStepRunner, build_single_step_plan
from .state_machine import HandlerOutcome
from .types import AgentState, ExecutionContext, StepResult, StepStatus, TaskStep, utcnow
from .validation import validate_step_result

logger = logging.getLogger(__name__)

NotePathProvider = Callable[[], Optional[str]]

PLANNING_MAX_RESULTS = 10
PLANNING_MAX_TOKENS = 2000
STEP_MAX_RESULTS = 5
STEP_MAX_TOKENS = 1000


def summarize_contexts(result: RetrievalResult, limit: int, separator: str) -> str:
    return separator.join(
        f"[{ctx.source}]: {ctx.content[:limit]}..." for ctx in result.contexts
    )


class StateHandler(ABC):
    """Handles one non-terminal state and decides the next one."""

    state: AgentState

    @abstractmethod
    async def handle(self, context: ExecutionContext, user_input: str) -> HandlerOutcome:
        raise NotImplementedError


class PlanningHandler(StateHandler):
    """Builds the plan for a turn, optionally augmenting the request with retrieved context."""

    state = AgentState.PLANNING

    def __init__(
        self,
        config: OrchestratorConfig,
        backend: Optional[Backend],
        retriever: Optional[ContextRetriever] = None,
        note_path_provider: Optional[NotePathProvider] = None,
        plan_builder: Optional[PlanBuilder] = None,
    ) -> None:
        self._config = config
        self._backend = backend
        self._retriever = retriever
        self._note_path_provider = note_path_provider
        self._plan_builder = plan_builder or build_single_step_plan

    async def handle(self, context: ExecutionContext, user_input: str) -> HandlerOutcome:
        if self._backend is None:
            raise PlanningError("OpenCode Server client not initialized")

        goal = await self._augment(context, user_input)

        try:
            await self._backend.send_message(
                context.session_id, f"Generate a structured plan for: {goal}"
            )
        except Exception as exc:
            raise PlanningError(str(exc)) from exc

        context.plan = self._plan_builder(goal, self._config.max_retries)
        context.updated_at = utcnow()
        return HandlerOutcome(AgentState.EXECUTING, "Plan generated")

    async def _augment(self, context: ExecutionContext, user_input: str) -> str:
        if self._retriever is None:
            return user_input
        try:
            result = await self._retriever.retrieve_context(
                user_input,
                RetrievalOptions(
                    max_results=PLANNING_MAX_RESULTS,
                    max_tokens=PLANNING_MAX_TOKENS,
                    current_note_path=_note_path(self._note_path_provider),
                ),
            )
        except Exception as exc:
            logger.warning(f"Context retrieval failed during planning for session {context.session_id}: {exc}")
            return user_input

        if not result.contexts:
            return user_input
        summary = summarize_contexts(result, 200, "\n\n")
        return f"{user_input}\n\nRelevant context:\n{summary}"


class ExecutingHandler(StateHandler):
    state = AgentState.EXECUTING

    def __init__(
        self,
        config: OrchestratorConfig,
        backend: Optional[Backend],
        retriever: Optional[ContextRetriever] = None,
        note_path_provider: Optional[NotePathProvider] = None,
        step_runner: Optional[StepRunner] = None,
    ) -> None:
        self._config = config
        self._backend = backend
        self._retriever = retriever
        self._note_path_provider = note_path_provider
        self._step_runner = step_runner or BackendStepRunner(backend)

    async def handle(self, context: ExecutionContext, user_input: str) -> HandlerOutcome:
        plan = context.plan
        if plan is None or not plan.steps:
            return HandlerOutcome(AgentState.COMPLETED, "No steps to execute")

        index = context.current_step_index or 0
        step = plan.steps[index] if 0 <= index < len(plan.steps) else None
        if step is None or step.status == StepStatus.COMPLETED:
            return HandlerOutcome(AgentState.COMPLETED, "All steps completed")

        step.status = StepStatus.IN_PROGRESS
        context.current_step_index = index
        context.updated_at = utcnow()

        await self._share_step_context(context, step)

        try:
            step_output = await self._step_runner.run_step(context.session_id, step, plan)
        except Exception as exc:
            return self._on_failure(context, step, StepExecutionError(str(exc), step_id=step.id))

        context.step_results.append(
            StepResult(
                step_id=step.id,
                success=True,
                output=step_output.output,
                tool_call=step.tool_call.model_copy() if step.tool_call else None,
            )
        )
        step.status = StepStatus.COMPLETED
        return HandlerOutcome(AgentState.VALIDATING, "Step executed")

    def _on_failure(
        self, context: ExecutionContext, step: TaskStep, exc: StepExecutionError
    ) -> HandlerOutcome:
        logger.warning(f"Step {step.id} failed in session {context.session_id}: {exc}")
        context.step_results.append(StepResult(step_id=step.id, success=False, error=str(exc)))
        step.status = StepStatus.FAILED
        step.retry_count += 1

        if step.retry_count < step.max_retries and self._config.enable_auto_retry:
            return HandlerOutcome(
                AgentState.RETRYING,
                f"Step failed, will retry ({step.retry_count}/{step.max_retries})",
            )
        return HandlerOutcome(AgentState.FAILED, f"Step failed after {step.retry_count} retries")

    async def _share_step_context(self, context: ExecutionContext, step: TaskStep) -> None:
        if self._retriever is None or not step.description:
            return
        try:
            result = await self._retriever.retrieve_context(
                step.description,
                RetrievalOptions(
                    max_results=STEP_MAX_RESULTS,
                    max_tokens=STEP_MAX_TOKENS,
                    current_note_path=_note_path(self._note_path_provider),
                    task_plan=context.plan,
                ),
            )
            if result.contexts and self._backend is not None:
                summary = summarize_contexts(result, 150, "\n")
                await self._backend.send_message(
                    context.session_id,
                    f"Executing step: {step.description}\n\nRelevant context:\n{summary}",
                )
        except Exception as exc:
            logger.warning(f"Context retrieval for step {step.id} failed: {exc}")


class ValidatingHandler(StateHandler):
    state = AgentState.VALIDATING

    def __init__(self, config: OrchestratorConfig) -> None:
        self._config = config

    async def handle(self, context: ExecutionContext, user_input: str) -> HandlerOutcome:
        index = context.current_step_index or 0
        step = context.current_step()
        result = context.last_result()
        if step is None or result is None:
            return HandlerOutcome(AgentState.FAILED, "No step or result to validate")

        if validate_step_result(step, result):
            result.verified = True
            result.verified_at = utcnow()
            if index + 1 < len(context.plan.steps):
                context.current_step_index = index + 1
                return HandlerOutcome(AgentState.EXECUTING, "Validation passed, moving to next step")
            return HandlerOutcome(AgentState.COMPLETED, "All steps validated and completed")

        step.retry_count += 1
        if step.retry_count < step.max_retries and self._config.enable_auto_retry:
            step.status = StepStatus.PENDING
            return HandlerOutcome(
                AgentState.RETRYING,
                f"Validation failed, will retry ({step.retry_count}/{step.max_retries})",
            )
        step.status = StepStatus.FAILED
        return HandlerOutcome(AgentState.FAILED, f"Validation failed after {step.retry_count} retries")


class RetryingHandler(StateHandler):
    """Waits a fixed delay, then rewinds the current step for another attempt."""

    state = AgentState.RETRYING

    def __init__(
        self,
        config: OrchestratorConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._sleep = sleep

    async def handle(self, context: ExecutionContext, user_input: str) -> HandlerOutcome:
        await self._sleep(self._config.retry_delay_seconds)

        step = context.current_step()
        if step is not None:
            step.status = StepStatus.PENDING
            if context.step_results:
                context.step_results.pop()
        return HandlerOutcome(AgentState.EXECUTING, "Retrying step")


def _note_path(provider: Optional[NotePathProvider]) -> Optional[str]:
    if provider is None:
        return None
    try:
        return provider()
    except Exception as exc:
        logger.warning(f"Could not resolve current note path: {exc}")
        return None
