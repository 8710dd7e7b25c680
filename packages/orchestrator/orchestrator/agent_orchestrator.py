"""
Agent Orchestrator - drives one session's ExecutionContext through the
Planning → Executing → Validating → Retrying state machine.

Guarantees:
- run_turn never raises to the caller; failures become a FAILED transition
- The context is persisted after every transition
- Turns for the same session are serialized through a LaneQueue;
  different sessions never wait on each other
- Cancellation is cooperative: sampled at turn entry and at the top of
  each loop iteration
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .cancellation import CancellationRegistry
from .collaborators import Backend, ContextRetriever, ContextStore, PlanBuilder, StepRunner
from .config import OrchestratorConfig
from .handlers import (
    ExecutingHandler,
    NotePathProvider,
    PlanningHandler,
    RetryingHandler,
    StateHandler,
    ValidatingHandler,
)
from .lane_queue import LaneQueue
from .state_machine import HandlerOutcome, transition
from .types import AgentState, ExecutionContext

logger = logging.getLogger(__name__)

CANCELLED_REASON = "Cancelled by user"


class AgentOrchestrator:
    """
    Per-session agent loop.

    Owns the in-memory context table and the cancellation registry. Build one
    instance per runtime scope and pass it to callers explicitly.
    """

    def __init__(
        self,
        backend: Optional[Backend],
        store: Optional[ContextStore] = None,
        retriever: Optional[ContextRetriever] = None,
        config: Optional[OrchestratorConfig] = None,
        note_path_provider: Optional[NotePathProvider] = None,
        plan_builder: Optional[PlanBuilder] = None,
        step_runner: Optional[StepRunner] = None,
        retrying_handler: Optional[RetryingHandler] = None,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            backend: OpenCode Server collaborator (send_message / interrupt)
            store: Persistence collaborator; contexts are only kept in memory if None
            retriever: Optional context-retrieval collaborator
            config: Retry and delay options (defaults if None)
            note_path_provider: Returns the note currently open, passed to retrieval
            plan_builder: Turns the (augmented) request into a TaskPlan
            step_runner: Executes one step; defaults to dispatching its tool call
            retrying_handler: Override for the retry delay handler (tests)
        """
        self.config = config or OrchestratorConfig()
        self._backend = backend
        self._store = store
        self._contexts: Dict[str, ExecutionContext] = {}
        self._cancellations = CancellationRegistry()
        self._queue = LaneQueue()

        self._handlers: Dict[AgentState, StateHandler] = {
            AgentState.PLANNING: PlanningHandler(
                self.config, backend, retriever, note_path_provider, plan_builder
            ),
            AgentState.EXECUTING: ExecutingHandler(
                self.config, backend, retriever, note_path_provider, step_runner
            ),
            AgentState.VALIDATING: ValidatingHandler(self.config),
            AgentState.RETRYING: retrying_handler or RetryingHandler(self.config),
        }

    async def run_turn(self, user_input: str, session_id: str) -> None:
        """Run one user turn for a session until the context reaches a terminal state."""
        await self._queue.submit(session_id, lambda: self._run_turn(user_input, session_id))

    async def _run_turn(self, user_input: str, session_id: str) -> None:
        context = await self._get_or_create_context(session_id)
        logger.info(f"Agent turn started: session={session_id}, state={context.state.value}")

        if self._cancellations.is_cancelled(session_id):
            # applies to terminal contexts loaded from the store as well
            if context.state != AgentState.CANCELLED:
                transition(context, AgentState.CANCELLED, CANCELLED_REASON)
                await self._save_context(context)
            logger.info(f"Agent turn skipped, session cancelled: session={session_id}")
            return

        try:
            while not context.is_terminal:
                if self._cancellations.is_cancelled(session_id):
                    transition(context, AgentState.CANCELLED, CANCELLED_REASON)
                    await self._save_context(context)
                    break

                outcome = await self._dispatch(context, user_input)

                if self._cancellations.is_cancelled(session_id) or context.is_terminal:
                    # cancel_session already moved the context while the handler was in flight
                    break

                self._apply(context, outcome)
                await self._save_context(context)
        except Exception as exc:
            logger.exception(f"Agent turn failed: session={session_id}, state={context.state.value}")
            if not context.is_terminal:
                transition(context, AgentState.FAILED, str(exc) or type(exc).__name__)
            await self._save_context(context)

        logger.info(f"Agent turn finished: session={session_id}, state={context.state.value}")

    async def _dispatch(self, context: ExecutionContext, user_input: str) -> HandlerOutcome:
        handler = self._handlers.get(context.state)
        if handler is None:
            return HandlerOutcome(AgentState.FAILED, "Unexpected state")
        return await handler.handle(context, user_input)

    def _apply(self, context: ExecutionContext, outcome: HandlerOutcome) -> None:
        transition(context, outcome.state, outcome.reason)

    async def cancel_session(self, session_id: str) -> None:
        """Mark a session cancelled, cancel its in-memory context and interrupt the backend."""
        self._cancellations.cancel(session_id)

        context = self._contexts.get(session_id)
        if context is not None:
            transition(context, AgentState.CANCELLED, CANCELLED_REASON)
            await self._save_context(context)

        if self._backend is not None:
            try:
                await self._backend.interrupt(session_id)
            except Exception as exc:
                logger.warning(f"Failed to interrupt backend session {session_id}: {exc}")

    def get_context(self, session_id: str) -> Optional[ExecutionContext]:
        return self._contexts.get(session_id)

    def list_contexts(self) -> List[ExecutionContext]:
        return list(self._contexts.values())

    def clear_context(self, session_id: str) -> None:
        """Drop local state for a session; persisted data is left untouched."""
        self._contexts.pop(session_id, None)
        self._cancellations.clear(session_id)

    def is_cancelled(self, session_id: str) -> bool:
        return self._cancellations.is_cancelled(session_id)

    def create_context(self, session_id: str) -> ExecutionContext:
        return ExecutionContext(session_id=session_id, max_retries=self.config.max_retries)

    async def _get_or_create_context(self, session_id: str) -> ExecutionContext:
        context = self._contexts.get(session_id)
        if context is None:
            context = await self._load_context(session_id) or self.create_context(session_id)
            self._contexts[session_id] = context
        return context

    async def _load_context(self, session_id: str) -> Optional[ExecutionContext]:
        if self._store is None:
            return None
        try:
            context = await self._store.load(session_id)
        except Exception as exc:
            logger.warning(f"Failed to load execution context for {session_id}, starting fresh: {exc}")
            return None
        if context is not None:
            logger.info(f"Resuming session {session_id} from persisted state {context.state.value}")
        return context

    async def _save_context(self, context: ExecutionContext) -> None:
        if self._store is None:
            return
        try:
            await self._store.save(context)
        except Exception as exc:
            logger.warning(f"Failed to save execution context for {context.session_id}: {exc}")
