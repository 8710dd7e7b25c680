from orchestrator.agent_orchestrator import CANCELLED_REASON, AgentOrchestrator
from orchestrator.cancellation import CancellationRegistry
from orchestrator.collaborators import (
    Backend,
    ContextRetriever,
    ContextStore,
    PlanBuilder,
    RetrievalOptions,
    RetrievalResult,
    RetrievedContext,
    StepOutput,
    StepRunner,
)
from orchestrator.config import OrchestratorConfig
from orchestrator.errors import (
    InvalidTransition,
    OrchestratorError,
    PersistenceError,
    PlanningError,
    StepExecutionError,
)
from orchestrator.lane_queue import LaneQueue
from orchestrator.plan import BackendStepRunner, build_plan, build_single_step_plan, create_step
from orchestrator.state_machine import VALID_TRANSITIONS, HandlerOutcome, is_valid_walk, transition
from orchestrator.types import (
    AgentState,
    ExecutionContext,
    StateTransition,
    StepResult,
    StepStatus,
    TaskPlan,
    TaskStep,
    ToolCall,
)
from orchestrator.validation import validate_step_result

__all__ = [
    "AgentOrchestrator",
    "AgentState",
    "Backend",
    "BackendStepRunner",
    "CANCELLED_REASON",
    "CancellationRegistry",
    "ContextRetriever",
    "ContextStore",
    "ExecutionContext",
    "HandlerOutcome",
    "InvalidTransition",
    "LaneQueue",
    "OrchestratorConfig",
    "OrchestratorError",
    "PersistenceError",
    "PlanBuilder",
    "PlanningError",
    "RetrievalOptions",
    "RetrievalResult",
    "RetrievedContext",
    "StateTransition",
    "StepExecutionError",
    "StepOutput",
    "StepResult",
    "StepRunner",
    "StepStatus",
    "TaskPlan",
    "TaskStep",
    "ToolCall",
    "VALID_TRANSITIONS",
    "build_plan",
    "build_single_step_plan",
    "create_step",
    "is_valid_walk",
    "transition",
    "validate_step_result",
]
