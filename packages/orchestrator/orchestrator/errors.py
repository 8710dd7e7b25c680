"""Error taxonomy for the agent orchestrator.

Validation failures are not represented here: a failed validation is a
decision returned by the validating handler, not an exception.
"""


class OrchestratorError(Exception):
    """Base class for errors raised inside the orchestrator loop."""


class PlanningError(OrchestratorError):
    """Backend missing or unreachable while generating a plan."""


class StepExecutionError(OrchestratorError):
    """Exception raised while executing a plan step."""

    def __init__(self, message: str, step_id: str | None = None) -> None:
        super().__init__(message)
        self.step_id = step_id


class PersistenceError(OrchestratorError):
    """Storage read/write failure."""


class InvalidTransition(OrchestratorError):
    pass
