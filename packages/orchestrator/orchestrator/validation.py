from __future__ import annotations

from .types import StepResult, TaskStep


def validate_step_result(step: TaskStep, result: StepResult) -> bool:
    """Keyword heuristic matching a step result against its success criteria."""
    if not result.success:
        return False

    criteria = step.success_criteria.lower()
    if "completed" in criteria or "success" in criteria:
        return result.success

    if "output" in criteria and not result.output:
        return False

    return result.success
