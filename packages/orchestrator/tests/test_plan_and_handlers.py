import asyncio
from typing import List, Tuple

import pytest

from orchestrator import (
    AgentState,
    BackendStepRunner,
    ExecutionContext,
    OrchestratorConfig,
    StepResult,
    StepStatus,
    TaskPlan,
    ToolCall,
    build_plan,
    build_single_step_plan,
    create_step,
)
from orchestrator.handlers import ExecutingHandler, RetryingHandler, StateHandler, ValidatingHandler
from orchestrator.plan import format_tool_call


class RecordingBackend:
    def __init__(self) -> None:
        self.messages: List[Tuple[str, str]] = []

    async def send_message(self, session_id: str, text: str) -> None:
        self.messages.append((session_id, text))

    async def interrupt(self, session_id: str) -> None:
        pass


def test_single_step_plan_describes_whole_goal() -> None:
    plan = build_single_step_plan("clean up inbox", max_retries=2)

    assert plan.id.startswith("plan_")
    assert plan.goal == "clean up inbox"
    assert len(plan.steps) == 1
    step = plan.steps[0]
    assert step.id.startswith("step_") and step.id.endswith("_0")
    assert step.description == "clean up inbox"
    assert step.success_criteria == "Task completed successfully"
    assert step.status == StepStatus.PENDING
    assert (step.retry_count, step.max_retries) == (0, 2)


def test_plan_serialization_preserves_steps() -> None:
    tool = ToolCall(tool_name="read_note", args={"path": "a.md"})
    plan = build_plan("read", [create_step("read a", tool_call=tool, index=0), create_step("read b", index=1)])

    restored = TaskPlan.deserialize(plan.serialize())

    assert restored == plan
    assert [s.description for s in restored.steps] == ["read a", "read b"]
    assert restored.steps[0].tool_call.args == {"path": "a.md"}


def test_step_ids_are_unique() -> None:
    ids = {create_step("x").id for _ in range(50)}
    assert len(ids) == 50


def test_backend_step_runner_sends_tool_call() -> None:
    async def run_test() -> None:
        backend = RecordingBackend()
        runner = BackendStepRunner(backend)
        tool = ToolCall(tool_name="search", args={"q": "cats"})
        plan = build_plan("g", [create_step("g", tool_call=tool)])

        output = await runner.run_step("s1", plan.steps[0], plan)

        assert output.output is None
        assert backend.messages == [("s1", format_tool_call(tool))]
        assert backend.messages[0][1] == 'Execute tool: search {"q": "cats"}'

    asyncio.run(run_test())


def test_backend_step_runner_without_tool_call_sends_nothing() -> None:
    async def run_test() -> None:
        backend = RecordingBackend()
        plan = build_single_step_plan("g", 3)

        await BackendStepRunner(backend).run_step("s1", plan.steps[0], plan)
        await BackendStepRunner(None).run_step("s1", plan.steps[0], plan)

        assert backend.messages == []

    asyncio.run(run_test())


def test_executing_without_plan_completes() -> None:
    async def run_test() -> None:
        handler = ExecutingHandler(OrchestratorConfig(), RecordingBackend())
        context = ExecutionContext(session_id="s1", state=AgentState.EXECUTING)

        outcome = await handler.handle(context, "input")

        assert outcome.state == AgentState.COMPLETED
        assert outcome.reason == "No steps to execute"

    asyncio.run(run_test())


def test_executing_past_last_step_completes() -> None:
    async def run_test() -> None:
        handler = ExecutingHandler(OrchestratorConfig(), RecordingBackend())
        plan = build_single_step_plan("g", 3)
        plan.steps[0].status = StepStatus.COMPLETED
        context = ExecutionContext(session_id="s1", state=AgentState.EXECUTING, plan=plan, current_step_index=0)

        outcome = await handler.handle(context, "input")

        assert outcome.state == AgentState.COMPLETED
        assert outcome.reason == "All steps completed"
        assert context.step_results == []

    asyncio.run(run_test())


def test_validating_without_result_fails() -> None:
    async def run_test() -> None:
        handler = ValidatingHandler(OrchestratorConfig())
        context = ExecutionContext(
            session_id="s1",
            state=AgentState.VALIDATING,
            plan=build_single_step_plan("g", 3),
            current_step_index=0,
        )

        outcome = await handler.handle(context, "input")

        assert outcome.state == AgentState.FAILED
        assert outcome.reason == "No step or result to validate"

    asyncio.run(run_test())


def test_retrying_waits_configured_delay_and_rewinds_step() -> None:
    async def run_test() -> None:
        delays: List[float] = []

        async def fake_sleep(seconds: float) -> None:
            delays.append(seconds)

        handler = RetryingHandler(OrchestratorConfig(retry_delay_ms=1500), sleep=fake_sleep)
        plan = build_single_step_plan("g", 3)
        plan.steps[0].status = StepStatus.FAILED
        context = ExecutionContext(
            session_id="s1",
            state=AgentState.RETRYING,
            plan=plan,
            current_step_index=0,
            step_results=[StepResult(step_id=plan.steps[0].id, success=False, error="boom")],
        )

        outcome = await handler.handle(context, "input")

        assert delays == [1.5]
        assert outcome.state == AgentState.EXECUTING
        assert outcome.reason == "Retrying step"
        assert plan.steps[0].status == StepStatus.PENDING
        assert context.step_results == []

    asyncio.run(run_test())


def test_state_handler_is_abstract() -> None:
    with pytest.raises(TypeError):
        StateHandler()
