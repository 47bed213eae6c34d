"""Workflow engine: interprets the workflow sub-range of a turn's event stream.

`start` consumes the `start_of_workflow` event. `run` then pulls from the
turn's shared cursor until `end_of_workflow` and yields a fresh snapshot after
every event that changed the workflow. When `run` returns, the caller owns the
cursor again and resumes right after the last event the engine consumed.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from pydantic import ValidationError

from agent_stream_client.errors import ProtocolViolationError
from agent_stream_client.stream.events import ChatEvent, EventType, delta_text
from agent_stream_client.workflow.models import (
    TaskState,
    ThinkingTask,
    ToolCallPayload,
    ToolCallTask,
    Workflow,
    WorkflowFinalState,
    WorkflowStep,
)

logger = logging.getLogger(__name__)


def _str_field(event: ChatEvent, key: str) -> str | None:
    value = event.data.get(key)
    return value if isinstance(value, str) and value else None


class WorkflowEngine:
    """One engine per workflow run; not reusable."""

    def __init__(self) -> None:
        self._workflow: Workflow | None = None
        self._current_step: WorkflowStep | None = None
        self._current_task: ThinkingTask | None = None
        self._llm_calls = 0

    @property
    def final_state(self) -> WorkflowFinalState | None:
        if self._workflow is None or self._workflow.final_state is None:
            return None
        return self._workflow.final_state.model_copy(deep=True)

    def start(self, event: ChatEvent) -> Workflow:
        if self._workflow is not None:
            raise ProtocolViolationError("Workflow engine has already been started")
        if event.type != EventType.START_OF_WORKFLOW:
            raise ProtocolViolationError(f"Cannot start a workflow from {event.type!r}")

        workflow_id = _str_field(event, "workflow_id")
        if workflow_id is None:
            raise ProtocolViolationError("start_of_workflow requires a workflow_id")

        name = workflow_id
        inputs = event.data.get("input")
        if isinstance(inputs, list) and inputs and isinstance(inputs[0], dict):
            first = inputs[0].get("content")
            if isinstance(first, str) and first:
                name = first

        self._workflow = Workflow(id=workflow_id, name=name)
        logger.info("Workflow started", extra={"workflow_id": workflow_id})
        return self._snapshot()

    async def run(self, events: AsyncIterator[ChatEvent]) -> AsyncIterator[Workflow]:
        if self._workflow is None:
            raise ProtocolViolationError("Workflow engine must be started before run")

        async for event in events:
            match event.type:
                case EventType.START_OF_WORKFLOW:
                    raise ProtocolViolationError(
                        f"Nested workflow {event.data.get('workflow_id')!r} inside "
                        f"workflow {self._workflow.id!r}"
                    )
                case EventType.END_OF_WORKFLOW:
                    self._finish(event)
                    yield self._snapshot()
                    return
                case EventType.START_OF_AGENT:
                    changed = self._start_step(event)
                case EventType.END_OF_AGENT:
                    changed = self._end_step()
                case EventType.START_OF_LLM:
                    changed = self._start_thinking()
                case EventType.END_OF_LLM:
                    changed = self._end_thinking()
                case EventType.MESSAGE:
                    changed = self._append_delta(event)
                case EventType.TOOL_CALL:
                    changed = self._start_tool_call(event)
                case EventType.TOOL_CALL_RESULT:
                    changed = self._complete_tool_call(event)
                case _:
                    changed = False

            if changed:
                yield self._snapshot()
            else:
                logger.debug(
                    "Workflow event ignored",
                    extra={"workflow_id": self._workflow.id, "event_type": event.type},
                )

        logger.warning(
            "Event stream ended before the workflow finished",
            extra={"workflow_id": self._workflow.id},
        )

    def _snapshot(self) -> Workflow:
        assert self._workflow is not None
        return self._workflow.model_copy(deep=True)

    def _start_step(self, event: ChatEvent) -> bool:
        assert self._workflow is not None
        agent_id = _str_field(event, "agent_id")
        if agent_id is None:
            return False
        agent_name = _str_field(event, "agent_name") or agent_id
        step = WorkflowStep(id=agent_id, agent_id=agent_id, agent_name=agent_name)
        self._workflow.steps.append(step)
        self._current_step = step
        self._current_task = None
        return True

    def _end_step(self) -> bool:
        if self._current_step is None:
            return False
        self._current_step = None
        self._current_task = None
        return True

    def _start_thinking(self) -> bool:
        step = self._current_step
        if step is None:
            return False
        self._llm_calls += 1
        task = ThinkingTask(id=f"{step.id}-llm-{self._llm_calls}", agent_id=step.agent_id)
        step.tasks.append(task)
        self._current_task = task
        return True

    def _end_thinking(self) -> bool:
        task = self._current_task
        if task is None:
            return False
        task.state = TaskState.SUCCESS
        self._current_task = None
        return True

    def _append_delta(self, event: ChatEvent) -> bool:
        task = self._current_task
        if task is None:
            return False
        text = delta_text(event, "content")
        reason = delta_text(event, "reasoning_content")
        if not text and not reason:
            return False
        task.payload.text += text
        task.payload.reason += reason
        return True

    def _start_tool_call(self, event: ChatEvent) -> bool:
        step = self._current_step
        tool_call_id = _str_field(event, "tool_call_id")
        if step is None or tool_call_id is None:
            return False
        task = ToolCallTask(
            id=tool_call_id,
            agent_id=step.agent_id,
            payload=ToolCallPayload(
                tool_name=_str_field(event, "tool_name") or "unknown",
                input=event.data.get("tool_input"),
            ),
        )
        step.tasks.append(task)
        return True

    def _complete_tool_call(self, event: ChatEvent) -> bool:
        assert self._workflow is not None
        tool_call_id = _str_field(event, "tool_call_id")
        for step in self._workflow.steps:
            for task in step.tasks:
                if isinstance(task, ToolCallTask) and task.id == tool_call_id:
                    task.payload.output = event.data.get("tool_result")
                    task.state = TaskState.SUCCESS
                    return True
        return False

    def _finish(self, event: ChatEvent) -> None:
        assert self._workflow is not None
        try:
            final_state = WorkflowFinalState.model_validate(
                {"messages": event.data.get("messages") or []}
            )
        except ValidationError as e:
            raise ProtocolViolationError(
                f"end_of_workflow carries invalid messages for {self._workflow.id!r}"
            ) from e
        self._workflow.final_state = final_state
        logger.info(
            "Workflow finished",
            extra={"workflow_id": self._workflow.id, "messages": len(final_state.messages)},
        )
