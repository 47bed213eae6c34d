from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Iterable

import pytest

from agent_stream_client.errors import ProtocolViolationError
from agent_stream_client.messaging.chat import ChatMessage
from agent_stream_client.stream.cursor import EventCursor
from agent_stream_client.stream.events import ChatEvent
from agent_stream_client.workflow.engine import WorkflowEngine
from agent_stream_client.workflow.models import (
    TaskState,
    ThinkingTask,
    ToolCallTask,
    Workflow,
)


async def _iterate(events: Iterable[ChatEvent]) -> AsyncIterator[ChatEvent]:
    for event in events:
        yield event


def _run(engine: WorkflowEngine, cursor: EventCursor) -> list[Workflow]:
    async def collect() -> list[Workflow]:
        return [snapshot async for snapshot in engine.run(cursor)]

    return asyncio.run(collect())


def test_start_names_the_workflow_after_its_first_input(ev: Callable[..., ChatEvent]) -> None:
    engine = WorkflowEngine()

    workflow = engine.start(
        ev("start_of_workflow", workflow_id="w1", input=[{"role": "user", "content": "Plan a trip"}])
    )

    assert workflow.id == "w1"
    assert workflow.name == "Plan a trip"
    assert workflow.steps == []
    assert workflow.is_complete is False


def test_start_falls_back_to_the_workflow_id(ev: Callable[..., ChatEvent]) -> None:
    assert WorkflowEngine().start(ev("start_of_workflow", workflow_id="w1")).name == "w1"


@pytest.mark.parametrize(
    "event_type, data",
    [
        ("message", {"workflow_id": "w1"}),
        ("start_of_workflow", {}),
        ("start_of_workflow", {"workflow_id": ""}),
    ],
)
def test_start_rejects_invalid_events(
    ev: Callable[..., ChatEvent], event_type: str, data: dict[str, object]
) -> None:
    with pytest.raises(ProtocolViolationError):
        WorkflowEngine().start(ev(event_type, **data))


def test_engine_cannot_be_started_twice(ev: Callable[..., ChatEvent]) -> None:
    engine = WorkflowEngine()
    engine.start(ev("start_of_workflow", workflow_id="w1"))

    with pytest.raises(ProtocolViolationError):
        engine.start(ev("start_of_workflow", workflow_id="w2"))


def test_run_before_start_fails() -> None:
    with pytest.raises(ProtocolViolationError):
        _run(WorkflowEngine(), EventCursor(_iterate([])))


def test_full_workflow_builds_steps_and_tasks(ev: Callable[..., ChatEvent]) -> None:
    engine = WorkflowEngine()
    engine.start(ev("start_of_workflow", workflow_id="w1"))
    events = [
        ev("start_of_agent", agent_id="a1", agent_name="planner"),
        ev("start_of_llm", agent_name="planner"),
        ev("message", delta={"reasoning_content": "Think"}),
        ev("message", delta={"content": "Plan"}),
        ev("message", delta={"content": " ready"}),
        ev("end_of_llm", agent_name="planner"),
        ev("end_of_agent", agent_id="a1"),
        ev("start_of_agent", agent_id="a2", agent_name="researcher"),
        ev("tool_call", tool_call_id="t1", tool_name="web_search", tool_input={"query": "x"}),
        ev("tool_call_result", tool_call_id="t1", tool_result=["hit"]),
        ev("end_of_agent", agent_id="a2"),
        ev(
            "end_of_workflow",
            workflow_id="w1",
            messages=[{"role": "user", "content": "x"}, {"role": "assistant", "content": "done"}],
        ),
    ]

    snapshots = _run(engine, EventCursor(_iterate(events)))

    assert len(snapshots) == len(events)
    final = snapshots[-1]
    assert final.is_complete is True
    assert [s.agent_name for s in final.steps] == ["planner", "researcher"]

    thinking = final.steps[0].tasks[0]
    assert isinstance(thinking, ThinkingTask)
    assert thinking.id == "a1-llm-1"
    assert thinking.payload.text == "Plan ready"
    assert thinking.payload.reason == "Think"
    assert thinking.state == TaskState.SUCCESS

    tool = final.steps[1].tasks[0]
    assert isinstance(tool, ToolCallTask)
    assert tool.payload.tool_name == "web_search"
    assert tool.payload.input == {"query": "x"}
    assert tool.payload.output == ["hit"]
    assert tool.state == TaskState.SUCCESS

    assert engine.final_state is not None
    assert engine.final_state.messages == [
        ChatMessage(role="user", content="x"),
        ChatMessage(role="assistant", content="done"),
    ]


def test_snapshots_are_independent_copies(ev: Callable[..., ChatEvent]) -> None:
    engine = WorkflowEngine()
    engine.start(ev("start_of_workflow", workflow_id="w1"))
    events = [
        ev("start_of_agent", agent_id="a1", agent_name="planner"),
        ev("start_of_llm"),
        ev("message", delta={"content": "a"}),
        ev("message", delta={"content": "b"}),
    ]

    snapshots = _run(engine, EventCursor(_iterate(events)))

    texts = [
        s.steps[0].tasks[0].payload.text if s.steps and s.steps[0].tasks else None
        for s in snapshots
    ]
    assert texts == [None, "", "a", "ab"]


def test_irrelevant_events_yield_nothing(ev: Callable[..., ChatEvent]) -> None:
    engine = WorkflowEngine()
    engine.start(ev("start_of_workflow", workflow_id="w1"))
    events = [
        ev("message", delta={"content": "no task yet"}),
        ev("end_of_llm"),
        ev("tool_call_result", tool_call_id="unknown"),
        ev("something_new", value=1),
    ]

    assert _run(engine, EventCursor(_iterate(events))) == []


def test_run_stops_at_end_of_workflow_and_leaves_the_rest(ev: Callable[..., ChatEvent]) -> None:
    engine = WorkflowEngine()
    engine.start(ev("start_of_workflow", workflow_id="w1"))
    cursor = EventCursor(
        _iterate(
            [
                ev("end_of_workflow", workflow_id="w1", messages=[]),
                ev("message", message_id="after", delta={"content": "tail"}),
            ]
        )
    )

    async def scenario() -> tuple[list[Workflow], list[ChatEvent]]:
        snapshots = [s async for s in engine.run(cursor)]
        rest = [e async for e in cursor]
        return snapshots, rest

    snapshots, rest = asyncio.run(scenario())

    assert len(snapshots) == 1
    assert [e.data["message_id"] for e in rest] == ["after"]


def test_nested_workflow_is_rejected(ev: Callable[..., ChatEvent]) -> None:
    engine = WorkflowEngine()
    engine.start(ev("start_of_workflow", workflow_id="w1"))

    with pytest.raises(ProtocolViolationError):
        _run(engine, EventCursor(_iterate([ev("start_of_workflow", workflow_id="w2")])))


def test_stream_ending_early_leaves_no_final_state(ev: Callable[..., ChatEvent]) -> None:
    engine = WorkflowEngine()
    engine.start(ev("start_of_workflow", workflow_id="w1"))

    snapshots = _run(
        engine, EventCursor(_iterate([ev("start_of_agent", agent_id="a1", agent_name="p")]))
    )

    assert len(snapshots) == 1
    assert snapshots[0].is_complete is False
    assert engine.final_state is None


def test_invalid_final_messages_are_a_protocol_violation(ev: Callable[..., ChatEvent]) -> None:
    engine = WorkflowEngine()
    engine.start(ev("start_of_workflow", workflow_id="w1"))

    with pytest.raises(ProtocolViolationError):
        _run(
            engine,
            EventCursor(_iterate([ev("end_of_workflow", messages=[{"role": "user"}])])),
        )
