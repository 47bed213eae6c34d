"""Workflow snapshot values produced by the workflow engine.

The engine mutates a private working copy and only ever publishes deep copies
of it, so a published :class:`Workflow` is never changed afterwards.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from agent_stream_client.messaging.chat import ChatMessage


class TaskState(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"


class ThinkingPayload(BaseModel):
    text: str = ""
    reason: str = ""


class ToolCallPayload(BaseModel):
    tool_name: str
    input: Any = None
    output: Any = None


class ThinkingTask(BaseModel):
    """An LLM generation inside a step; accumulates streamed text and reasoning."""

    type: Literal["thinking"] = "thinking"
    id: str
    agent_id: str
    state: TaskState = TaskState.PENDING
    payload: ThinkingPayload = Field(default_factory=ThinkingPayload)


class ToolCallTask(BaseModel):
    """A tool invocation inside a step; completed when its result arrives."""

    type: Literal["tool_call"] = "tool_call"
    id: str
    agent_id: str
    state: TaskState = TaskState.PENDING
    payload: ToolCallPayload


WorkflowTask = Annotated[ThinkingTask | ToolCallTask, Field(discriminator="type")]


class WorkflowStep(BaseModel):
    id: str
    agent_id: str
    agent_name: str
    type: Literal["agentic"] = "agentic"
    tasks: list[WorkflowTask] = Field(default_factory=list)


class WorkflowFinalState(BaseModel):
    messages: list[ChatMessage] = Field(default_factory=list)


class Workflow(BaseModel):
    id: str
    name: str
    steps: list[WorkflowStep] = Field(default_factory=list)
    final_state: WorkflowFinalState | None = None

    @property
    def is_complete(self) -> bool:
        return self.final_state is not None
