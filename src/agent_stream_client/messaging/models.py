"""Message variants held by the conversation store.

`Message` is a discriminated union over `type`. Consumers match on the concrete
variant instead of probing fields, e.g.::

    match message:
        case TextMessage():
            ...
        case WorkflowMessage():
            ...
        case _:
            assert_never(message)

Messages are frozen: a change is always a replace-by-id in the store.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Annotated, Literal, assert_never

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from agent_stream_client.messaging.chat import ChatMessage, Role
from agent_stream_client.workflow.models import Workflow


class TextMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    type: Literal["text"] = "text"
    content: str = ""


class WorkflowContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    workflow: Workflow


class WorkflowMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    role: Role = Role.ASSISTANT
    type: Literal["workflow"] = "workflow"
    content: WorkflowContent


Message = Annotated[TextMessage | WorkflowMessage, Field(discriminator="type")]

MESSAGE_ADAPTER: TypeAdapter[TextMessage | WorkflowMessage] = TypeAdapter(Message)


def new_message_id() -> str:
    return uuid.uuid4().hex


def text_message(content: str, *, role: Role = Role.USER, id: str | None = None) -> TextMessage:
    """Build a text message, generating an id when none is given."""

    return TextMessage(id=id or new_message_id(), role=role, content=content)


def workflow_message(workflow: Workflow, *, id: str | None = None) -> WorkflowMessage:
    """Wrap a workflow snapshot; the message id defaults to the workflow id."""

    return WorkflowMessage(id=id or workflow.id, content=WorkflowContent(workflow=workflow))


def find_message_index(messages: Sequence[TextMessage | WorkflowMessage], message_id: str) -> int:
    """Return the position of the message with `message_id`, or -1."""

    for idx, message in enumerate(messages):
        if message.id == message_id:
            return idx
    return -1


def to_chat_message(message: TextMessage | WorkflowMessage) -> ChatMessage:
    """Reduce a message to the role/content shape sent to the backend."""

    match message:
        case TextMessage():
            return ChatMessage(role=message.role.value, content=message.content)
        case WorkflowMessage():
            raise ValueError(f"Workflow message {message.id!r} cannot be sent as chat input")
        case _:
            assert_never(message)
