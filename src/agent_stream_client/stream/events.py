from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    START_OF_WORKFLOW = "start_of_workflow"
    END_OF_WORKFLOW = "end_of_workflow"
    START_OF_AGENT = "start_of_agent"
    END_OF_AGENT = "end_of_agent"
    START_OF_LLM = "start_of_llm"
    END_OF_LLM = "end_of_llm"
    MESSAGE = "message"
    TOOL_CALL = "tool_call"
    TOOL_CALL_RESULT = "tool_call_result"


class ChatEvent(BaseModel):
    """One event of a turn's stream.

    `type` stays a plain string: sources may emit types this client does not
    know, and those are ignored rather than rejected.
    """

    model_config = ConfigDict(frozen=True)

    type: str
    data: dict[str, Any] = Field(default_factory=dict)


class ChatStreamOptions(BaseModel):
    """Per-turn options forwarded to the event source."""

    model_config = ConfigDict(frozen=True)

    deep_thinking_mode: bool = False
    search_before_planning: bool = False
    conversation_id: str


def delta_text(event: ChatEvent, key: str = "content") -> str:
    """Return `data.delta[key]` of a message event, or "" when absent."""

    delta = event.data.get("delta")
    if not isinstance(delta, dict):
        return ""
    value = delta.get(key)
    return value if isinstance(value, str) else ""
