"""Plain role/content messages exchanged with the agent backend."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """A single role/content pair, the shape the backend accepts as context."""

    model_config = ConfigDict(frozen=True)

    role: str
    content: str


class ConversationState(BaseModel):
    """Serializable conversation context sent along with the next turn.

    Refreshed wholesale when a workflow run reports its final messages.
    """

    model_config = ConfigDict(frozen=True)

    messages: tuple[ChatMessage, ...] = Field(default_factory=tuple)

    def to_json(self) -> dict[str, object]:
        return {"messages": [m.model_dump(mode="json") for m in self.messages]}
