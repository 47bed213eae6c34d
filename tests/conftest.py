"""Test configuration and fixtures."""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator, Callable, Iterable
from pathlib import Path
from typing import Any

import pytest

from agent_stream_client.client.config import ClientSettings
from agent_stream_client.messaging.chat import ConversationState, Role
from agent_stream_client.messaging.models import TextMessage, WorkflowMessage
from agent_stream_client.store.conversation_store import ConversationStore
from agent_stream_client.stream.cursor import CancellationToken
from agent_stream_client.stream.events import ChatEvent, ChatStreamOptions


class ScriptedSource:
    """Event source replaying a fixed script, then optionally failing or hanging."""

    def __init__(
        self,
        events: Iterable[ChatEvent],
        *,
        error: Exception | None = None,
        hang: bool = False,
    ) -> None:
        self.events = list(events)
        self.error = error
        self.hang = hang
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def __call__(
        self,
        user_message: TextMessage | WorkflowMessage,
        conversation_state: ConversationState,
        options: ChatStreamOptions,
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> AsyncIterator[ChatEvent]:
        self.calls.append(
            {
                "user_message": user_message,
                "conversation_state": conversation_state,
                "options": options,
                "cancellation_token": cancellation_token,
            }
        )
        try:
            for event in self.events:
                yield event
            if self.error is not None:
                raise self.error
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.closed = True


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep settings independent of the developer's environment and `.env`."""
    for key in list(os.environ):
        if key.startswith("AGENT_STREAM_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def make_settings(monkeypatch: pytest.MonkeyPatch) -> Callable[..., ClientSettings]:
    """Build settings from environment variables, e.g. make_settings(AGENT_STREAM_MOCK="1")."""

    def factory(**env: str) -> ClientSettings:
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        return ClientSettings(_env_file=None)

    return factory


@pytest.fixture
def settings(make_settings: Callable[..., ClientSettings]) -> ClientSettings:
    return make_settings(AGENT_STREAM_MOCK_DELAY_SECONDS="0")


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore()


@pytest.fixture
def user_message() -> TextMessage:
    return TextMessage(id="u1", role=Role.USER, content="hi")


@pytest.fixture
def scripted() -> type[ScriptedSource]:
    return ScriptedSource


def event(event_type: str, **data: Any) -> ChatEvent:
    return ChatEvent(type=event_type, data=data)


@pytest.fixture
def ev() -> Callable[..., ChatEvent]:
    """Shorthand event builder: ev("message", delta={"content": "x"})."""
    return event
