"""Live event source: the agent backend's Server-Sent-Events chat endpoint.

Request body (JSON, POST `{api_base_url}/chat/stream`):
- `messages`: the conversation state messages followed by the new user message
- `deep_thinking_mode`, `search_before_planning`: planning switches
- `conversation_id`: the session the turn belongs to
- `debug`: backend debug switch

The response is `text/event-stream`; each frame carries an `event:` line naming
the event type and one or more `data:` lines holding its JSON payload.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Protocol

import httpx

from agent_stream_client.client.config import ClientSettings
from agent_stream_client.errors import TransportError
from agent_stream_client.messaging.chat import ConversationState
from agent_stream_client.messaging.models import TextMessage, WorkflowMessage, to_chat_message
from agent_stream_client.stream.cursor import CancellationToken
from agent_stream_client.stream.events import ChatEvent, ChatStreamOptions

logger = logging.getLogger(__name__)

CHAT_STREAM_PATH = "/chat/stream"
DEFAULT_SSE_EVENT = "message"


class EventSource(Protocol):
    """Produces the ordered event stream for one turn."""

    def __call__(
        self,
        user_message: TextMessage | WorkflowMessage,
        conversation_state: ConversationState,
        options: ChatStreamOptions,
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> AsyncIterator[ChatEvent]: ...


def build_chat_request(
    user_message: TextMessage | WorkflowMessage,
    conversation_state: ConversationState,
    options: ChatStreamOptions,
    *,
    debug: bool = False,
) -> dict[str, object]:
    history = [m.model_dump(mode="json") for m in conversation_state.messages]
    return {
        "messages": [*history, to_chat_message(user_message).model_dump(mode="json")],
        "deep_thinking_mode": options.deep_thinking_mode,
        "search_before_planning": options.search_before_planning,
        "conversation_id": options.conversation_id,
        "debug": debug,
    }


def _decode_frame(event_name: str | None, data_lines: list[str]) -> ChatEvent:
    raw = "\n".join(data_lines)
    try:
        data = json.loads(raw) if raw else {}
    except json.JSONDecodeError as e:
        raise TransportError(f"Malformed event data for {event_name!r}: {e}") from e
    if not isinstance(data, dict):
        raise TransportError(f"Event data for {event_name!r} must be a JSON object")
    return ChatEvent(type=event_name or DEFAULT_SSE_EVENT, data=data)


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[ChatEvent]:
    """Group SSE lines into frames and decode each frame as a :class:`ChatEvent`."""

    event_name: str | None = None
    data_lines: list[str] = []

    async for line in lines:
        line = line.rstrip("\r")
        if not line:
            if data_lines or event_name is not None:
                yield _decode_frame(event_name, data_lines)
            event_name = None
            data_lines = []
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event_name = value
        elif field == "data":
            data_lines.append(value)
        # `id:` and `retry:` carry nothing this client uses.

    if data_lines or event_name is not None:
        yield _decode_frame(event_name, data_lines)


class HttpChatTransport:
    """:class:`EventSource` backed by `httpx`.

    An injected client is borrowed and left open; otherwise a client is opened
    and closed around each turn.
    """

    def __init__(self, settings: ClientSettings, *, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._client = client

    @property
    def url(self) -> str:
        return f"{self._settings.api_base_url}{CHAT_STREAM_PATH}"

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self._settings.connect_timeout_seconds,
            read=self._settings.read_timeout_seconds,
        )

    async def __call__(
        self,
        user_message: TextMessage | WorkflowMessage,
        conversation_state: ConversationState,
        options: ChatStreamOptions,
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> AsyncIterator[ChatEvent]:
        payload = build_chat_request(
            user_message, conversation_state, options, debug=self._settings.debug
        )
        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled()

        logger.info(
            "Opening chat stream",
            extra={"url": self.url, "conversation_id": options.conversation_id},
        )
        if self._client is not None:
            async for event in self._stream(self._client, payload):
                yield event
            return

        async with httpx.AsyncClient(timeout=self._timeout()) as client:
            async for event in self._stream(client, payload):
                yield event

    async def _stream(
        self, client: httpx.AsyncClient, payload: dict[str, object]
    ) -> AsyncIterator[ChatEvent]:
        try:
            async with client.stream(
                "POST",
                self.url,
                json=payload,
                headers={"Accept": "text/event-stream"},
            ) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise TransportError(
                        f"Chat stream request failed with HTTP {response.status_code}: {body[:200]}",
                        status_code=response.status_code,
                    )
                async for event in iter_sse_events(response.aiter_lines()):
                    yield event
        except httpx.HTTPError as e:
            raise TransportError(f"Chat stream transport error: {e}") from e
