"""Streaming event processor: runs one conversation turn against the store.

A turn appends the user message, opens the event source, and applies each
event to the conversation store strictly in delivery order:

- `start_of_agent` / `message` / `end_of_agent` stream a text message
- `start_of_workflow` hands the cursor to a :class:`WorkflowEngine` until the
  workflow ends, mirroring each workflow snapshot into a workflow message
- anything else is ignored

`responding` is true for the whole turn and reset in a `finally` block on every
exit path. Cancellation through the turn's :class:`CancellationToken` ends the
turn quietly; any other error is surfaced to the caller after cleanup.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import aclosing
from dataclasses import dataclass
from typing import assert_never

from pydantic import BaseModel

from agent_stream_client.client.config import ClientSettings
from agent_stream_client.errors import MissingSessionError, ProtocolViolationError, TurnInProgressError
from agent_stream_client.messaging.chat import ConversationState, Role
from agent_stream_client.messaging.models import (
    TextMessage,
    WorkflowContent,
    WorkflowMessage,
    find_message_index,
    workflow_message,
)
from agent_stream_client.store.conversation_store import ConversationStore
from agent_stream_client.stream.cursor import CancellationToken, EventCursor, StreamCancelled
from agent_stream_client.stream.events import ChatEvent, ChatStreamOptions, EventType, delta_text
from agent_stream_client.stream.mock import MockChatStream
from agent_stream_client.stream.transport import EventSource, HttpChatTransport
from agent_stream_client.workflow.engine import WorkflowEngine

logger = logging.getLogger(__name__)


class SendMessageParams(BaseModel):
    deep_thinking_mode: bool = False
    search_before_planning: bool = False
    session_id: str | None = None


@dataclass(frozen=True, slots=True)
class Completed:
    message: TextMessage | WorkflowMessage


@dataclass(frozen=True, slots=True)
class Cancelled:
    reason: str = "cancelled"


@dataclass(frozen=True, slots=True)
class Failed:
    error: Exception


TurnOutcome = Completed | Cancelled | Failed


class StreamingEventProcessor:
    """Drives turns for one :class:`ConversationStore`.

    `source` overrides the settings-based choice between the mock stream and
    the live transport.
    """

    def __init__(
        self,
        store: ConversationStore,
        settings: ClientSettings | None = None,
        *,
        source: EventSource | None = None,
        workflow_engine_factory: Callable[[], WorkflowEngine] = WorkflowEngine,
    ) -> None:
        self._store = store
        self._settings = settings or ClientSettings()
        self._source = source
        self._workflow_engine_factory = workflow_engine_factory

    @property
    def store(self) -> ConversationStore:
        return self._store

    def select_source(self) -> EventSource:
        if self._source is not None:
            return self._source
        if self._settings.mock_stream:
            return MockChatStream(self._settings.mock_delay_seconds)
        return HttpChatTransport(self._settings)

    async def send_message(
        self,
        message: TextMessage | WorkflowMessage,
        params: SendMessageParams,
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> TextMessage | WorkflowMessage | None:
        """Run a turn; returns `message`, or None if the turn was cancelled."""

        outcome = await self.run_turn(message, params, cancellation_token=cancellation_token)
        match outcome:
            case Completed():
                return outcome.message
            case Cancelled():
                return None
            case Failed():
                raise outcome.error
            case _:
                assert_never(outcome)

    async def run_turn(
        self,
        message: TextMessage | WorkflowMessage,
        params: SendMessageParams,
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> TurnOutcome:
        """Run a turn and report how it ended.

        Raises:
            MissingSessionError: `params.session_id` is missing or blank.
            TurnInProgressError: the store is already responding to another turn.
        """

        session_id = (params.session_id or "").strip()
        if not session_id:
            logger.error("Turn rejected: session_id is required", extra={"message_id": message.id})
            raise MissingSessionError()
        if self._store.get().responding:
            raise TurnInProgressError()

        self._store.append_message(message)

        source = self.select_source()
        options = ChatStreamOptions(
            deep_thinking_mode=params.deep_thinking_mode,
            search_before_planning=params.search_before_planning,
            conversation_id=session_id,
        )
        events = source(
            message, self._store.get().state, options, cancellation_token=cancellation_token
        )
        cursor = EventCursor(events, cancellation_token)

        self._store.set_responding(True)
        logger.info(
            "Turn started",
            extra={
                "conversation_id": session_id,
                "message_id": message.id,
                "source": type(source).__name__,
            },
        )
        try:
            try:
                await self._consume(cursor)
            finally:
                await cursor.aclose()
        except StreamCancelled as e:
            logger.info(
                "Turn cancelled",
                extra={"conversation_id": session_id, "events": cursor.consumed, "reason": e.reason},
            )
            return Cancelled(reason=e.reason)
        except Exception as e:
            logger.warning(
                "Turn failed",
                extra={"conversation_id": session_id, "events": cursor.consumed, "error": repr(e)},
            )
            return Failed(error=e)
        finally:
            self._store.set_responding(False)

        logger.info(
            "Turn completed", extra={"conversation_id": session_id, "events": cursor.consumed}
        )
        return Completed(message=message)

    async def _consume(self, cursor: EventCursor) -> None:
        active: TextMessage | None = None

        async for event in cursor:
            match event.type:
                case EventType.START_OF_AGENT:
                    active = self._start_text_message(event)
                case EventType.MESSAGE:
                    if active is None:
                        logger.debug(
                            "Message event without an active agent ignored",
                            extra={"event_index": cursor.consumed},
                        )
                        continue
                    active = self._append_delta(active, event)
                case EventType.END_OF_AGENT:
                    active = None
                case EventType.START_OF_WORKFLOW:
                    await self._run_workflow(event, cursor)
                case _:
                    logger.debug("Event ignored", extra={"event_type": event.type})

    def _start_text_message(self, event: ChatEvent) -> TextMessage:
        agent_id = event.data.get("agent_id")
        if not isinstance(agent_id, str) or not agent_id:
            raise ProtocolViolationError("start_of_agent requires an agent_id")
        if find_message_index(self._store.get().messages, agent_id) != -1:
            raise ProtocolViolationError(f"start_of_agent reuses message id {agent_id!r}")
        message = TextMessage(id=agent_id, role=Role.ASSISTANT, content="")
        self._store.append_message(message)
        return message

    def _append_delta(self, active: TextMessage, event: ChatEvent) -> TextMessage:
        delta = delta_text(event)
        if not delta:
            return active
        updated = active.model_copy(update={"content": active.content + delta})
        self._store.replace_message_by_id({"id": updated.id, "content": updated.content})
        return updated

    async def _run_workflow(self, event: ChatEvent, cursor: EventCursor) -> None:
        engine = self._workflow_engine_factory()
        message = workflow_message(engine.start(event))
        if find_message_index(self._store.get().messages, message.id) != -1:
            raise ProtocolViolationError(f"start_of_workflow reuses message id {message.id!r}")
        self._store.append_message(message)

        async with aclosing(engine.run(cursor)) as snapshots:
            async for snapshot in snapshots:
                self._store.replace_message_by_id(
                    {"id": message.id, "content": WorkflowContent(workflow=snapshot)}
                )

        final_state = engine.final_state
        messages = tuple(final_state.messages) if final_state is not None else ()
        self._store.set_conversation_state(ConversationState(messages=messages))
