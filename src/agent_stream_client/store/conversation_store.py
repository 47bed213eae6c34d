"""Observable conversation store.

The store holds one immutable :class:`ConversationSnapshot`. Every mutation
builds a new snapshot, swaps it in, and notifies subscribers synchronously, in
the order the mutations were issued. A snapshot handed to a subscriber is never
modified afterwards.

One store backs one conversation. It is created empty and needs no teardown.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from agent_stream_client.messaging.chat import ConversationState
from agent_stream_client.messaging.models import (
    MESSAGE_ADAPTER,
    Message,
    TextMessage,
    WorkflowMessage,
    find_message_index,
)

logger = logging.getLogger(__name__)


class ConversationSnapshot(BaseModel):
    """Point-in-time view of the conversation."""

    model_config = ConfigDict(frozen=True)

    messages: tuple[Message, ...] = Field(default_factory=tuple)
    responding: bool = False
    state: ConversationState = Field(default_factory=ConversationState)


Listener = Callable[[ConversationSnapshot], None]


class ConversationStore:
    """Single mutation entry point for the conversation view model."""

    def __init__(self, initial: ConversationSnapshot | None = None) -> None:
        self._snapshot = initial or ConversationSnapshot()
        self._listeners: list[Listener] = []
        self._pending: deque[ConversationSnapshot] = deque()
        self._notifying = False

    def get(self) -> ConversationSnapshot:
        return self._snapshot

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener`; returns a callable that unregisters it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def append_message(self, message: TextMessage | WorkflowMessage) -> TextMessage | WorkflowMessage:
        messages = self._snapshot.messages
        if find_message_index(messages, message.id) != -1:
            raise ValueError(f"Message id already present: {message.id!r}")
        self._commit(messages=(*messages, message))
        return message

    def replace_message_by_id(
        self, partial: Mapping[str, Any]
    ) -> TextMessage | WorkflowMessage | None:
        """Merge `partial` over the message with the same id, keeping its position.

        Unknown ids are a no-op: late or duplicate events must not resurrect
        messages that were cleared.
        """

        message_id = partial.get("id")
        if not isinstance(message_id, str):
            raise ValueError("A partial message must carry a string 'id'")

        messages = self._snapshot.messages
        idx = find_message_index(messages, message_id)
        if idx == -1:
            logger.debug("Replace skipped, message not found", extra={"message_id": message_id})
            return None

        existing = messages[idx]
        merged = MESSAGE_ADAPTER.validate_python({**dict(existing), **partial})
        replacement = merged.model_copy(deep=True)
        self._commit(messages=(*messages[:idx], replacement, *messages[idx + 1 :]))
        return replacement

    def set_responding(self, responding: bool) -> None:
        self._commit(responding=responding)

    def clear_messages(self) -> None:
        self._commit(messages=())

    def set_conversation_state(self, state: ConversationState | Mapping[str, Any]) -> None:
        if not isinstance(state, ConversationState):
            state = ConversationState.model_validate(state)
        self._commit(state=state)

    # Caller-facing names for mutations made outside a streaming turn.
    add_message = append_message
    update_message = replace_message_by_id

    def _commit(self, **changes: object) -> None:
        self._snapshot = self._snapshot.model_copy(update=changes)
        self._publish(self._snapshot)

    def _publish(self, snapshot: ConversationSnapshot) -> None:
        # A listener that mutates the store queues its snapshot behind the one
        # being delivered, so every listener sees snapshots in mutation order.
        self._pending.append(snapshot)
        if self._notifying:
            return
        self._notifying = True
        try:
            while self._pending:
                current = self._pending.popleft()
                for listener in list(self._listeners):
                    try:
                        listener(current)
                    except Exception:
                        logger.exception(
                            "Conversation store listener failed",
                            extra={"listener": getattr(listener, "__qualname__", repr(listener))},
                        )
        finally:
            self._notifying = False
