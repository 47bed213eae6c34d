"""Deterministic event source for development and demos.

The script mirrors what the live backend sends for a planning turn: a short
coordinator reply, then a planner / researcher / reporter workflow. Ids are
derived from the user message id, so consecutive turns never collide.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from agent_stream_client.messaging.chat import ConversationState, Role
from agent_stream_client.messaging.models import TextMessage, WorkflowMessage, to_chat_message
from agent_stream_client.stream.cursor import CancellationToken
from agent_stream_client.stream.events import ChatEvent, ChatStreamOptions, EventType

logger = logging.getLogger(__name__)


def _chunks(text: str, size: int = 8) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)]


def _event(event_type: EventType, **data: object) -> ChatEvent:
    return ChatEvent(type=event_type.value, data=data)


def _agent_text(agent_id: str, agent_name: str, text: str) -> list[ChatEvent]:
    events = [_event(EventType.START_OF_AGENT, agent_id=agent_id, agent_name=agent_name)]
    events += [
        _event(EventType.MESSAGE, message_id=agent_id, delta={"content": chunk})
        for chunk in _chunks(text)
    ]
    events.append(_event(EventType.END_OF_AGENT, agent_id=agent_id, agent_name=agent_name))
    return events


def _agent_llm(agent_id: str, agent_name: str, reason: str, text: str) -> list[ChatEvent]:
    events = [
        _event(EventType.START_OF_AGENT, agent_id=agent_id, agent_name=agent_name),
        _event(EventType.START_OF_LLM, agent_name=agent_name),
    ]
    events += [
        _event(EventType.MESSAGE, message_id=agent_id, delta={"reasoning_content": chunk})
        for chunk in _chunks(reason)
    ]
    events += [
        _event(EventType.MESSAGE, message_id=agent_id, delta={"content": chunk})
        for chunk in _chunks(text)
    ]
    events += [
        _event(EventType.END_OF_LLM, agent_name=agent_name),
        _event(EventType.END_OF_AGENT, agent_id=agent_id, agent_name=agent_name),
    ]
    return events


def build_mock_script(user_text: str, *, prefix: str) -> list[ChatEvent]:
    """Return the full mock event sequence for one user message."""

    topic = user_text.strip() or "your request"
    plan = f'{{"title": "Plan for {topic}", "steps": ["research", "report"]}}'
    report = f"# Report\n\nHere is what I found about {topic}."

    events = _agent_text(f"{prefix}-coordinator", "coordinator", "Let me plan this out.")
    events.append(
        _event(
            EventType.START_OF_WORKFLOW,
            workflow_id=f"{prefix}-workflow",
            input=[{"role": Role.USER.value, "content": topic}],
        )
    )
    events += _agent_llm(
        f"{prefix}-planner", "planner", f"The user asked about {topic}.", plan
    )
    events += [
        _event(EventType.START_OF_AGENT, agent_id=f"{prefix}-researcher", agent_name="researcher"),
        _event(
            EventType.TOOL_CALL,
            tool_call_id=f"{prefix}-search",
            tool_name="web_search",
            tool_input={"query": topic},
        ),
        _event(
            EventType.TOOL_CALL_RESULT,
            tool_call_id=f"{prefix}-search",
            tool_name="web_search",
            tool_result=[{"title": f"About {topic}", "url": "https://example.com"}],
        ),
        _event(EventType.END_OF_AGENT, agent_id=f"{prefix}-researcher", agent_name="researcher"),
    ]
    events += _agent_llm(f"{prefix}-reporter", "reporter", "Summarise the findings.", report)
    events.append(
        _event(
            EventType.END_OF_WORKFLOW,
            workflow_id=f"{prefix}-workflow",
            messages=[
                {"role": Role.USER.value, "content": topic},
                {"role": Role.ASSISTANT.value, "content": report},
            ],
        )
    )
    return events


class MockChatStream:
    """:class:`~agent_stream_client.stream.transport.EventSource` replaying the mock script."""

    def __init__(self, delay_seconds: float = 0.0) -> None:
        self._delay_seconds = delay_seconds

    async def __call__(
        self,
        user_message: TextMessage | WorkflowMessage,
        conversation_state: ConversationState,
        options: ChatStreamOptions,
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> AsyncIterator[ChatEvent]:
        script = build_mock_script(to_chat_message(user_message).content, prefix=user_message.id)
        logger.info(
            "Replaying mock chat stream",
            extra={"events": len(script), "conversation_id": options.conversation_id},
        )
        for event in script:
            if cancellation_token is not None:
                cancellation_token.raise_if_cancelled()
            if self._delay_seconds > 0:
                await asyncio.sleep(self._delay_seconds)
            yield event
