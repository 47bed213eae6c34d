"""FastAPI app factory for the mock agent backend.

`POST /api/chat/stream` accepts the same body the live transport sends and
answers with the mock event script as Server-Sent Events.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from agent_stream_client import __version__
from agent_stream_client.messaging.chat import ChatMessage, Role
from agent_stream_client.messaging.models import new_message_id
from agent_stream_client.server.config import ServerSettings
from agent_stream_client.stream.events import ChatEvent
from agent_stream_client.stream.mock import build_mock_script

logger = logging.getLogger(__name__)


class ChatStreamRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)
    deep_thinking_mode: bool = False
    search_before_planning: bool = False
    conversation_id: str | None = None
    debug: bool = False


def format_sse_event(event: ChatEvent) -> str:
    """Format one event as an SSE frame."""

    return f"event: {event.type}\ndata: {json.dumps(event.data, ensure_ascii=False)}\n\n"


def create_app(settings: ServerSettings | None = None) -> FastAPI:
    settings = settings or ServerSettings()

    app = FastAPI(
        title="Agent Stream Mock Backend",
        version=__version__,
        description="Replays a deterministic agent event stream for client development.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.post("/api/chat/stream")
    async def chat_stream(req: ChatStreamRequest) -> StreamingResponse:
        last = req.messages[-1]
        if last.role != Role.USER.value:
            raise HTTPException(status_code=400, detail="The last message must come from the user")

        conversation_id = req.conversation_id or "anonymous"
        # Ids must stay unique across every turn of the conversation.
        script = build_mock_script(last.content, prefix=f"{conversation_id}-{new_message_id()}")
        logger.info(
            "Streaming mock chat",
            extra={"conversation_id": conversation_id, "events": len(script)},
        )

        async def frames() -> AsyncIterator[str]:
            for event in script:
                if settings.mock_delay_seconds > 0:
                    await asyncio.sleep(settings.mock_delay_seconds)
                yield format_sse_event(event)

        return StreamingResponse(
            frames(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )

    return app
