#!/usr/bin/env python3
"""Programmatic streaming example.

This demonstrates using the client components directly:

* load settings from `.env`
* subscribe to the conversation store
* run one turn and watch the snapshots arrive

Pass `--mock` to replay the built-in script instead of calling a backend.
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Sequence

from agent_stream_client.client.config import ClientSettings
from agent_stream_client.client.logging import configure_logging
from agent_stream_client.client.main import render_message
from agent_stream_client.messaging.models import text_message
from agent_stream_client.processor.processor import SendMessageParams, StreamingEventProcessor
from agent_stream_client.store.conversation_store import ConversationSnapshot, ConversationStore


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stream one agent turn (programmatic example).")
    parser.add_argument("--session-id", required=True, help="Conversation/session id")
    parser.add_argument("--text", required=True, help="User message text")
    parser.add_argument("--mock", action="store_true", help="Use the built-in mock stream")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = ClientSettings()
    if args.mock:
        settings = settings.model_copy(update={"mock_stream": True})
    configure_logging(settings.log_level)

    store = ConversationStore()

    def on_change(snapshot: ConversationSnapshot) -> None:
        if snapshot.messages:
            latest = render_message(snapshot.messages[-1]).splitlines()[-1]
            print(f"{len(snapshot.messages):>2} | {latest}")

    unsubscribe = store.subscribe(on_change)
    processor = StreamingEventProcessor(store, settings)
    try:
        message = asyncio.run(
            processor.send_message(text_message(args.text), SendMessageParams(session_id=args.session_id))
        )
    finally:
        unsubscribe()

    if message is None:
        print("Turn cancelled")
        return 130

    print(f"Conversation state now holds {len(store.get().state.messages)} message(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
