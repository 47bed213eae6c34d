"""CLI entrypoint for the streaming client.

Commands:
- `send`: run one turn and print the resulting conversation
- `serve-mock`: serve the mock chat stream over HTTP for local development
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import assert_never

from pydantic import ValidationError

from agent_stream_client import __version__
from agent_stream_client.client.config import ClientSettings
from agent_stream_client.client.logging import configure_logging
from agent_stream_client.errors import MissingSessionError
from agent_stream_client.messaging.models import TextMessage, WorkflowMessage, text_message
from agent_stream_client.processor.processor import (
    Cancelled,
    Completed,
    Failed,
    SendMessageParams,
    StreamingEventProcessor,
)
from agent_stream_client.store.conversation_store import ConversationSnapshot, ConversationStore
from agent_stream_client.stream.cursor import CancellationToken
from agent_stream_client.workflow.models import ThinkingTask, ToolCallTask

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_MISSING_SESSION = 3
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-stream",
        description="Stream agent turns into a local conversation view",
    )
    parser.add_argument(
        "--version", action="version", version=f"agent-stream-client {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    send = subparsers.add_parser("send", help="Send a message and stream the agent's reply")
    send.add_argument("text", help="User message text")
    send.add_argument(
        "--session-id",
        default=None,
        help="Conversation/session id forwarded to the backend (required)",
    )
    send.add_argument(
        "--deep-thinking",
        action="store_true",
        help="Enable deep thinking mode for planning",
    )
    send.add_argument(
        "--search-before-planning",
        action="store_true",
        help="Let the agent search before drafting a plan",
    )
    send.add_argument(
        "--mock",
        action="store_true",
        help="Replay the built-in mock stream instead of calling the backend",
    )

    serve = subparsers.add_parser(
        "serve-mock", help="Serve the mock chat stream at /api/chat/stream"
    )
    serve.add_argument("--host", default="127.0.0.1", help="Host to bind (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port to bind (default: 8000)")

    return parser


def render_message(message: TextMessage | WorkflowMessage) -> str:
    match message:
        case TextMessage():
            return f"[{message.role.value}] {message.content}"
        case WorkflowMessage():
            workflow = message.content.workflow
            lines = [f"[workflow] {workflow.name}"]
            for step in workflow.steps:
                lines.append(f"  - {step.agent_name}")
                for task in step.tasks:
                    match task:
                        case ThinkingTask():
                            lines.append(f"      thinking ({task.state.value}): {task.payload.text}")
                        case ToolCallTask():
                            lines.append(
                                f"      tool {task.payload.tool_name} ({task.state.value})"
                            )
                        case _:
                            assert_never(task)
            if workflow.final_state is not None:
                lines.append(f"  done: {len(workflow.final_state.messages)} message(s)")
            return "\n".join(lines)
        case _:
            assert_never(message)


def render_conversation(snapshot: ConversationSnapshot) -> str:
    return "\n".join(render_message(m) for m in snapshot.messages)


async def _send(args: argparse.Namespace, settings: ClientSettings) -> int:
    store = ConversationStore()
    processor = StreamingEventProcessor(store, settings)
    token = CancellationToken()

    loop = asyncio.get_running_loop()
    handles_sigint = True
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel, "interrupted")
    except (NotImplementedError, RuntimeError):
        # Signal handlers are unavailable on this platform/thread.
        handles_sigint = False

    params = SendMessageParams(
        deep_thinking_mode=args.deep_thinking,
        search_before_planning=args.search_before_planning,
        session_id=args.session_id,
    )
    try:
        outcome = await processor.run_turn(
            text_message(args.text), params, cancellation_token=token
        )
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)

    print(render_conversation(store.get()))

    match outcome:
        case Completed():
            return EXIT_OK
        case Cancelled():
            print(f"Turn cancelled ({outcome.reason})", file=sys.stderr)
            return EXIT_CANCELLED
        case Failed():
            logger.error("Turn failed", exc_info=outcome.error)
            print(f"Turn failed: {outcome.error}", file=sys.stderr)
            return EXIT_FAILED
        case _:
            assert_never(outcome)


def _serve_mock(args: argparse.Namespace) -> int:
    import uvicorn

    from agent_stream_client.server.app import create_app

    uvicorn.run(create_app(), host=args.host, port=args.port)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = ClientSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(settings.log_level)

    try:
        if args.command == "send":
            if args.mock:
                settings = settings.model_copy(update={"mock_stream": True})
            return asyncio.run(_send(args, settings))

        if args.command == "serve-mock":
            return _serve_mock(args)

        logger.error("Unknown command", extra={"command": args.command})
        return EXIT_CONFIG

    except MissingSessionError as e:
        print(f"{e} (pass --session-id)", file=sys.stderr)
        return EXIT_MISSING_SESSION

    except Exception:
        logger.exception("Command failed")
        return EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
