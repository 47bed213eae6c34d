"""Console script entrypoint (`agent-stream`)."""

from __future__ import annotations

from agent_stream_client.client.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
