"""Exception taxonomy for a streaming turn.

Cancellation is deliberately absent here: it is signalled by
:class:`agent_stream_client.stream.cursor.StreamCancelled` and is not an error.
"""

from __future__ import annotations


class AgentStreamError(Exception):
    """Base class for errors raised by this package."""


class MissingSessionError(AgentStreamError, ValueError):
    """Raised before a turn starts when no session id was supplied."""

    def __init__(self, message: str = "session_id is required") -> None:
        super().__init__(message)


class TurnInProgressError(AgentStreamError, RuntimeError):
    """Raised when a second turn is started while the store is still responding."""

    def __init__(self, message: str = "A turn is already in progress for this conversation") -> None:
        super().__init__(message)


class TransportError(AgentStreamError):
    """The event source could not deliver the event stream."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProtocolViolationError(AgentStreamError):
    """The event sequence cannot be interpreted (e.g. a nested workflow)."""
