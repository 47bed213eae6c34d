"""Shared pull cursor over a turn's event stream, with cooperative cancellation.

One :class:`EventCursor` wraps the event source of one turn. The processor and
the workflow engine pull from the same cursor object, one owner at a time, so
no event is consumed twice or dropped when ownership is handed over.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from pydantic import ValidationError

from agent_stream_client.errors import ProtocolViolationError
from agent_stream_client.stream.events import ChatEvent

logger = logging.getLogger(__name__)

_END = object()


class StreamCancelled(Exception):
    """The turn was cancelled through its :class:`CancellationToken`."""

    def __init__(self, reason: str = "cancelled") -> None:
        super().__init__(reason)
        self.reason = reason


class CancellationToken:
    """A cancellation request observed at every pull of an :class:`EventCursor`."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise StreamCancelled(self._reason or "cancelled")


class EventCursor:
    """Async iterator that pulls events from `source` on behalf of whoever holds it.

    With a token, each pull races the source against the token; if the token
    wins, the in-flight pull is cancelled and :class:`StreamCancelled` is raised.
    """

    def __init__(
        self, source: AsyncIterator[ChatEvent], token: CancellationToken | None = None
    ) -> None:
        self._source = source
        self._token = token
        self._consumed = 0
        self._exhausted = False
        self._closed = False

    @property
    def consumed(self) -> int:
        """Number of events handed out so far."""

        return self._consumed

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def __aiter__(self) -> EventCursor:
        return self

    async def __anext__(self) -> ChatEvent:
        if self._token is not None:
            self._token.raise_if_cancelled()
        if self._exhausted or self._closed:
            raise StopAsyncIteration

        if self._token is None:
            item = await self._pull()
        else:
            item = await self._pull_or_cancel(self._token)

        if item is _END:
            self._exhausted = True
            raise StopAsyncIteration
        event = self._coerce(item)
        self._consumed += 1
        return event

    async def aclose(self) -> None:
        """Close the underlying source once; later pulls end the iteration."""

        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()

    def _coerce(self, item: object) -> ChatEvent:
        if isinstance(item, ChatEvent):
            return item
        try:
            return ChatEvent.model_validate(item)
        except ValidationError as e:
            raise ProtocolViolationError(
                f"Event source yielded an invalid event at index {self._consumed}"
            ) from e

    async def _pull(self) -> object:
        try:
            return await anext(self._source)
        except StopAsyncIteration:
            return _END

    async def _pull_or_cancel(self, token: CancellationToken) -> object:
        pull = asyncio.ensure_future(self._pull())
        cancel = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait({pull, cancel}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            pull.cancel()
            cancel.cancel()
            # The source must be idle again before anyone calls aclose() on it.
            await asyncio.gather(pull, cancel, return_exceptions=True)
            raise

        if pull in done:
            cancel.cancel()
            return pull.result()

        pull.cancel()
        try:
            await pull
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
        except Exception:
            # The source failed while being torn down; cancellation takes precedence.
            logger.debug("Event source raised while cancelling", exc_info=True)
        logger.info(
            "Event stream cancelled", extra={"consumed": self._consumed, "reason": token.reason}
        )
        raise StreamCancelled(token.reason or "cancelled")
