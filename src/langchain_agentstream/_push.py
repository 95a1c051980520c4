"""
Push-event consumer for EventSource-style streams.

The push endpoints never send an application-level end-of-stream marker that can be
relied on, so consumption is bounded by a fixed wall-clock cutoff. When the cutoff
fires the connection is closed and the stream is reported as complete, which means a
response that legitimately takes longer than the cutoff is silently truncated. The
returned CompletionReason lets callers tell the two cases apart; the callbacks do not.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import re
from typing import Any, AsyncGenerator, Callable, Protocol

import httpx

from langchain_agentstream._errors import AgentStreamError
from langchain_agentstream._sse import DONE_SENTINEL

logger = logging.getLogger(__name__)

DEFAULT_CUTOFF_S = 60.0

_DATA_PREFIX_RE = re.compile(r"^data:\s*")


class CompletionReason(str, enum.Enum):
    EOF = "eof"
    CUTOFF = "cutoff"
    ERROR = "error"


class PushConnection(Protocol):
    def messages(self) -> AsyncGenerator[str, None]: ...

    async def aclose(self) -> None: ...


class EventSourceConnection:
    """
    Push connection over an httpx event-stream response.

    Yields the data of each SSE message the way a browser EventSource dispatches it:
    ``data:`` fields (one optional space removed) joined by newlines, dispatched on a
    blank line. ``event:``, ``id:``, ``retry:`` and comment lines are ignored. There is
    no automatic reconnection.
    """

    def __init__(self, stream_cm: Any, *, check_status: Callable[[httpx.Response], Any] | None = None) -> None:
        self._stream_cm = stream_cm
        self._check_status = check_status
        self._response: httpx.Response | None = None
        self._closed = False

    async def messages(self) -> AsyncGenerator[str, None]:
        if self._closed:
            return
        self._response = await self._stream_cm.__aenter__()
        if self._check_status is not None:
            await self._check_status(self._response)

        data_lines: list[str] = []
        async for raw in self._response.aiter_lines():
            line = raw.rstrip("\r")

            if line == "":
                if data_lines:
                    yield "\n".join(data_lines)
                data_lines = []
                continue

            if line.startswith(":"):
                continue

            field, _, value = line.partition(":")
            if field != "data":
                continue
            if value.startswith(" "):
                value = value[1:]
            data_lines.append(value)

        if data_lines:
            yield "\n".join(data_lines)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._response is not None:
            await self._stream_cm.__aexit__(None, None, None)


def strip_push_data(data: str) -> str:
    """Remove one leading ``data:`` (and following whitespace) left inside a message's data."""
    return _DATA_PREFIX_RE.sub("", data, count=1)


async def consume_push_events(
    connection: PushConnection,
    on_payload: Callable[[str], None],
    on_complete: Callable[[], None] | None = None,
    on_error: Callable[[BaseException], None] | None = None,
    *,
    cutoff_s: float = DEFAULT_CUTOFF_S,
) -> CompletionReason:
    """
    Consume a push connection until it ends, fails or the cutoff elapses.

    The connection is closed on every exit path, including a callback raising.

    Args:
        connection: Source of message data strings.
        on_payload: Called once per message whose data, after stripping one ``data:``
            prefix, is non-empty and not ``[DONE]``.
        on_complete: Called when the stream ended or the cutoff fired.
        on_error: Called with the failure when the transport errors. If omitted the
            failure is re-raised. Never retried.
        cutoff_s: Wall-clock limit measured from the moment consumption starts.

    Returns:
        Why consumption stopped.
    """

    async def pump() -> None:
        async with contextlib.aclosing(connection.messages()) as messages:
            async for data in messages:
                if not data:
                    continue
                text = strip_push_data(data)
                if text and text != DONE_SENTINEL:
                    on_payload(text)

    try:
        try:
            await asyncio.wait_for(pump(), timeout=cutoff_s)
            reason = CompletionReason.EOF
        except asyncio.TimeoutError:
            logger.warning("Push stream cut off after %.1fs; reporting completion", cutoff_s)
            reason = CompletionReason.CUTOFF
        except (httpx.HTTPError, httpx.StreamError, AgentStreamError) as e:
            logger.warning("Push stream failed: %r", e)
            if on_error is None:
                raise
            on_error(e)
            return CompletionReason.ERROR

        if on_complete is not None:
            on_complete()
        return reason
    finally:
        await connection.aclose()
