"""
Incremental parser for the Server-Sent Events (SSE) text emitted by the streaming endpoints.

Text is accumulated in a FrameBuffer and cut into frames on the blank-line delimiter.
Each frame is then reduced to its payloads: the content of every ``data:`` line,
minus protocol sentinels and one layer of surrounding double quotes.
"""

from __future__ import annotations

from typing import Iterator

FRAME_DELIMITER = "\n\n"
DATA_PREFIX = "data:"

DONE_SENTINEL = "[DONE]"
ERROR_SENTINEL = "[ERROR]"
NULL_SENTINEL = "null"

SENTINELS = frozenset({DONE_SENTINEL, ERROR_SENTINEL, NULL_SENTINEL})


class FrameBuffer:
    """
    Accumulates decoded text and splits it into complete frames.

    After every ``append`` the buffer holds at most one trailing, incomplete frame.
    ``flush`` is called once at end of stream; the buffer is closed afterwards.
    """

    __slots__ = ("_buffer", "_closed")

    def __init__(self) -> None:
        self._buffer = ""
        self._closed = False

    @property
    def pending(self) -> str:
        """Text received but not yet resolved into a complete frame."""
        return self._buffer

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, text: str) -> list[str]:
        """
        Append text and return the frames completed by it, in arrival order.

        The last segment after splitting (possibly empty) is kept as the new buffer state.
        """
        if self._closed:
            raise RuntimeError("FrameBuffer already flushed")
        if not text:
            return []

        *frames, self._buffer = (self._buffer + text).split(FRAME_DELIMITER)
        return frames

    def flush(self) -> str | None:
        """Close the buffer and return the trimmed residual frame, or None if it is blank."""
        if self._closed:
            raise RuntimeError("FrameBuffer already flushed")
        self._closed = True

        residual, self._buffer = self._buffer.strip(), ""
        return residual or None


def _unquote(content: str) -> str:
    # Una sola capa de comillas; sin des-escapado JSON.
    if content.startswith('"') and content.endswith('"'):
        return content[1:-1]
    return content


def iter_frame_payloads(frame: str) -> Iterator[str]:
    """
    Extract the payloads of one frame.

    Args:
        frame: A raw frame, possibly holding several newline-separated ``data:`` lines.

    Yields:
        One payload per ``data:`` line, in line order. Empty payloads and sentinels
        (``[DONE]``, ``[ERROR]``, ``null``) are dropped. Lines without the prefix are ignored.
    """
    for line in frame.split("\n"):
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            continue

        content = _unquote(line[len(DATA_PREFIX):].strip())
        if not content or content in SENTINELS:
            continue
        yield content


def iter_payloads_from_text(text: str) -> Iterator[str]:
    """
    Parse a complete SSE body held in memory.

    Equivalent to appending ``text`` to a fresh FrameBuffer and flushing it, so the
    result matches what an incremental decode of the same text yields for any chunking.
    """
    buffer = FrameBuffer()
    for frame in buffer.append(text):
        if frame.strip():
            yield from iter_frame_payloads(frame)

    residual = buffer.flush()
    if residual is not None:
        yield from iter_frame_payloads(residual)
