"""
Pull-based decoder for streamed HTTP response bodies.

A StreamDecoder is built fresh for every streaming call: it owns the incremental
text decoder and the FrameBuffer for that call and nothing else.
"""

from __future__ import annotations

import codecs
from typing import AsyncIterable, AsyncIterator, Callable, Iterable, Iterator

from langchain_agentstream._sse import FrameBuffer, iter_frame_payloads

PayloadCallback = Callable[[str], None]


def _utf8_decoder() -> codecs.IncrementalDecoder:
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


class StreamDecoder:
    """
    Turns raw body chunks into payloads.

    Multi-byte characters split across chunks are held by the incremental decoder
    until the next chunk completes them; frames split across chunks are held by the
    FrameBuffer. ``finish`` must be called once, when the body is exhausted.
    """

    def __init__(self, text_decoder: codecs.IncrementalDecoder | None = None) -> None:
        self._text_decoder = text_decoder or _utf8_decoder()
        self._frames = FrameBuffer()

    def feed(self, chunk: bytes) -> list[str]:
        """Decode one chunk and return the payloads of every frame it completed."""
        text = self._text_decoder.decode(chunk)
        return self._payloads(self._frames.append(text))

    def finish(self) -> list[str]:
        """Flush the text decoder and the residual frame at end of stream."""
        tail = self._text_decoder.decode(b"", final=True)
        payloads = self._payloads(self._frames.append(tail))

        residual = self._frames.flush()
        if residual is not None:
            payloads.extend(iter_frame_payloads(residual))
        return payloads

    @staticmethod
    def _payloads(frames: list[str]) -> list[str]:
        out: list[str] = []
        for frame in frames:
            if frame.strip():
                out.extend(iter_frame_payloads(frame))
        return out


def iter_stream_payloads(
    chunks: Iterable[bytes],
    *,
    text_decoder: codecs.IncrementalDecoder | None = None,
) -> Iterator[str]:
    """
    Yield payloads from a blocking byte-chunk source, e.g. ``httpx.Response.iter_bytes()``.

    Each chunk is fully processed before the next one is requested. Errors raised by
    the source propagate unchanged; payloads already yielded stay valid.
    """
    decoder = StreamDecoder(text_decoder)
    for chunk in chunks:
        yield from decoder.feed(chunk)
    yield from decoder.finish()


async def aiter_stream_payloads(
    chunks: AsyncIterable[bytes],
    *,
    text_decoder: codecs.IncrementalDecoder | None = None,
) -> AsyncIterator[str]:
    """Async version of iter_stream_payloads(), e.g. over ``httpx.Response.aiter_bytes()``."""
    decoder = StreamDecoder(text_decoder)
    async for chunk in chunks:
        for payload in decoder.feed(chunk):
            yield payload
    for payload in decoder.finish():
        yield payload


def decode_stream(
    chunks: Iterable[bytes],
    on_payload: PayloadCallback,
    *,
    text_decoder: codecs.IncrementalDecoder | None = None,
) -> None:
    """Drive a byte-chunk source to completion, calling ``on_payload`` once per payload, in order."""
    for payload in iter_stream_payloads(chunks, text_decoder=text_decoder):
        on_payload(payload)


async def adecode_stream(
    chunks: AsyncIterable[bytes],
    on_payload: PayloadCallback,
    *,
    text_decoder: codecs.IncrementalDecoder | None = None,
) -> None:
    async for payload in aiter_stream_payloads(chunks, text_decoder=text_decoder):
        on_payload(payload)
