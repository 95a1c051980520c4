"""
Streaming endpoints of the agent service.

Every call opens its own HTTP stream and its own decoder, so concurrent calls on the
same client never share buffered state. Payloads are delivered in arrival order,
either to a callback (``stream_*``) or as an iterator (``iter_chat``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Iterator

import httpx
from pydantic import BaseModel, ConfigDict, Field

from langchain_agentstream._auth import AuthConfig
from langchain_agentstream._client import DEFAULT_BASE_URL, AgentStreamHttpClient, HttpConfig
from langchain_agentstream._decoder import aiter_stream_payloads, iter_stream_payloads
from langchain_agentstream._errors import StreamTransportError
from langchain_agentstream._push import (
    DEFAULT_CUTOFF_S,
    CompletionReason,
    EventSourceConnection,
    consume_push_events,
)

CHAT_STREAM_PATH = "/api/stream/chat"
CODE_STREAM_PATH = "/api/stream/code"
ANALYSIS_STREAM_PATH = "/api/stream/analysis"
TRANSLATE_STREAM_PATH = "/api/stream/translate"

PayloadCallback = Callable[[str], None]


class ChatStreamRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    message: str


class CodeStreamRequest(BaseModel):
    """Body of /api/stream/code. The service falls back to Java when no language is sent."""
    model_config = ConfigDict(extra="forbid")
    requirement: str
    language: str = "Java"


class AnalysisStreamRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    text: str


class TranslationStreamRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)
    text: str
    target_language: str = Field(default="English", alias="targetLanguage")


@dataclass(slots=True)
class AgentStreamClient:
    """
    Sync and async access to the /api/stream/* endpoints.

    Transport failures while a stream is open surface as StreamTransportError; a
    non-2xx status surfaces as AgentStreamAPIError before any payload is delivered.
    Nothing is retried.
    """
    token: str | None = None
    base_url: str = DEFAULT_BASE_URL
    timeout_s: float = 60.0

    _http: AgentStreamHttpClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        auth = AuthConfig.from_env_or_value(self.token)
        self._http = AgentStreamHttpClient(
            config=HttpConfig(base_url=self.base_url, timeout_s=self.timeout_s),
            token=auth.token,
        )

    def close(self) -> None:
        self._http.close()

    async def aclose(self) -> None:
        await self._http.aclose()

    def __enter__(self) -> AgentStreamClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    async def __aenter__(self) -> AgentStreamClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Pull path
    # ------------------------------------------------------------------

    def _iter_stream(self, path: str, request: BaseModel) -> Iterator[str]:
        try:
            with self._http.stream_post_json(path, request.model_dump(by_alias=True)) as r:
                self._http.check_stream_status(r)
                yield from iter_stream_payloads(r.iter_bytes())
        except (httpx.TransportError, httpx.StreamError) as e:
            raise StreamTransportError(f"Stream {path} failed: {e!r}") from e

    async def _aiter_stream(self, path: str, request: BaseModel) -> AsyncIterator[str]:
        try:
            async with self._http.astream_post_json(path, request.model_dump(by_alias=True)) as r:
                await self._http.acheck_stream_status(r)
                async for payload in aiter_stream_payloads(r.aiter_bytes()):
                    yield payload
        except (httpx.TransportError, httpx.StreamError) as e:
            raise StreamTransportError(f"Stream {path} failed: {e!r}") from e

    def iter_chat(self, message: str) -> Iterator[str]:
        return self._iter_stream(CHAT_STREAM_PATH, ChatStreamRequest(message=message))

    def aiter_chat(self, message: str) -> AsyncIterator[str]:
        return self._aiter_stream(CHAT_STREAM_PATH, ChatStreamRequest(message=message))

    def stream_chat(self, message: str, on_chunk: PayloadCallback) -> None:
        """
        Stream a chat answer.

        Args:
            message: User message.
            on_chunk: Called once per content fragment, in order. Concatenation is up to the caller.

        Example:
            >>> client = AgentStreamClient()
            >>> client.stream_chat("Hola", lambda t: print(t, end="", flush=True))
        """
        for payload in self.iter_chat(message):
            on_chunk(payload)

    async def astream_chat(self, message: str, on_chunk: PayloadCallback) -> None:
        async for payload in self.aiter_chat(message):
            on_chunk(payload)

    def stream_code(self, requirement: str, on_chunk: PayloadCallback, *, language: str = "Java") -> None:
        """Stream generated code for ``requirement`` in ``language``."""
        request = CodeStreamRequest(requirement=requirement, language=language)
        for payload in self._iter_stream(CODE_STREAM_PATH, request):
            on_chunk(payload)

    async def astream_code(self, requirement: str, on_chunk: PayloadCallback, *, language: str = "Java") -> None:
        request = CodeStreamRequest(requirement=requirement, language=language)
        async for payload in self._aiter_stream(CODE_STREAM_PATH, request):
            on_chunk(payload)

    def stream_analysis(self, text: str, on_chunk: PayloadCallback) -> None:
        for payload in self._iter_stream(ANALYSIS_STREAM_PATH, AnalysisStreamRequest(text=text)):
            on_chunk(payload)

    async def astream_analysis(self, text: str, on_chunk: PayloadCallback) -> None:
        async for payload in self._aiter_stream(ANALYSIS_STREAM_PATH, AnalysisStreamRequest(text=text)):
            on_chunk(payload)

    def stream_translation(self, text: str, on_chunk: PayloadCallback, *, target_language: str = "English") -> None:
        request = TranslationStreamRequest(text=text, target_language=target_language)
        for payload in self._iter_stream(TRANSLATE_STREAM_PATH, request):
            on_chunk(payload)

    async def astream_translation(
        self, text: str, on_chunk: PayloadCallback, *, target_language: str = "English"
    ) -> None:
        request = TranslationStreamRequest(text=text, target_language=target_language)
        async for payload in self._aiter_stream(TRANSLATE_STREAM_PATH, request):
            on_chunk(payload)

    # ------------------------------------------------------------------
    # Push path
    # ------------------------------------------------------------------

    async def listen_chat(
        self,
        message: str,
        on_message: PayloadCallback,
        on_complete: Callable[[], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        *,
        cutoff_s: float = DEFAULT_CUTOFF_S,
    ) -> CompletionReason:
        """
        Chat over the push-event endpoint.

        The connection is force-closed after ``cutoff_s`` seconds and reported through
        ``on_complete`` even if the answer was still arriving (see CompletionReason.CUTOFF).
        """
        connection = EventSourceConnection(
            self._http.astream_get_events(CHAT_STREAM_PATH, params={"message": message}),
            check_status=self._http.acheck_stream_status,
        )
        return await consume_push_events(
            connection, on_message, on_complete, on_error, cutoff_s=cutoff_s
        )
