import asyncio
import time
from typing import AsyncGenerator

import httpx
import pytest

from langchain_agentstream._client import AgentStreamHttpClient
from langchain_agentstream._errors import AgentStreamAPIError
from langchain_agentstream._push import (
    CompletionReason,
    EventSourceConnection,
    consume_push_events,
    strip_push_data,
)


class FakeConnection:
    def __init__(self, messages: list[str], *, hang: bool = False, error: BaseException | None = None):
        self._messages = messages
        self._hang = hang
        self._error = error
        self.close_calls = 0

    async def messages(self) -> AsyncGenerator[str, None]:
        for m in self._messages:
            yield m
        if self._error is not None:
            raise self._error
        if self._hang:
            # Transporte abierto sin señal de fin.
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.close_calls += 1


class Recorder:
    def __init__(self) -> None:
        self.payloads: list[str] = []
        self.completed = 0
        self.errors: list[BaseException] = []

    def on_payload(self, text: str) -> None:
        self.payloads.append(text)

    def on_complete(self) -> None:
        self.completed += 1

    def on_error(self, err: BaseException) -> None:
        self.errors.append(err)


def test_strip_push_data_removes_one_prefix_only() -> None:
    assert strip_push_data("data: hola") == "hola"
    assert strip_push_data("data:hola") == "hola"
    assert strip_push_data("data:   \thola") == "hola"
    assert strip_push_data("data: data: x") == "data: x"
    assert strip_push_data("hola data: x") == "hola data: x"


@pytest.mark.asyncio
async def test_consume_filters_empty_prefix_only_and_done() -> None:
    conn = FakeConnection(["", "data: Hola", "data: ", "mundo", "data:[DONE]", "[DONE]", "null"])
    rec = Recorder()

    reason = await consume_push_events(conn, rec.on_payload, rec.on_complete, rec.on_error)

    # El camino push solo filtra [DONE]; null es contenido.
    assert rec.payloads == ["Hola", "mundo", "null"]
    assert reason is CompletionReason.EOF
    assert rec.completed == 1
    assert rec.errors == []
    assert conn.close_calls == 1


@pytest.mark.asyncio
async def test_consume_cutoff_forces_completion() -> None:
    conn = FakeConnection(["data: parcial"], hang=True)
    rec = Recorder()

    started = time.monotonic()
    reason = await consume_push_events(conn, rec.on_payload, rec.on_complete, rec.on_error, cutoff_s=0.05)
    elapsed = time.monotonic() - started

    assert reason is CompletionReason.CUTOFF
    assert rec.payloads == ["parcial"]
    assert rec.completed == 1
    assert rec.errors == []
    assert conn.close_calls == 1
    assert elapsed < 5


@pytest.mark.asyncio
async def test_consume_transport_error_calls_on_error_without_complete() -> None:
    boom = httpx.ReadError("connection reset")
    conn = FakeConnection(["data: uno"], error=boom)
    rec = Recorder()

    reason = await consume_push_events(conn, rec.on_payload, rec.on_complete, rec.on_error)

    assert reason is CompletionReason.ERROR
    assert rec.payloads == ["uno"]
    assert rec.errors == [boom]
    assert rec.completed == 0
    assert conn.close_calls == 1


@pytest.mark.asyncio
async def test_consume_transport_error_reraised_without_handler() -> None:
    conn = FakeConnection([], error=httpx.RemoteProtocolError("peer closed"))

    with pytest.raises(httpx.RemoteProtocolError):
        await consume_push_events(conn, lambda _t: None)

    assert conn.close_calls == 1


@pytest.mark.asyncio
async def test_consume_closes_connection_when_callback_raises() -> None:
    conn = FakeConnection(["data: x"], hang=True)

    def on_payload(_text: str) -> None:
        raise ValueError("callback roto")

    with pytest.raises(ValueError):
        await consume_push_events(conn, on_payload, cutoff_s=5)

    assert conn.close_calls == 1


@pytest.mark.asyncio
async def test_consume_closes_connection_on_unexpected_error() -> None:
    rec = Recorder()
    conn = FakeConnection([], error=OSError("socket roto"))

    with pytest.raises(OSError):
        await consume_push_events(conn, rec.on_payload, rec.on_complete, rec.on_error)

    # Solo los errores de transporte van a on_error.
    assert rec.errors == []
    assert rec.completed == 0
    assert conn.close_calls == 1


@pytest.mark.asyncio
async def test_consume_callbacks_are_optional() -> None:
    got: list[str] = []

    reason = await consume_push_events(FakeConnection(["data: x"]), got.append)

    assert reason is CompletionReason.EOF
    assert got == ["x"]


def _event_stream_client(body: bytes, status_code: int = 200) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if status_code != 200:
            return httpx.Response(status_code, json={"code": status_code, "message": "nope", "data": None})
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_event_source_connection_dispatches_messages() -> None:
    body = (
        b": keepalive\n"
        b"event: message\n"
        b"data:data: Hola\n\n"
        b"id: 2\r\n"
        b"data: linea 1\r\n"
        b"data: linea 2\r\n\r\n"
        b"retry: 1000\n\n"
        b"data: sin cierre"
    )
    client = _event_stream_client(body)
    conn = EventSourceConnection(client.stream("GET", "http://test/api/stream/chat"))

    got = [m async for m in conn.messages()]
    await conn.aclose()
    await client.aclose()

    assert got == ["data: Hola", "linea 1\nlinea 2", "sin cierre"]


@pytest.mark.asyncio
async def test_event_source_connection_with_consumer() -> None:
    body = b"data:data: Hola\n\ndata:data:  mundo\n\ndata:data: [DONE]\n\n"
    client = _event_stream_client(body)
    conn = EventSourceConnection(client.stream("GET", "http://test/api/stream/chat"))
    rec = Recorder()

    reason = await consume_push_events(conn, rec.on_payload, rec.on_complete, rec.on_error)
    await client.aclose()

    assert rec.payloads == ["Hola", "mundo"]
    assert reason is CompletionReason.EOF


@pytest.mark.asyncio
async def test_event_source_connection_status_error_goes_to_on_error() -> None:
    client = _event_stream_client(b"", status_code=405)
    conn = EventSourceConnection(
        client.stream("GET", "http://test/api/stream/chat"),
        check_status=_acheck(AgentStreamHttpClient.raise_for_status),
    )
    rec = Recorder()

    reason = await consume_push_events(conn, rec.on_payload, rec.on_complete, rec.on_error)
    await client.aclose()

    assert reason is CompletionReason.ERROR
    assert len(rec.errors) == 1
    err = rec.errors[0]
    assert isinstance(err, AgentStreamAPIError)
    assert err.status_code == 405
    assert err.message == "nope"
    assert rec.payloads == []


def _acheck(raise_for_status):
    async def check(resp: httpx.Response) -> None:
        await resp.aread()
        raise_for_status(resp)

    return check


@pytest.mark.asyncio
async def test_event_source_connection_close_before_open_is_noop() -> None:
    client = _event_stream_client(b"data: x\n\n")
    conn = EventSourceConnection(client.stream("GET", "http://test/x"))

    await conn.aclose()
    got = [m async for m in conn.messages()]
    await client.aclose()

    assert got == []


@pytest.mark.asyncio
async def test_event_source_connection_cutoff_releases_response() -> None:
    async def body() -> AsyncGenerator[bytes, None]:
        yield b"data:data: parcial\n\n"
        # El servidor deja la conexión abierta sin más datos.
        await asyncio.Event().wait()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body())

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    conn = EventSourceConnection(client.stream("GET", "http://test/api/stream/chat"))
    rec = Recorder()

    reason = await consume_push_events(conn, rec.on_payload, rec.on_complete, rec.on_error, cutoff_s=0.05)

    assert reason is CompletionReason.CUTOFF
    assert rec.payloads == ["parcial"]
    assert rec.completed == 1
    assert conn._response is not None
    assert conn._response.is_closed

    await client.aclose()
