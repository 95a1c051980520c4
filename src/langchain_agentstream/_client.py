from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from langchain_agentstream._errors import AgentStreamAPIError

DEFAULT_BASE_URL = "http://localhost:8080"
EVENT_STREAM = "text/event-stream"


@dataclass(frozen=True, slots=True)
class HttpConfig:
    base_url: str = DEFAULT_BASE_URL
    timeout_s: float = 60.0


def _parse_error_response(
    status_code: int,
    body_text: str,
    content_type: str,
) -> AgentStreamAPIError:
    """
    Parse an error body into AgentStreamAPIError.

    If the body is not JSON or matches neither known envelope, the structured
    fields stay None and the raw text (if any) becomes the message.
    """
    message = "HTTP error"
    fields: dict[str, Any] = {}

    if body_text and body_text.strip():
        message = body_text

    if "application/json" not in content_type.lower():
        return AgentStreamAPIError(status_code=status_code, message=message, body=body_text)

    try:
        data = json.loads(body_text) if body_text else {}
    except (json.JSONDecodeError, ValueError):
        return AgentStreamAPIError(status_code=status_code, message=message, body=body_text)

    if not isinstance(data, dict):
        return AgentStreamAPIError(
            status_code=status_code,
            message=str(data) if data else message,
            body=body_text,
        )

    msg = data.get("message")
    if isinstance(msg, str) and msg.strip():
        message = msg.strip()

    # Envelope del backend: {"code", "message", "data"}
    code = data.get("code")
    if isinstance(code, int) and not isinstance(code, bool):
        fields["error_code"] = code
    if "data" in data:
        fields["data"] = data.get("data")

    # Error por defecto del framework: {"timestamp", "status", "error", "message", "path"}
    err = data.get("error")
    if isinstance(err, str) and err.strip():
        fields["error"] = err.strip()
        if not (isinstance(msg, str) and msg.strip()):
            message = err.strip()

    path = data.get("path")
    if isinstance(path, str) and path.strip():
        fields["path"] = path.strip()

    ts = data.get("timestamp")
    if isinstance(ts, str) and ts.strip():
        fields["timestamp"] = ts.strip()

    return AgentStreamAPIError(status_code=status_code, message=message, body=body_text, **fields)


class AgentStreamHttpClient:
    """
    Thin HTTPX wrapper with:
    - streaming JSON POSTs (SSE responses) via httpx.Client.stream / AsyncClient.stream
    - event-stream GETs for the push-event path
    - optional debug logging with the Authorization header redacted
    """

    def __init__(self, *, config: HttpConfig, token: str | None = None) -> None:
        self._config = config
        self._token = token
        self._debug_http = os.getenv("AGENTSTREAM_HTTP_DEBUG", "").lower() in {"1", "true", "yes", "on"}

        def _redact_headers(headers: dict[str, Any]) -> dict[str, Any]:
            out = dict(headers)
            for k in ("authorization", "Authorization"):
                if k in out:
                    out[k] = "Bearer ***REDACTED***"
            return out

        def _log_request(request: httpx.Request) -> None:
            if not self._debug_http:
                return
            logging.warning("HTTPX REQUEST %s %s", request.method, _redact_url(request.url))
            logging.warning("HTTPX REQUEST headers=%s", _redact_headers(dict(request.headers)))
            if request.content:
                try:
                    logging.warning("HTTPX REQUEST body=%s", request.content.decode("utf-8", "ignore"))
                except Exception:
                    logging.warning("HTTPX REQUEST body=(binary) len=%s", len(request.content))

        def _log_response_head(response: httpx.Response) -> bool:
            req = response.request
            logging.warning("HTTPX RESPONSE %s %s -> %s", req.method, _redact_url(req.url), response.status_code)
            logging.warning("HTTPX RESPONSE headers=%s", dict(response.headers))
            if EVENT_STREAM in response.headers.get("content-type", ""):
                logging.warning("HTTPX RESPONSE body=(event-stream; not auto-logged)")
                return False
            return True

        def _log_response_sync(response: httpx.Response) -> None:
            if not self._debug_http or not _log_response_head(response):
                return
            try:
                response.read()
                logging.warning("HTTPX RESPONSE body=%s", response.text)
            except Exception as e:
                logging.warning("HTTPX RESPONSE body=(unreadable) err=%r", e)

        async def _log_request_async(request: httpx.Request) -> None:
            _log_request(request)

        async def _log_response_async(response: httpx.Response) -> None:
            if not self._debug_http or not _log_response_head(response):
                return
            try:
                await response.aread()
                logging.warning("HTTPX RESPONSE body=%s", response.text)
            except Exception as e:
                logging.warning("HTTPX RESPONSE body=(unreadable) err=%r", e)

        EventHooksDict = dict[str, list[Callable[..., Any]]]

        hooks_sync: EventHooksDict = {"request": [_log_request], "response": [_log_response_sync]}
        hooks_async: EventHooksDict = {"request": [_log_request_async], "response": [_log_response_async]}

        self._client = httpx.Client(timeout=httpx.Timeout(config.timeout_s), event_hooks=hooks_sync)
        self._aclient = httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_s), event_hooks=hooks_async)

    @property
    def config(self) -> HttpConfig:
        return self._config

    def close(self) -> None:
        self._client.close()

    async def aclose(self) -> None:
        await self._aclient.aclose()

    def _url(self, path: str) -> str:
        return f"{self._config.base_url.rstrip('/')}{path}"

    def _headers(self, *, accept: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        if accept:
            headers["Accept"] = accept
        return headers

    @staticmethod
    def raise_for_status(resp: httpx.Response) -> None:
        """Check the status and raise a structured AgentStreamAPIError on non-2xx."""
        if 200 <= resp.status_code < 300:
            return

        body_text: str | None = None
        try:
            body_text = resp.text
        except Exception:
            body_text = None

        content_type = resp.headers.get("content-type", "")

        raise _parse_error_response(
            status_code=resp.status_code,
            body_text=body_text or "",
            content_type=content_type,
        )

    def check_stream_status(self, resp: httpx.Response) -> None:
        """Like raise_for_status() for a streaming response: reads the error body first."""
        if not 200 <= resp.status_code < 300:
            resp.read()
        self.raise_for_status(resp)

    async def acheck_stream_status(self, resp: httpx.Response) -> None:
        if not 200 <= resp.status_code < 300:
            await resp.aread()
        self.raise_for_status(resp)

    def stream_post_json(self, path: str, payload: dict[str, Any]) -> Any:
        """
        Return an httpx stream context manager for an SSE POST.

        Usage:
            with client.stream_post_json(...) as r:
                client.check_stream_status(r)
                for chunk in r.iter_bytes():
                    ...
        """
        headers = self._headers(accept=EVENT_STREAM)
        headers["Content-Type"] = "application/json"
        return self._client.stream("POST", self._url(path), headers=headers, json=payload)

    def astream_post_json(self, path: str, payload: dict[str, Any]) -> Any:
        """
        Return an async httpx stream context manager for an SSE POST.

        Usage:
            async with client.astream_post_json(...) as r:
                await client.acheck_stream_status(r)
                async for chunk in r.aiter_bytes():
                    ...
        """
        headers = self._headers(accept=EVENT_STREAM)
        headers["Content-Type"] = "application/json"
        return self._aclient.stream("POST", self._url(path), headers=headers, json=payload)

    def astream_get_events(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        """
        Return an async httpx stream context manager for an event-stream GET.

        The push-event endpoints take the token as a query parameter, the way a
        browser EventSource (which cannot set headers) would send it.
        """
        query = dict(params or {})
        if self._token:
            query["token"] = self._token
        headers = {"Accept": EVENT_STREAM, "Cache-Control": "no-cache"}
        return self._aclient.stream("GET", self._url(path), headers=headers, params=query)


def _redact_url(url: Any) -> Any:
    if not isinstance(url, httpx.URL) or "token" not in url.params:
        return url
    return url.copy_set_param("token", "***REDACTED***")
