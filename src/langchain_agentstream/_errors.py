from __future__ import annotations
from dataclasses import dataclass
from typing import Any


class AgentStreamError(RuntimeError):
    """Base error of the library."""


class StreamTransportError(AgentStreamError):
    """The connection failed while a stream was being read (network drop, aborted request)."""


@dataclass(slots=True)
class AgentStreamAPIError(AgentStreamError):
    """
    Non-success HTTP status returned by the service before streaming started.

    The backend wraps its errors in a uniform envelope:
    {
        "code": 400/401/500,
        "message": "...",
        "data": null
    }

    while errors raised by the web framework itself look like:
    {
        "timestamp": "2025-12-29T...",
        "status": 403,
        "error": "Forbidden",
        "message": "...",
        "path": "/api/stream/chat"
    }

    Both shapes are parsed into the optional fields below.
    """
    status_code: int
    message: str
    body: str | None = None

    error_code: int | None = None
    error: str | None = None
    path: str | None = None
    timestamp: str | None = None
    data: Any | None = None

    def __str__(self) -> str:
        parts = [f"AgentStreamAPIError(status_code={self.status_code}"]
        if self.error_code is not None and self.error_code != self.status_code:
            parts.append(f", code={self.error_code}")
        parts.append(f", message={self.message!r}")
        if self.path:
            parts.append(f", path={self.path!r}")
        if self.body:
            parts.append(f", body={len(self.body)} chars")
        parts.append(")")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Error as a dict, for structured logging."""
        return {
            "status_code": self.status_code,
            "message": self.message,
            "error_code": self.error_code,
            "error": self.error,
            "path": self.path,
            "timestamp": self.timestamp,
            "data": self.data,
            "body": self.body,
        }

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600

    @property
    def is_auth_error(self) -> bool:
        """True for 401 (missing/invalid token) or 403 (forbidden)."""
        return self.status_code in (401, 403)
