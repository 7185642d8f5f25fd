from __future__ import annotations

"""Minimal HTTP primitives used by the manual HTTP server.

The server hands an :class:`HttpRequest` to a handler and writes back the
:class:`HttpResponse` it returns. Nothing here depends on :mod:`http.server`.
"""

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Dict, Optional, Tuple


@dataclass(slots=True)
class HttpRequest:
    """Represents an HTTP/1.1 request received by the server."""

    method: str
    target: str
    path: str
    query: str
    headers: Dict[str, str]
    body: bytes
    client: Optional[Tuple[str, int]] = None


@dataclass(slots=True)
class HttpResponse:
    """Represents an HTTP/1.1 response produced by the handlers."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def ensure_content_length(self) -> None:
        """Guarantee the ``Content-Length`` header is present."""

        if "Content-Length" not in self.headers:
            self.headers["Content-Length"] = str(len(self.body))


def make_text_response(status: HTTPStatus | int, text: str) -> HttpResponse:
    body = text.encode()
    headers = {
        "Content-Type": "text/plain",
        "Content-Length": str(len(body)),
    }
    return HttpResponse(int(status), headers, body)


__all__ = [
    "HttpRequest",
    "HttpResponse",
    "make_text_response",
]
