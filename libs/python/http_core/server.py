from __future__ import annotations

"""Manual HTTP/1.1 server implemented directly over sockets."""

import errno
import logging
import socket
import threading
import time
from contextlib import suppress
from http import HTTPStatus
from typing import Callable, Optional, Protocol, Tuple
from urllib.parse import urlsplit

from .http import HttpRequest, HttpResponse, make_text_response

MAX_HEADER_BYTES = 16 * 1024
MAX_BODY_BYTES = 5 * 1024 * 1024
CONNECTION_TIMEOUT = 30
ACCEPT_RETRY_DELAY = 0.1
# out of descriptors or buffers; retrying at once would spin
_RESOURCE_ERRNOS = {errno.EMFILE, errno.ENFILE, errno.ENOBUFS, errno.ENOMEM}

logger = logging.getLogger(__name__)


class RequestHandler(Protocol):
    def handle(self, request: HttpRequest) -> HttpResponse:
        """Process ``request`` and return an HTTP response."""


def bind_listener(host: str, port: int, backlog: int = 128) -> socket.socket:
    """Create a listening TCP socket; ``port`` 0 lets the OS pick one."""

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(backlog)
    except OSError:
        sock.close()
        raise
    return sock


def serve_forever(sock: socket.socket, handler: RequestHandler) -> None:
    """Accept connections on ``sock`` until it is closed.

    Every connection is served on its own daemon thread, so ``handler`` must
    tolerate concurrent calls. Errors from ``accept`` on an open listener are
    logged and the loop keeps going.
    """

    while True:
        try:
            conn, addr = sock.accept()
        except OSError as exc:
            if sock.fileno() == -1:
                return
            logger.warning("accept failed: %s", exc)
            if exc.errno in _RESOURCE_ERRNOS:
                time.sleep(ACCEPT_RETRY_DELAY)
            continue
        thread = threading.Thread(target=_serve_connection, args=(conn, addr, handler), daemon=True)
        thread.start()


def run_server(
    handler: RequestHandler,
    port: int,
    host: str = "0.0.0.0",
    announce: Optional[Callable[[str, int], None]] = None,
) -> None:
    """Start a blocking TCP server that delegates to ``handler``."""

    with bind_listener(host, port) as sock:
        bound_port = sock.getsockname()[1]
        logger.info("listening on %s:%s", host, bound_port)
        if announce is not None:
            announce(host, bound_port)
        try:
            serve_forever(sock, handler)
        except KeyboardInterrupt:
            logger.info("interrupted, shutting down")


def _serve_connection(conn: socket.socket, addr: Tuple[str, int], handler: RequestHandler) -> None:
    with conn:
        conn.settimeout(CONNECTION_TIMEOUT)
        try:
            request = _read_request(conn, addr)
            if request is None:
                return
        except ValueError as exc:
            _send_simple_response(conn, HTTPStatus.BAD_REQUEST, str(exc))
            return
        except Exception:  # noqa: BLE001
            _send_simple_response(conn, HTTPStatus.BAD_REQUEST, "Malformed request")
            return

        try:
            response = handler.handle(request)
        except Exception:  # noqa: BLE001
            logger.exception("handler failed for %s %s", request.method, request.path)
            response = make_text_response(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error\n")

        try:
            _send_response(conn, request, response)
        except OSError as exc:
            logger.debug("could not write response to %s: %s", addr, exc)


def _read_request(conn: socket.socket, addr: Tuple[str, int]) -> HttpRequest | None:
    buffer = bytearray()
    while b"\r\n\r\n" not in buffer:
        chunk = conn.recv(4096)
        if not chunk:
            return None
        buffer.extend(chunk)
        if len(buffer) > MAX_HEADER_BYTES:
            raise ValueError("header section too large")

    header_part, body_part = buffer.split(b"\r\n\r\n", 1)
    lines = header_part.split(b"\r\n")
    request_line = lines[0].decode("iso-8859-1").strip()
    parts = request_line.split()
    if len(parts) != 3:
        raise ValueError("invalid request line")
    method, target, version = parts
    method = method.upper()
    if version not in {"HTTP/1.1", "HTTP/1.0"}:
        raise ValueError("unsupported HTTP version")

    headers: dict[str, str] = {}
    for raw in lines[1:]:
        if not raw:
            continue
        if b":" not in raw:
            raise ValueError("invalid header")
        name, value = raw.split(b":", 1)
        headers[name.decode("ascii", "ignore").strip().lower()] = value.decode("iso-8859-1").strip()

    content_length = 0
    if "content-length" in headers:
        with suppress(ValueError):
            content_length = int(headers["content-length"]) if headers["content-length"] else 0
    content_length = max(0, min(content_length, MAX_BODY_BYTES))

    body = bytearray(body_part[:content_length])
    while len(body) < content_length:
        chunk = conn.recv(min(65536, content_length - len(body)))
        if not chunk:
            break
        body.extend(chunk)

    parsed = urlsplit(target)
    path = parsed.path or "/"

    return HttpRequest(
        method=method,
        target=target,
        path=path,
        query=parsed.query,
        headers=headers,
        body=bytes(body[:content_length]),
        client=addr,
    )


def _send_response(conn: socket.socket, request: HttpRequest, response: HttpResponse) -> None:
    response.headers.setdefault("Connection", "close")
    response.ensure_content_length()
    try:
        reason = HTTPStatus(response.status).phrase
    except ValueError:
        reason = "OK"
    status_line = f"HTTP/1.1 {int(response.status)} {reason}\r\n"
    header_lines = "".join(f"{name.title()}: {value}\r\n" for name, value in response.headers.items())
    conn.sendall(status_line.encode("iso-8859-1"))
    conn.sendall(header_lines.encode("iso-8859-1"))
    conn.sendall(b"\r\n")
    if request.method != "HEAD" and response.body:
        conn.sendall(response.body)


def _send_simple_response(conn: socket.socket, status: HTTPStatus, message: str) -> None:
    payload = f"{message}\n".encode()
    status_line = f"HTTP/1.1 {int(status)} {status.phrase}\r\n"
    headers = (
        "Content-Type: text/plain\r\n"
        f"Content-Length: {len(payload)}\r\n"
        "Connection: close\r\n"
    )
    with suppress(OSError):
        conn.sendall(status_line.encode("iso-8859-1"))
        conn.sendall(headers.encode("iso-8859-1"))
        conn.sendall(b"\r\n")
        conn.sendall(payload)
