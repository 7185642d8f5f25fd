"""Shared HTTP server primitives used across Python services."""

from .http import HttpRequest, HttpResponse, make_text_response
from .server import RequestHandler, bind_listener, run_server, serve_forever

__all__ = [
    "HttpRequest",
    "HttpResponse",
    "make_text_response",
    "RequestHandler",
    "bind_listener",
    "run_server",
    "serve_forever",
]
