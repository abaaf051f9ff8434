"""Structured access log: one JSON line per HTTP request."""

from __future__ import annotations

import logging
import time
from typing import Callable

from starlette.types import Message, Receive, Scope, Send

_QUIET_PATHS = frozenset({"/healthz"})


class StructuredLoggingMiddleware:
    """Pure ASGI middleware; fields travel as ``extra`` for the JSON formatter."""

    def __init__(self, app: Callable) -> None:
        self.app = app
        self.logger = logging.getLogger("tipping.access")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path") in _QUIET_PATHS:
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        client = scope.get("client")
        headers = dict(scope.get("headers") or [])

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                self.logger.info(
                    "request_completed",
                    extra={
                        "method": scope.get("method"),
                        "path": scope.get("path"),
                        "query": scope.get("query_string", b"").decode("latin-1"),
                        "status_code": message["status"],
                        "client_ip": client[0] if client else None,
                        "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                        "user_agent": headers.get(b"user-agent", b"").decode("latin-1") or None,
                    },
                )
            await send(message)

        await self.app(scope, receive, send_wrapper)
