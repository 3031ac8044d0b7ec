"""Request logging middleware (pure ASGI)."""

from __future__ import annotations

import logging
import time

from starlette.types import ASGIApp, Receive, Scope, Send

from sahhageo.services.call_context import call_scope, get_call_id
from sahhageo.services.metrics import RequestMetrics, request_metrics

logger = logging.getLogger("sahhageo.access")


class RequestLoggingMiddleware:
    """Log ``method path status_code latency_ms`` for every request.

    Adds ``X-Response-Time-Ms`` and ``X-Request-ID`` headers to every
    response and records status codes and latency in ``RequestMetrics``.
    Query params are not logged; profile ids appear only in the path.
    """

    def __init__(self, app: ASGIApp, metrics: RequestMetrics | None = None) -> None:
        self.app = app
        self.metrics = metrics or request_metrics

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming_id = ""
        for header_name, header_value in scope.get("headers", []):
            if header_name == b"x-request-id":
                incoming_id = header_value.decode("latin-1")
                break

        with call_scope(incoming_id or None) as cid:
            await self._handle(scope, receive, send, cid)

    async def _handle(self, scope: Scope, receive: Receive, send: Send, cid: str) -> None:
        start = time.perf_counter()
        status_code = 500  # default if we never see a response start

        async def send_wrapper(message: dict) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
                headers = list(message.get("headers", []))
                headers.append((b"x-response-time-ms", str(elapsed_ms).encode()))
                headers.append((b"x-request-id", cid.encode()))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.info(
                "%s %s %s %.2fms [%s]",
                scope.get("method", ""),
                scope.get("path", ""),
                status_code,
                elapsed_ms,
                get_call_id()[:12],
            )
            self.metrics.inc_request(status_code)
            self.metrics.record_latency(elapsed_ms)
