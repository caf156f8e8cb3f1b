"""
Statement Relay: Request Body Size Middleware
=============================================

What:  Rejects requests whose body exceeds max_request_bytes.
Why:   Scanned statements are sent base64-encoded inside one JSON body, so the
       limit must be generous (50MB by default) but still bounded: the whole
       body is held in memory while it is parsed.
How:   Two checks, both answering 413 with the standard error envelope:
       1. Declared size: Content-Length is compared with the limit before
          any of the body is read.
       2. Actual size: `receive` is wrapped and counts body bytes as they
          arrive, so chunked uploads without Content-Length are cut off as
          soon as the running total passes the limit.

Why pure ASGI instead of BaseHTTPMiddleware:
    Only a raw ASGI middleware can replace the `receive` callable the
    route reads the body through.
"""

import logging

from fastapi import HTTPException
from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from statement_relay.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware:

    def __init__(self, app: ASGIApp, max_bytes: int):
        self.app = app
        self.max_bytes = max_bytes

    @property
    def too_large_message(self) -> str:
        max_mb = self.max_bytes / (1024 * 1024)
        return f"Request body exceeds maximum of {max_mb:.0f}MB. Send fewer or smaller images."

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = Headers(scope=scope).get("content-length")
        if declared is not None:
            try:
                size = int(declared)
            except ValueError:
                size = -1
            if size < 0:
                response = self._reject(400, "Invalid Content-Length header", "invalid_input")
                await response(scope, receive, send)
                return
            if size > self.max_bytes:
                self._log_rejection(scope, size)
                response = self._reject(413, self.too_large_message, "payload_too_large")
                await response(scope, receive, send)
                return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    self._log_rejection(scope, received)
                    # Raised inside the route's body read; rendered by the
                    # HTTPException handler in main.py
                    raise HTTPException(status_code=413, detail=self.too_large_message)
            return message

        await self.app(scope, limited_receive, send)

    def _log_rejection(self, scope: Scope, size: int) -> None:
        logger.warning(
            "Rejected %s %s: body of %d bytes exceeds limit of %d",
            scope.get("method", ""),
            scope.get("path", ""),
            size,
            self.max_bytes,
        )

    @staticmethod
    def _reject(status_code: int, message: str, code: str) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": message, "code": code, "request_id": request_id_var.get("")},
        )
