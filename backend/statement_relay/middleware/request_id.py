"""
Statement Relay: Request ID Middleware
======================================

What:  Assigns a short correlation ID to each request and echoes it back.
Why:   Every log line of one analysis (gateway, retries, Gemini latency)
       carries the same ID, and error responses include it, so a user can
       quote it when reporting a failed upload.
How:   Reads X-Request-ID from the client or generates one, stores it in a
       ContextVar, and sets it on the response headers.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on the same event loop each see their own value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client-supplied IDs longer than this are ignored (they end up in every log line)
MAX_CLIENT_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Use the client's X-Request-ID header if present and reasonably short
        2. Otherwise generate an 8-char UUID prefix
        3. Store in ContextVar (loggers, services) and request.state (handlers)
        4. Add to response headers
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "")
        if not rid or len(rid) > MAX_CLIENT_ID_LENGTH:
            rid = str(uuid.uuid4())[:8]

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
