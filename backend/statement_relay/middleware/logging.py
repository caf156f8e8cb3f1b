"""
Statement Relay: Request Logging Middleware
===========================================

What:  One access-log line per request with status and duration.
Why:   POST /analyze-statement can take tens of seconds when Gemini is slow
       or retries kick in; the duration in the access log shows it at a glance.

What we log vs what we DON'T log (privacy):
    ✅ Log: method, path, status, duration, client IP, request ID, body size
    ❌ Don't log: request body (bank statements are sensitive), response text
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from statement_relay.middleware.request_id import request_id_var

logger = logging.getLogger("statement_relay.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and duration for each request.

    Level by status class: 5xx → ERROR, 4xx → WARNING, otherwise INFO.
    Health checks are not logged.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()

        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        path = request.url.path

        if path == "/health":
            return await call_next(request)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        rid = request_id_var.get("")

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s (%s bytes in)",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            request.headers.get("content-length", "?"),
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
