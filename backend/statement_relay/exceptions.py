"""
Statement Relay: Custom Exception Hierarchy
===========================================

What:  Application-specific exceptions for every failure the relay can report.
Why:   Each exception knows its HTTP status and machine-readable code, so the
       global handlers in main.py can render a consistent JSON error envelope.
How:   Each exception carries a caller-safe message and a diagnostic context
       dict. The message may be returned to the client; the context is only
       ever written to the log.
Who:   Raised by the gateway service and the resilient caller; caught by the
       handlers registered in main.py.

Exception Hierarchy:
    RelayError (base)
    ├── ClientInputError            → 400 invalid_input
    ├── ServiceConfigurationError   → 503 service_not_configured
    ├── TransientServiceError       → 503 upstream_unavailable
    │   └── UpstreamTransportError  → 503 upstream_unreachable
    ├── PermanentServiceError       → 502 upstream_rejected
    └── EmptyResultError            → 502 empty_result

Error exposure:
    Only the message and code of an exception reach the caller. Messages for
    server-side failures are fixed per class and never contain downstream
    exception text; that text goes into `context` and from there to the log.
"""

from typing import Any, Dict, Optional


class RelayError(Exception):
    """
    Base exception for all relay errors.

    Attributes:
        message:     Caller-facing description (safe to return in API response)
        context:     Diagnostic info (logged but NOT returned to client)
        code:        Machine-readable error kind
        status_code: HTTP status used by the global handler
    """

    code = "relay_error"
    status_code = 500
    default_message = "The document could not be analyzed. Please try again later."

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.context = context or {}
        super().__init__(self.message)


class ClientInputError(RelayError):
    """
    Raised when the request itself is unusable and retrying cannot help.

    When:    Missing/empty image list, element without data or media type,
             undecodable base64, unsupported media type, too many parts.
    HTTP:    400 Bad Request. No outbound call is made.
    """

    code = "invalid_input"
    status_code = 400
    default_message = "No image data provided"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class ServiceConfigurationError(RelayError):
    """
    Raised when the relay cannot reach Gemini because it is not configured.

    When:    GEMINI_API_KEY is missing and the service was started in degraded mode.
    HTTP:    503 Service Unavailable. No outbound call is made.
    """

    code = "service_not_configured"
    status_code = 503
    default_message = "The analysis service is not configured. Please contact the operator."


class TransientServiceError(RelayError):
    """
    Raised when Gemini stayed overloaded or rate-limited for every attempt.

    HTTP:    503 Service Unavailable (the client may retry later).
    Context: attempts made, last upstream status, last upstream error text.
    """

    code = "upstream_unavailable"
    status_code = 503
    default_message = "The analysis service is busy. Please try again in a moment."


class UpstreamTransportError(TransientServiceError):
    """Raised when Gemini could not be reached at all (connection error, timeout)."""

    code = "upstream_unreachable"
    default_message = "The analysis service could not be reached. Please try again in a moment."


class PermanentServiceError(RelayError):
    """
    Raised when Gemini rejected the request, or failed in a way retries will not fix.

    When:    Invalid argument, permission denied, unknown model, unexpected SDK error.
    HTTP:    502 Bad Gateway. Never retried.
    """

    code = "upstream_rejected"
    status_code = 502
    default_message = "The analysis service rejected the document."


class EmptyResultError(RelayError):
    """
    Raised when Gemini answered successfully but produced no usable text.

    When:    No candidates (e.g. prompt blocked by safety filters) or only empty parts.
    HTTP:    502 Bad Gateway.
    """

    code = "empty_result"
    status_code = 502
    default_message = "The analysis service returned no text for this document."
