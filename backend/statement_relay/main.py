"""
Statement Relay: FastAPI Application Factory
============================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes dependency wiring, middleware registration, route mounting,
       and lifecycle management in one place.
How:   Factory pattern: create_app() builds Settings → GeminiClient →
       ResilientCaller → DocumentAnalysisService and stores them on app.state.
Who:   Called by uvicorn (uvicorn statement_relay.main:app) and by tests, which
       pass their own Settings and a stub client.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  CORS → Request ID → Body Size Limit → Logging      │
    │                                                     │
    │  Routes:                                            │
    │  POST /analyze-statement        GET /health         │
    │                                                     │
    │  Exception Handlers:                                │
    │  ClientInputError→400 │ RelayError→status │ *→500   │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration; a missing key is logged (or fatal with
       REQUIRE_API_KEY=true)
    Shutdown:
    1. Log shutdown complete
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from statement_relay import __version__
from statement_relay.config import Settings, get_settings
from statement_relay.exceptions import ClientInputError, RelayError
from statement_relay.middleware.body_limit import BodySizeLimitMiddleware
from statement_relay.middleware.logging import RequestLoggingMiddleware
from statement_relay.middleware.request_id import RequestIDMiddleware, request_id_var
from statement_relay.routes import analyze, health
from statement_relay.services.analysis_service import DocumentAnalysisService
from statement_relay.services.gemini_client import GeminiClient
from statement_relay.services.llm_base import GenerationClient
from statement_relay.services.retry import ResilientCaller, RetryPolicy

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(log_level: str) -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Request IDs are part of the message ("[a1b2c3d4] ...") so the format
    works for loggers outside a request too.
    """
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Platform log collectors read stdout
        ],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings.log_level)
    logger.info("Statement Relay %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        if settings.require_api_key:
            raise
        # Keep serving: /health reports "degraded" and analysis requests
        # fail fast with service_not_configured
        logger.error("Continuing in degraded mode; analysis requests will be rejected.")

    logger.info(
        "Model=%s, retries=%d (backoff %.1fs x%.1f), max body=%dMB",
        settings.gemini_model,
        settings.retry_max_attempts,
        settings.retry_initial_backoff,
        settings.retry_backoff_multiplier,
        settings.max_request_bytes // (1024 * 1024),
    )
    logger.info("Server ready on %s:%d", settings.host, settings.port)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "") or request_id_var.get("")


def _error_body(message: str, code: str, rid: str, details=None) -> dict:
    body = {"error": message, "code": code, "request_id": rid}
    if details:
        body["details"] = details
    return body


# Machine-readable codes for framework-level HTTP errors
HTTP_ERROR_CODES = {
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
}


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        ClientInputError        → 400 (message says what to fix)
        RequestValidationError  → 400 (malformed body, bad base64, bad mimeType)
        HTTPException           → exc.status_code (404, 405, 413 from streamed bodies)
        RelayError (base)       → exc.status_code, fixed per-kind message
        Exception (fallback)    → 500

    Security: responses never contain downstream exception text or stack
    traces. The diagnostic context is logged server-side only.
    """

    @app.exception_handler(ClientInputError)
    async def handle_client_input_error(request: Request, exc: ClientInputError):
        rid = _request_id(request)
        logger.warning("[%s] Client input error: %s", rid, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, exc.code, rid),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        rid = _request_id(request)
        # Only location and message: the offending input may be megabytes of base64
        details = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        logger.warning("[%s] Invalid request body: %s", rid, details)
        return JSONResponse(
            status_code=400,
            content=_error_body("Invalid request body", ClientInputError.code, rid, details),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        rid = _request_id(request)
        code = HTTP_ERROR_CODES.get(exc.status_code, "http_error")
        logger.warning("[%s] HTTP %d: %s", rid, exc.status_code, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail), code, rid),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RelayError)
    async def handle_relay_error(request: Request, exc: RelayError):
        rid = _request_id(request)
        logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, exc.code, rid),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = _request_id(request)
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "An unexpected error occurred. Please try again later.",
                "internal_error",
                rid,
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    client: Optional[GenerationClient] = None,
    caller: Optional[ResilientCaller] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration; defaults to get_settings() (environment).
        client:   Generation client; defaults to a GeminiClient.
        caller:   Retry wrapper; defaults to one built from settings.

    Returns: Fully configured FastAPI instance ready to receive requests.
    """
    settings = settings or get_settings()
    if client is None:
        client = GeminiClient(settings)
    caller = caller or ResilientCaller(RetryPolicy.from_settings(settings))

    app = FastAPI(
        title="Statement Relay API",
        description=(
            "Forwards scanned document pages to Google Gemini together with a configured "
            "instruction and returns the model's raw text answer."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.generation_client = client
    app.state.analysis_service = DocumentAnalysisService(settings, client, caller)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added = first to execute
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_request_bytes)
    app.add_middleware(RequestIDMiddleware)

    # Wildcard origins cannot be combined with credentials
    origins = settings.cors_origins_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(analyze.router)
    app.include_router(health.router)

    return app


def run() -> None:
    """Console entry point: serve the app on HOST:PORT with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "statement_relay.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


# uvicorn expects `statement_relay.main:app` to be importable
app = create_app()
