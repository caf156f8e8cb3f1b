# Middleware package init
"""
Statement Relay: Middleware Package
===================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [CORS] → [Request ID] → [Body Size Limit] → [Logging] → [GZip] → Route

    1. CORS outermost, so preflights are answered early and even 413
       rejections carry the headers a browser needs to read them
    2. Request ID next, so every response carries X-Request-ID
    3. Body size limit checks Content-Length and counts streamed bytes
    4. Logging records status and duration of everything that got this far
"""
