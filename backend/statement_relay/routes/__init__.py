# Routes package init
"""
Statement Relay: API Routes Package
===================================

Route Inventory:
    - analyze.py: POST /analyze-statement  (forward document pages to Gemini)
    - health.py:  GET  /health             (service health check)

Routes stay thin: they extract the body, call DocumentAnalysisService and
shape the response. Errors are rendered by the handlers in main.py.
"""
