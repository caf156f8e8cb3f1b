"""
Statement Relay: Application Package
====================================

What:  HTTP relay that forwards scanned document pages to Google Gemini and
       returns the model's raw text answer.

Architecture Note:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   DocumentAnalysisService (gateway) │  ← validation, composition
    ├─────────────────────────────────────┤
    │   ResilientCaller (retry/backoff)   │  ← transient vs permanent failures
    ├─────────────────────────────────────┤
    │   GeminiClient (outbound SDK call)  │  ← one attempt, text extraction
    └─────────────────────────────────────┘

    Nothing is persisted; every object below the routes is either immutable
    configuration or request-scoped.
"""

__version__ = "1.0.0"
