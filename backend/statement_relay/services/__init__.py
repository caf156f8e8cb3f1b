# Services package init
"""
Statement Relay: Services Layer
===============================

Service Inventory:
    - GenerationClient (abstract): single-shot multimodal text generation
    - GeminiClient: concrete client using Google Gemini (google-generativeai)
    - ResilientCaller / RetryPolicy: bounded exponential backoff around one call
    - DocumentAnalysisService: the request gateway (validate → compose → call)

All services are built once in create_app() from the injected Settings and
hold no per-request state.
"""
