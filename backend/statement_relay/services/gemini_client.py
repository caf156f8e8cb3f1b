"""
Statement Relay: Google Gemini Client
=====================================

What:  Concrete GenerationClient backed by the google-generativeai SDK.
Why:   Gemini reads multi-page scans (images and PDFs) inline, in one call.
How:   Sends the composed contents (instruction + inline blobs) with
       generate_content_async and pulls the text out of the first candidate.
Who:   Created once by create_app(); used by DocumentAnalysisService.

Single attempt only:
    This client never retries. SDK errors (google.api_core.exceptions.*)
    propagate untouched; their HTTP `code` is what ResilientCaller uses to
    tell "overloaded, try again" from "invalid request, give up".
"""

import asyncio
import logging
import time
from typing import Any, Optional

import google.generativeai as genai

from statement_relay.config import Settings
from statement_relay.exceptions import EmptyResultError
from statement_relay.models.generation import GenerationRequest, GenerationResult
from statement_relay.services.llm_base import GenerationClient

logger = logging.getLogger(__name__)


def extract_text(response: Any) -> str:
    """
    Returns the text of the first candidate, joining all of its text parts.

    Mirrors what the SDK's `response.text` accessor returns, without raising
    ValueError when there are no candidates or parts.

    Raises:
        EmptyResultError: No candidate, or no non-empty text part.
    """
    candidates = list(getattr(response, "candidates", None) or [])
    if not candidates:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None) if feedback else None
        raise EmptyResultError(
            context={"reason": "no_candidates", "block_reason": str(block_reason or "")}
        )

    first = candidates[0]
    content = getattr(first, "content", None)
    parts = list(getattr(content, "parts", None) or [])
    text = "".join(getattr(part, "text", "") or "" for part in parts)
    if not text:
        raise EmptyResultError(
            context={
                "reason": "no_text",
                "finish_reason": str(getattr(first, "finish_reason", "") or ""),
            }
        )
    return text


class GeminiClient(GenerationClient):
    """
    Google Gemini implementation of GenerationClient.

    The SDK authenticates through module-level configuration; the key comes
    from the injected Settings, and configure() is skipped entirely when no
    key is set so the app can still start in degraded mode.
    """

    def __init__(self, settings: Settings, model: Optional[Any] = None):
        self.settings = settings
        self.model_name = settings.gemini_model
        self.request_timeout = settings.request_timeout

        if settings.api_key_configured:
            genai.configure(api_key=settings.gemini_api_key)

        # Reused across requests; holds no per-request state
        self.model = model if model is not None else genai.GenerativeModel(settings.gemini_model)

        logger.info(
            "GeminiClient initialized with model=%s, timeout=%.0fs",
            self.model_name,
            self.request_timeout,
        )

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        start_time = time.perf_counter()

        response = await self.model.generate_content_async(
            request.to_contents(),
            request_options={"timeout": self.request_timeout},
        )
        text = extract_text(response)

        logger.info(
            "Gemini responded in %.0fms with %d chars",
            (time.perf_counter() - start_time) * 1000,
            len(text),
        )
        return GenerationResult(text=text, model=self.model_name)

    async def health_check(self) -> bool:
        """
        Check if Gemini is reachable by listing models (costs no tokens).

        list_models() is a blocking iterator, so it runs in a worker thread.
        """
        if not self.settings.api_key_configured:
            return False
        try:
            names = await asyncio.to_thread(lambda: [m.name for m in genai.list_models()])
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False

        target = f"models/{self.model_name}"
        if target not in names:
            logger.warning("Configured model %s not found in available models", target)
        return True
