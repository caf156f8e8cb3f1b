"""
Statement Relay: Document Analysis Service (Request Gateway)
============================================================

What:  The one business operation of the relay: analyze a document.
Why:   Keeps validation, composition and error translation out of the route,
       so they can be tested without HTTP.
How:   validate parts → compose GenerationRequest → ResilientCaller →
       GenerationClient → raw text.

Orchestration Flow (POST /analyze-statement):
    ┌──────────┐    ┌────────────┐    ┌───────────────┐    ┌──────────┐
    │  Route   │───▶│  Validate  │───▶│ Resilient     │───▶│  Gemini  │
    │  (JSON)  │    │  & Compose │    │ Caller (retry)│    │  Client  │
    └──────────┘    └────────────┘    └───────────────┘    └──────────┘

Failure translation:
    Everything below the gateway leaves as a RelayError subclass. Anything
    else is logged with its traceback and reported as PermanentServiceError,
    so the caller always gets the JSON error envelope.
"""

import logging
from typing import Optional, Sequence

from statement_relay.config import Settings
from statement_relay.exceptions import (
    ClientInputError,
    PermanentServiceError,
    RelayError,
    ServiceConfigurationError,
)
from statement_relay.middleware.request_id import request_id_var
from statement_relay.models.generation import GenerationRequest, GenerationResult, ImagePart
from statement_relay.services.llm_base import GenerationClient
from statement_relay.services.retry import ResilientCaller

logger = logging.getLogger(__name__)


class DocumentAnalysisService:
    """
    Request gateway between the HTTP route and the generation client.

    Stateless apart from its injected collaborators, so one instance serves
    all concurrent requests.
    """

    def __init__(self, settings: Settings, client: GenerationClient, caller: ResilientCaller):
        self.settings = settings
        self.client = client
        self.caller = caller

    def validate_parts(self, parts: Optional[Sequence[ImagePart]]) -> None:
        """
        Enforce the input contract before any outbound call is made.

        Raises:
            ClientInputError: list missing/empty, too long, or an element
                without data or media type.
        """
        if not parts:
            raise ClientInputError("No image data provided", field="imageParts")

        if len(parts) > self.settings.max_image_parts:
            raise ClientInputError(
                f"Too many images: {len(parts)} provided, at most "
                f"{self.settings.max_image_parts} allowed",
                field="imageParts",
                context={"count": len(parts), "max": self.settings.max_image_parts},
            )

        for index, part in enumerate(parts):
            if not part.data:
                raise ClientInputError(
                    f"Image {index} has no data", field=f"imageParts[{index}].data"
                )
            if not part.mime_type:
                raise ClientInputError(
                    f"Image {index} has no mimeType", field=f"imageParts[{index}].mimeType"
                )

    def compose(self, parts: Sequence[ImagePart]) -> GenerationRequest:
        return GenerationRequest(instruction=self.settings.analysis_prompt, parts=tuple(parts))

    async def analyze(self, parts: Optional[Sequence[ImagePart]]) -> GenerationResult:
        """
        Analyze a multi-page document and return the model's raw answer.

        Args:
            parts: Pages of the document, in order.

        Returns:
            GenerationResult whose text is returned to the caller verbatim.

        Raises:
            ClientInputError:          Bad input (400), no outbound call.
            ServiceConfigurationError: No API key (503), no outbound call.
            TransientServiceError:     Gemini stayed overloaded (503).
            PermanentServiceError:     Gemini rejected the request (502).
            EmptyResultError:          Gemini returned no text (502).
        """
        rid = request_id_var.get("")
        self.validate_parts(parts)

        if not self.settings.api_key_configured:
            logger.error("[%s] Rejecting analysis: GEMINI_API_KEY is not configured", rid)
            raise ServiceConfigurationError()

        request = self.compose(parts)
        logger.info(
            "[%s] Processing request with %d images (%d bytes)",
            rid,
            len(request.parts),
            request.total_bytes,
        )

        try:
            result = await self.caller.call(lambda: self.client.generate(request))
        except RelayError as e:
            logger.error(
                "[%s] Analysis failed: %s | Context: %s",
                rid,
                e.code,
                e.context,
            )
            raise
        except Exception as e:
            logger.error("[%s] Unexpected analysis error: %s", rid, str(e), exc_info=True)
            raise PermanentServiceError(context={"error_type": type(e).__name__}) from e

        logger.info(
            "[%s] Analysis succeeded with %d chars from %s", rid, len(result.text), result.model
        )
        return result
