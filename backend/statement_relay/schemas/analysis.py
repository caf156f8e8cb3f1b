"""
Statement Relay: Pydantic Request/Response Schemas
==================================================

What:  Pydantic models defining the HTTP contract with the browser client.
Why:   Shape validation, base64 decoding and OpenAPI docs come from one place.
How:   FastAPI validates the body against AnalyzeRequest before the route runs;
       failures are rendered as 400 invalid_input by the handler in main.py.

Accepted ImagePart shapes:
    {"data": "<base64>", "mimeType": "image/png"}
    {"data": "data:image/png;base64,<base64>", "mimeType": "image/png"}
    {"inlineData": {"data": "<base64>", "mimeType": "image/png"}}

    The last form is what the original browser client produced, since it
    handed its parts straight to the Gemini JS SDK.
"""

import base64
import binascii
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from statement_relay.models.generation import (
    SUPPORTED_MIME_TYPES,
    ImagePart,
    normalize_mime_type,
)

URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ImagePartIn(BaseModel):
    """
    What:  One encoded page as sent by the client.
    How:   `data` arrives as a base64 string and is decoded during validation,
           so the rest of the application only ever sees bytes.
    """

    data: bytes = Field(min_length=1, description="Base64-encoded page content")
    mime_type: str = Field(
        alias="mimeType",
        description="Media type: image/png, image/jpeg, image/webp, image/heic, "
        "image/heif or application/pdf",
    )

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def unwrap_inline_data(cls, value: Any) -> Any:
        """Accepts the Gemini-style {"inlineData": {...}} wrapper."""
        if isinstance(value, dict) and isinstance(value.get("inlineData"), dict):
            return value["inlineData"]
        return value

    @field_validator("data", mode="before")
    @classmethod
    def decode_base64(cls, v: Any) -> bytes:
        if isinstance(v, bytes):
            return v
        if not isinstance(v, str):
            raise ValueError("data must be a base64-encoded string")
        payload = v.strip()
        # data:<mime>;base64,<payload> from FileReader.readAsDataURL
        if payload.startswith("data:") and "," in payload:
            payload = payload.split(",", 1)[1]
        # MIME line wrapping and the URL-safe alphabet, with or without padding
        payload = "".join(payload.split()).translate(URLSAFE_TO_STANDARD)
        if not payload:
            raise ValueError("data must not be empty")
        payload += "=" * (-len(payload) % 4)
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("data is not valid base64")

    @field_validator("mime_type")
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        normalized = normalize_mime_type(v)
        if normalized not in SUPPORTED_MIME_TYPES:
            raise ValueError(
                f"Unsupported mimeType '{v}'. Allowed: {', '.join(sorted(SUPPORTED_MIME_TYPES))}"
            )
        return normalized

    def to_image_part(self) -> ImagePart:
        return ImagePart(data=self.data, mime_type=self.mime_type)


class AnalyzeRequest(BaseModel):
    """
    What:  Body of POST /analyze-statement.
    Why Optional: A missing or null list is a client error reported by the
           gateway ("No image data provided"), not a schema error.
    """

    image_parts: Optional[List[ImagePartIn]] = Field(
        default=None,
        alias="imageParts",
        description="Pages of the document, in order",
    )

    model_config = {"populate_by_name": True}

    def to_image_parts(self) -> List[ImagePart]:
        return [part.to_image_part() for part in self.image_parts or []]


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class AnalyzeResponse(BaseModel):
    """The model's raw text, unmodified and unparsed."""

    result: str = Field(description="Raw text returned by the model")


class ErrorResponse(BaseModel):
    """
    What:  Error envelope shared by every failure response.

    Example:
        {
            "error": "No image data provided",
            "code": "invalid_input",
            "request_id": "a1b2c3d4"
        }
    """

    error: str = Field(description="Human-readable error description")
    code: str = Field(description="Machine-readable error kind")
    details: Optional[List[dict]] = Field(default=None, description="Field-level validation errors")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""

    status: str = Field(description="Overall service status: healthy, degraded")
    version: str = Field(description="Application version")
    model: str = Field(description="Configured Gemini model identifier")
    api_key_configured: bool = Field(description="Whether GEMINI_API_KEY is set")
    gemini: str = Field(description="Gemini API status: available, unavailable, not_configured")
    uptime_seconds: float = Field(description="Seconds since service started")
