"""
Statement Relay: Generation Domain Types
========================================

What:  The request-scoped values that flow from the gateway to Gemini and back.
Why:   Keeps the service layer independent of both the HTTP schema (camelCase,
       base64 strings) and the SDK's content format.
How:   Frozen dataclasses. Nothing here is persisted; every instance lives for
       the duration of one request and is owned by that request's task.

Lifecycle:
    ImagePart         built by the route from the validated request body
    GenerationRequest built by DocumentAnalysisService (instruction + parts)
    GenerationResult  built by the generation client from the model's answer
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

# Media types Gemini accepts as inline document pages
SUPPORTED_MIME_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/heic",
    "image/heif",
    "application/pdf",
})

# Common aliases sent by browsers and older clients
MIME_TYPE_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
    "image/x-png": "image/png",
}


def normalize_mime_type(mime_type: str) -> str:
    """Lowercases, drops parameters (``; charset=...``) and resolves aliases."""
    base = mime_type.split(";", 1)[0].strip().lower()
    return MIME_TYPE_ALIASES.get(base, base)


@dataclass(frozen=True)
class ImagePart:
    """One page of a document: raw bytes plus their declared media type."""

    data: bytes = field(repr=False)
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)

    def to_blob(self) -> Dict[str, Any]:
        """Inline blob in the shape the Gemini SDK accepts as a content part."""
        return {"mime_type": self.mime_type, "data": self.data}


@dataclass(frozen=True)
class GenerationRequest:
    """
    Ordered instruction-plus-images payload for one generation call.

    The instruction always comes first, followed by the parts in the order
    the client sent them (page order matters for multi-page statements).
    """

    instruction: str
    parts: Tuple[ImagePart, ...]

    @property
    def total_bytes(self) -> int:
        return sum(part.size for part in self.parts)

    def to_contents(self) -> List[Union[str, Dict[str, Any]]]:
        contents: List[Union[str, Dict[str, Any]]] = [self.instruction]
        contents.extend(part.to_blob() for part in self.parts)
        return contents


@dataclass(frozen=True)
class GenerationResult:
    """Opaque model output. `text` is returned to the caller untouched."""

    text: str
    model: str = ""
