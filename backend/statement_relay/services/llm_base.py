"""
Statement Relay: Abstract Generation Client Interface
=====================================================

What:  Abstract base class for the outbound generative-AI collaborator.
Why:   The gateway only needs "send instruction + images, get text back".
       Hiding the provider behind this contract lets tests substitute a stub
       and keeps SDK details inside one module.
How:   Concrete implementations inherit from GenerationClient and implement
       generate() and health_check().

Contract notes:
    generate() makes exactly ONE attempt. Retrying is the job of
    ResilientCaller, which inspects whatever generate() raises:
        - exceptions carrying an HTTP status (`code` or `status_code`)
          are classified by that status
        - ConnectionError / TimeoutError are treated as transport faults
        - RelayError subclasses (e.g. EmptyResultError) are final
"""

from abc import ABC, abstractmethod

from statement_relay.models.generation import GenerationRequest, GenerationResult


class GenerationClient(ABC):
    """
    Interface for a single-shot multimodal text generation call.

    Implementations:
        - GeminiClient: Google Gemini via google-generativeai (default)
    """

    #: Model identifier, used in logs and the health endpoint
    model_name: str = ""

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """
        Send one GenerationRequest and return the model's text.

        Returns:
            GenerationResult with the raw text, never empty.

        Raises:
            EmptyResultError: The call succeeded but produced no text.
            Exception: Any provider error, unmodified, for the caller to classify.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the provider is reachable without spending generation quota.

        Returns: True if reachable and authenticated, False otherwise. Never raises.
        """
        ...
