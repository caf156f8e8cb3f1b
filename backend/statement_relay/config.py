"""
Statement Relay: Application Configuration
==========================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and get_settings() hands out one cached instance.
Who:   Built once by create_app() and injected into services and middleware.
When:  Loaded when the application is assembled; validated in the lifespan hook.

Design Decision:
    Settings are constructed once and passed to the components that need
    them instead of being read from a module-level global. Tests build their
    own Settings(...) with fake credentials and hand it to create_app().
"""

from functools import lru_cache
from typing import FrozenSet, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


DEFAULT_ANALYSIS_PROMPT = """Analyze the provided bank statement.
Extract transactions into a JSON object with: date, description, amount, type, category.
Categories: Food, Transport, Shopping, Utilities, Entertainment, Health, Income, Other.

CRITICAL: Return ONLY raw JSON. Do not use markdown code blocks."""


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development.
    Production deployments MUST set GEMINI_API_KEY and should narrow CORS_ORIGINS.
    """

    # ── Google Gemini ─────────────────────────────────────────────────────
    # Required: YES, every analysis request is forwarded to Gemini
    # How to obtain: https://aistudio.google.com/app/apikey
    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key used for document analysis",
    )

    # Model identifier passed to the SDK as-is, so switching models is a
    # deployment change rather than a code change
    gemini_model: str = Field(default="gemini-2.5-flash")

    # Instruction prepended to every batch of images
    analysis_prompt: str = Field(default=DEFAULT_ANALYSIS_PROMPT, min_length=1)

    # Per-attempt timeout handed to the SDK (seconds)
    request_timeout: float = Field(default=60.0, gt=0, le=600)

    # ── Retry Configuration ───────────────────────────────────────────────
    # wait before attempt n+1 = initial_backoff * multiplier ** (n - 1)
    # Example with defaults: 1.0s, then 1.5s, then give up after attempt 3
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_initial_backoff: float = Field(default=1.0, ge=0, le=60)
    retry_backoff_multiplier: float = Field(default=1.5, gt=1, le=10)

    # Upstream HTTP statuses worth retrying: rate-limited and overloaded
    # Format: comma-separated integers
    transient_status_codes: str = Field(default="429,503")

    @property
    def transient_status_code_set(self) -> FrozenSet[int]:
        """Parses TRANSIENT_STATUS_CODES into a set of ints."""
        return frozenset(
            int(code) for code in self.transient_status_codes.split(",") if code.strip()
        )

    @field_validator("transient_status_codes")
    @classmethod
    def validate_transient_status_codes(cls, v: str) -> str:
        """Rejects anything that is not a comma-separated list of HTTP status codes."""
        for code in v.split(","):
            code = code.strip()
            if not code:
                continue
            if not code.isdigit() or not 100 <= int(code) <= 599:
                raise ValueError(f"Invalid HTTP status code '{code}' in transient_status_codes")
        return v

    # ── Request Limits ────────────────────────────────────────────────────
    # Multi-page scans arrive base64-encoded in a single JSON body, so the
    # limit is generous: 50MB
    max_request_bytes: int = Field(default=52_428_800, ge=1_048_576, le=524_288_000)
    max_image_parts: int = Field(default=30, ge=1, le=500)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Browser callers are served from arbitrary origins by default
    # Format: "*" or comma-separated URLs
    cors_origins: str = Field(default="*")

    @property
    def cors_origins_list(self) -> List[str]:
        """
        What: Splits comma-separated CORS origins into a list.
        Why property: CORS middleware expects a list, but env vars are strings.
        """
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # When true, a missing API key aborts startup instead of running degraded
    require_api_key: bool = Field(default=False)

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def api_key_configured(self) -> bool:
        return bool(self.gemini_api_key) and self.gemini_api_key != "your_gemini_api_key_here"

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that critical settings are configured.
        When:  Called during app startup (lifespan).
        Why:   A missing key otherwise only shows up on the first analysis request.
        """
        errors = []
        if not self.api_key_configured:
            errors.append(
                "GEMINI_API_KEY is not set. "
                "Get a key at https://aistudio.google.com/app/apikey"
            )
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


@lru_cache
def get_settings() -> Settings:
    """Returns the process settings, reading the environment on first use only."""
    return Settings()
