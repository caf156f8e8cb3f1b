"""
Statement Relay: Test Configuration (conftest.py)
=================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    ├── settings:        Settings with a fake key and short backoff
    ├── sleep_recorder:  Records backoff waits instead of sleeping
    ├── caller:          ResilientCaller wired to sleep_recorder
    ├── stub_client:     Scripted GenerationClient (no network)
    ├── png_part:        One small ImagePart
    ├── build_app:       Factory for apps with injected settings/client
    └── test_client:     HTTPX AsyncClient talking to build_app() over ASGI
"""

import base64
import os

# Override settings for testing BEFORE any app imports
# Why: main.py builds a default app at import time from the environment
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from statement_relay.config import Settings
from statement_relay.main import create_app
from statement_relay.models.generation import ImagePart
from statement_relay.services.retry import ResilientCaller, RetryPolicy
from tests.stubs import SleepRecorder, StubGenerationClient

# 1x1 transparent PNG
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)
PNG_BASE64 = base64.b64encode(PNG_BYTES).decode("ascii")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        gemini_api_key="test-key-not-real",
        gemini_model="gemini-test",
        analysis_prompt="Extract the transactions.",
        retry_max_attempts=3,
        retry_initial_backoff=0.5,
        retry_backoff_multiplier=1.5,
        max_image_parts=5,
        log_level="WARNING",
    )


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def caller(settings, sleep_recorder) -> ResilientCaller:
    return ResilientCaller(RetryPolicy.from_settings(settings), sleep=sleep_recorder)


@pytest.fixture
def stub_client() -> StubGenerationClient:
    return StubGenerationClient(script=['{"transactions":[]}'])


@pytest.fixture
def png_part() -> ImagePart:
    return ImagePart(data=PNG_BYTES, mime_type="image/png")


@pytest.fixture
def build_app(settings, sleep_recorder):
    """
    Factory for isolated apps.

    Usage:
        app = build_app(StubGenerationClient([...]))
        app = build_app(client, settings_override=settings.model_copy(update={...}))
    """

    def _build(client, settings_override=None):
        app_settings = settings_override or settings
        caller = ResilientCaller(RetryPolicy.from_settings(app_settings), sleep=sleep_recorder)
        return create_app(settings=app_settings, client=client, caller=caller)

    return _build


@pytest_asyncio.fixture
async def test_client(build_app, stub_client):
    """
    HTTPX AsyncClient wired to an app using `stub_client`.

    raise_app_exceptions=False: the catch-all 500 handler still re-raises
    after responding, and tests assert on the response.
    """
    app = build_app(stub_client)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
