"""
Statement Relay: Health Check Route
===================================

What:  Health check endpoint for monitoring and platform probes.
Why:   The relay is useless without a working Gemini key; the health check
       makes a missing or revoked key visible without sending a document.
How:   Reports configuration state and a lightweight Gemini reachability probe.

Status levels:
    - healthy:   API key configured and Gemini reachable
    - degraded:  Key missing or Gemini unreachable (HTTP 200, flag for monitoring)

    Always HTTP 200: the process itself is up, and platforms that restart
    unhealthy instances would otherwise restart-loop on a missing key.
"""

import logging
import time

from fastapi import APIRouter, Depends

from statement_relay import __version__
from statement_relay.config import Settings
from statement_relay.dependencies import get_app_settings, get_generation_client
from statement_relay.schemas.analysis import HealthResponse
from statement_relay.services.llm_base import GenerationClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    settings: Settings = Depends(get_app_settings),
    client: GenerationClient = Depends(get_generation_client),
) -> HealthResponse:
    gemini_status = "available"
    overall = "healthy"

    if not settings.api_key_configured:
        gemini_status = "not_configured"
        overall = "degraded"
    else:
        try:
            if not await client.health_check():
                gemini_status = "unavailable"
                overall = "degraded"
        except Exception as e:
            gemini_status = "unavailable"
            overall = "degraded"
            logger.warning("Health check: Gemini unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        model=settings.gemini_model,
        api_key_configured=settings.api_key_configured,
        gemini=gemini_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
