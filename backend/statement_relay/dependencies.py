"""
Statement Relay: FastAPI Dependencies
=====================================

What:  Accessors for the objects create_app() builds once per application.
Why:   Routes receive their collaborators through Depends(...) instead of
       importing module-level singletons, so a test app built with a stub
       client is fully isolated from the real one.
"""

from fastapi import Request

from statement_relay.config import Settings
from statement_relay.services.analysis_service import DocumentAnalysisService
from statement_relay.services.llm_base import GenerationClient


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_generation_client(request: Request) -> GenerationClient:
    return request.app.state.generation_client


def get_analysis_service(request: Request) -> DocumentAnalysisService:
    return request.app.state.analysis_service
