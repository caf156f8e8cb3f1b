"""
Statement Relay: Analyze Route Handler
======================================

What:  Handles POST /analyze-statement, the relay's only business endpoint.
Why:   The browser client posts the pages of a statement and gets back the
       model's raw answer, which it parses itself.
How:   FastAPI validates and decodes the JSON body (AnalyzeRequest), the
       route hands the pages to DocumentAnalysisService and wraps the text.

Request Flow:
    1. Client sends {"imageParts": [{"data": "<base64>", "mimeType": "image/png"}, ...]}
    2. Pydantic decodes base64 and checks media types (400 on failure)
    3. DocumentAnalysisService validates, composes and calls Gemini with retry
    4. Return 200 {"result": "<raw text>"}
    5. On error: global handlers in main.py render {"error", "code", "request_id"}
"""

import logging

from fastapi import APIRouter, Depends

from statement_relay.dependencies import get_analysis_service
from statement_relay.schemas.analysis import AnalyzeRequest, AnalyzeResponse, ErrorResponse
from statement_relay.services.analysis_service import DocumentAnalysisService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Analyze"])


@router.post(
    "/analyze-statement",
    status_code=200,
    response_model=AnalyzeResponse,
    responses={
        200: {"description": "Raw model output", "model": AnalyzeResponse},
        400: {"description": "Missing, empty or malformed image list", "model": ErrorResponse},
        413: {"description": "Request body too large", "model": ErrorResponse},
        502: {"description": "Gemini rejected the request or returned no text", "model": ErrorResponse},
        503: {"description": "Gemini overloaded, unreachable, or not configured", "model": ErrorResponse},
    },
    summary="Analyze a scanned document",
    description=(
        "Send the pages of a document as base64-encoded images (PNG, JPEG, WebP, HEIC) "
        "or PDFs. The pages are forwarded to Google Gemini together with the configured "
        "instruction, and the model's text answer is returned unmodified."
    ),
)
async def analyze_statement(
    body: AnalyzeRequest,
    service: DocumentAnalysisService = Depends(get_analysis_service),
) -> AnalyzeResponse:
    result = await service.analyze(body.to_image_parts())
    return AnalyzeResponse(result=result.text)
