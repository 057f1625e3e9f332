"""Narrative analysis endpoints."""

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from stocklens.analysis.snapshot import trim_payload_series
from stocklens.api.dependencies import get_generator
from stocklens.api.exceptions import status_for_kind
from stocklens.exceptions import ErrorKind
from stocklens.narrative.generator import NarrativeGenerator
from stocklens.narrative.models import AnalysisResult
from stocklens.narrative.streaming import StreamEvent, format_sse
from stocklens.utils.logging import get_logger

router = APIRouter(prefix="/api/ai", tags=["Analysis"])
log = get_logger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache, no-transform", "Connection": "keep-alive"}
NOT_CONFIGURED_MESSAGE = "Narrative generation is not configured on the server"


@router.post("/analyze")
async def analyze(
    payload: dict[str, Any] = Body(..., description="Snapshot payload"),
    generator: NarrativeGenerator = Depends(get_generator),
) -> JSONResponse:
    """
    Batched narrative analysis of a submitted snapshot.

    Returns 503 when no model is configured, 504 on timeout and 502 on any
    other upstream failure; the body is always an AnalysisResult.
    """
    if not generator.is_configured():
        result = AnalysisResult.failure(NOT_CONFIGURED_MESSAGE, ErrorKind.NOT_CONFIGURED)
    else:
        result = await generator.analyze(trim_payload_series(payload))

    status_code = 200 if result.ok else status_for_kind(result.error_kind)
    log.info("analysis_served", ok=result.ok, status=status_code, ticker=payload.get("ticker"))
    return JSONResponse(status_code=status_code, content=result.to_dict())


@router.post("/analyze/stream")
async def analyze_stream(
    payload: dict[str, Any] = Body(..., description="Snapshot payload"),
    generator: NarrativeGenerator = Depends(get_generator),
) -> StreamingResponse:
    """Streamed narrative analysis as Server-Sent Events (chunk..., then done or error)."""
    if not generator.is_configured():
        event = StreamEvent(kind="error", data=NOT_CONFIGURED_MESSAGE)
        return StreamingResponse(
            iter([format_sse(event)]),
            status_code=503,
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    trimmed = trim_payload_series(payload)

    async def events():
        async for event in generator.stream(trimmed):
            yield format_sse(event)

    return StreamingResponse(events(), media_type="text/event-stream", headers=SSE_HEADERS)
