"""
Generation API routes.
"""

import json
import logging
from contextlib import aclosing
from typing import Any, AsyncIterator

from fastapi import APIRouter, Body, HTTPException
from fastapi.responses import StreamingResponse

from ...errors import ExtractionUnavailable, GenerationError, ResearchUnavailable
from ...generation import generate_report, stream_report_generation
from ...schemas import ProgressEvent, ReportConfig, validate_config
from ..models import ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Generation"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def validated_config(payload: Any, *, prefix: str = "") -> ReportConfig:
    """Validate a config payload or raise a 422 listing every issue."""
    result = validate_config(payload)
    if not result.ok:
        raise HTTPException(
            status_code=422,
            detail=ErrorResponse(
                error="validation_error",
                message="Invalid report configuration",
                errors=[
                    {"path": f"{prefix}{issue.path}", "reason": issue.reason}
                    for issue in result.errors
                ],
            ).model_dump(exclude_none=True),
        )
    return result.value


def _generation_status(exc: GenerationError) -> int:
    if isinstance(exc, (ResearchUnavailable, ExtractionUnavailable)) and exc.timed_out:
        return 504
    return 502


def format_sse(event: ProgressEvent) -> str:
    """Frame one progress event as a server-sent event."""
    return f"event: {event.type}\ndata: {json.dumps(event.to_wire(), ensure_ascii=False)}\n\n"


async def _sse_stream(events: AsyncIterator[ProgressEvent]) -> AsyncIterator[str]:
    async with aclosing(events) as stream:
        async for event in stream:
            yield format_sse(event)


@router.post("/generate")
async def generate_endpoint(payload: dict[str, Any] = Body(...)) -> dict:
    """
    Generate a report and return the finished record.

    Runs research, extraction and chart enrichment; the response is the
    validated report record.
    """
    config = validated_config(payload)
    try:
        record = await generate_report(config)
    except GenerationError as exc:
        raise HTTPException(
            status_code=_generation_status(exc),
            detail=ErrorResponse(
                error=exc.kind,
                message=exc.message,
                details=exc.details or None,
            ).model_dump(exclude_none=True),
        )
    return record.to_wire()


@router.post("/generate/stream")
async def generate_stream_endpoint(payload: dict[str, Any] = Body(...)) -> StreamingResponse:
    """
    Generate a report, streaming progress as server-sent events.

    The final event is either ``complete`` (carrying the record) or
    ``error``; nothing follows it.
    """
    config = validated_config(payload)
    return StreamingResponse(
        _sse_stream(stream_report_generation(config)),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
