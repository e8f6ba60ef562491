"""
Export API routes.
"""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from ...errors import ExportError, RenderTimeout
from ...export import export_report
from ...export.documents import MEDIA_TYPES
from ...schemas import validate_config, validate_record
from ..models import ErrorResponse, ExportRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Export"])


@router.post("/export")
def export_endpoint(request: ExportRequest) -> Response:
    """
    Export a generated report as PDF, HTML or Markdown.

    Returns the document as a download named after the report title.
    """
    if request.format not in MEDIA_TYPES:
        raise HTTPException(
            status_code=400,
            detail=ErrorResponse(
                error="unsupported_format",
                message=f"Unsupported format: {request.format}",
            ).model_dump(exclude_none=True),
        )

    record_result = validate_record(request.report_data)
    config_result = validate_config(request.config)
    issues = [
        {"path": f"reportData.{issue.path}", "reason": issue.reason}
        for issue in record_result.errors
    ] + [
        {"path": f"config.{issue.path}", "reason": issue.reason}
        for issue in config_result.errors
    ]
    if issues:
        raise HTTPException(
            status_code=422,
            detail=ErrorResponse(
                error="validation_error",
                message="Invalid export request",
                errors=issues,
            ).model_dump(exclude_none=True),
        )

    try:
        exported = export_report(record_result.value, config_result.value, request.format)
    except ExportError as exc:
        raise HTTPException(
            status_code=504 if isinstance(exc, RenderTimeout) else 500,
            detail=ErrorResponse(
                error=exc.kind,
                message=f"Export failed: {exc.message}",
            ).model_dump(exclude_none=True),
        )

    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{exported.filename}"',
        },
    )
