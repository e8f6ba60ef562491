"""
Pydantic request/response models for the report API.

Request bodies are accepted as loose objects and checked with the schema
validators, so malformed input comes back as an itemised list of
``{path, reason}`` pairs instead of a bare failure.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExportRequest(BaseModel):
    """Request model for exporting an already generated report."""

    model_config = ConfigDict(populate_by_name=True)

    report_data: dict[str, Any] = Field(alias="reportData")
    config: dict[str, Any]
    format: str = "pdf"


class ValidationIssueResponse(BaseModel):
    path: str
    reason: str


class ErrorResponse(BaseModel):
    """Error payload returned for every failed request."""

    error: str
    message: Optional[str] = None
    errors: Optional[list[ValidationIssueResponse]] = None
    details: Optional[dict[str, Any]] = None
