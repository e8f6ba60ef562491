"""
Tagged error taxonomy for the report pipeline.

Generation failures (``GenerationError``) and export failures
(``ExportError``) are separate hierarchies so callers can tell
"no report was produced" apart from "the report exists but could not be
exported".
"""

from __future__ import annotations

from typing import Any, Optional


class ReportError(Exception):
    """Base class for all pipeline errors; ``kind`` is the stable tag."""

    kind = "report_error"

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ReportValidationError(ReportError):
    """Input did not match the expected shape. Never retried."""

    kind = "validation_error"

    def __init__(self, issues: list, message: str = "Validation failed"):
        self.issues = list(issues)
        super().__init__(
            message,
            details={"errors": [issue.to_dict() for issue in self.issues]},
        )


class GenerationError(ReportError):
    kind = "generation_error"


class ResearchUnavailable(GenerationError):
    """The research call failed or timed out."""

    kind = "research_unavailable"

    def __init__(self, message: str, *, timed_out: bool = False, details: Optional[dict[str, Any]] = None):
        super().__init__(message, details={**(details or {}), "timed_out": timed_out})
        self.timed_out = timed_out


class ExtractionSchemaViolation(GenerationError):
    """Structured output from the extraction call failed schema validation."""

    kind = "extraction_schema_violation"

    def __init__(self, issues: list, *, attempts: int = 1, message: str | None = None):
        self.issues = list(issues)
        self.attempts = attempts
        super().__init__(
            message or f"Extraction output failed schema validation after {attempts} attempt(s)",
            details={
                "attempts": attempts,
                "errors": [issue.to_dict() for issue in self.issues],
            },
        )


class ExtractionUnavailable(GenerationError):
    """The extraction call itself failed (transport error or timeout)."""

    kind = "extraction_unavailable"

    def __init__(self, message: str, *, timed_out: bool = False):
        super().__init__(message, details={"timed_out": timed_out})
        self.timed_out = timed_out


class ExportError(ReportError):
    kind = "export_error"


class EngineLaunchFailure(ExportError):
    kind = "engine_launch_failure"


class RenderTimeout(ExportError):
    kind = "render_timeout"


class PaginationFailure(ExportError):
    kind = "pagination_failure"
