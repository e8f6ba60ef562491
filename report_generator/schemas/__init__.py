"""
Data model and schema validation for the report pipeline.
"""

from .report import (
    PHASE_ORDER,
    ChartDataset,
    ChartSpec,
    MarketSize,
    ProgressEvent,
    ReportConfig,
    ReportRecord,
    SourceReference,
)
from .validation import (
    ValidationIssue,
    ValidationResult,
    validate_config,
    validate_record,
    validate_record_json,
)

__all__ = [
    "PHASE_ORDER",
    "ChartDataset",
    "ChartSpec",
    "MarketSize",
    "ProgressEvent",
    "ReportConfig",
    "ReportRecord",
    "SourceReference",
    "ValidationIssue",
    "ValidationResult",
    "validate_config",
    "validate_record",
    "validate_record_json",
]
