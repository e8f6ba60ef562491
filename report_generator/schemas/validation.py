"""
Schema validation for report configurations and report records.

Validators never raise for malformed input. They return a
``ValidationResult`` carrying either the normalized model (defaults applied)
or every problem found, each as a field path plus a reason.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import ReportValidationError
from .report import AXIS_CHART_TYPES, ReportConfig, ReportRecord

ModelT = TypeVar("ModelT", bound=BaseModel)

ROOT_PATH = "$"
AXIS_OPTION_KEYS = ("scales",)


@dataclass(frozen=True)
class ValidationIssue:
    path: str
    reason: str

    def to_dict(self) -> dict:
        return {"path": self.path, "reason": self.reason}


@dataclass(frozen=True)
class ValidationResult(Generic[ModelT]):
    value: Optional[ModelT] = None
    errors: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.value is not None and not self.errors

    def unwrap(self) -> ModelT:
        """Return the value or raise ``ReportValidationError`` with all issues."""
        if not self.ok:
            raise ReportValidationError(list(self.errors))
        return self.value


def format_path(loc: tuple) -> str:
    """Render a pydantic ``loc`` tuple as ``charts[0].datasets[1].data``."""
    if not loc:
        return ROOT_PATH
    parts: list[str] = []
    for item in loc:
        if isinstance(item, int):
            if parts:
                parts[-1] = f"{parts[-1]}[{item}]"
            else:
                parts.append(f"[{item}]")
        else:
            parts.append(str(item))
    return ".".join(parts)


def _clean_reason(message: str) -> str:
    prefix = "Value error, "
    if message.startswith(prefix):
        return message[len(prefix):]
    return message


def _issues_from_pydantic(exc: ValidationError) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for error in exc.errors(include_url=False):
        # Drop union branch names so paths stay on wire fields only.
        loc = tuple(
            part for part in error.get("loc", ())
            if not (isinstance(part, str) and part in ("str", "list[str]"))
        )
        issues.append(ValidationIssue(format_path(loc), _clean_reason(str(error.get("msg", "invalid")))))
    return issues


def _validate_model(model: type[ModelT], raw: Any) -> tuple[Optional[ModelT], list[ValidationIssue]]:
    if not isinstance(raw, dict):
        return None, [ValidationIssue(ROOT_PATH, "expected an object")]
    try:
        return model.model_validate(raw), []
    except ValidationError as exc:
        return None, _issues_from_pydantic(exc)


def _chart_consistency_issues(raw_charts: Any) -> list[ValidationIssue]:
    """Cross-field chart checks pydantic cannot express per field.

    Runs on the raw payload so these issues are reported alongside any
    structural problems elsewhere in the record.
    """
    if not isinstance(raw_charts, list):
        return []

    issues: list[ValidationIssue] = []
    for index, chart in enumerate(raw_charts):
        if not isinstance(chart, dict):
            continue
        base = f"charts[{index}]"

        labels = chart.get("labels")
        datasets = chart.get("datasets")
        if isinstance(labels, list) and isinstance(datasets, list):
            for series_index, dataset in enumerate(datasets):
                if not isinstance(dataset, dict) or not isinstance(dataset.get("data"), list):
                    continue
                if len(dataset["data"]) != len(labels):
                    issues.append(
                        ValidationIssue(
                            f"{base}.datasets[{series_index}].data",
                            f"series has {len(dataset['data'])} values but chart has {len(labels)} labels",
                        )
                    )

        chart_type = chart.get("type")
        options = chart.get("options")
        if isinstance(options, dict) and isinstance(chart_type, str) and chart_type not in AXIS_CHART_TYPES:
            for key in AXIS_OPTION_KEYS:
                if key in options and options[key] is not None:
                    issues.append(
                        ValidationIssue(
                            f"{base}.options.{key}",
                            f"axis options are only allowed for bar and line charts, not {chart_type}",
                        )
                    )
    return issues


def validate_config(raw: Any) -> ValidationResult[ReportConfig]:
    """Validate and normalize a report configuration payload."""
    value, issues = _validate_model(ReportConfig, raw)
    if issues:
        return ValidationResult(errors=tuple(issues))
    return ValidationResult(value=value)


def validate_record(raw: Any) -> ValidationResult[ReportRecord]:
    """Validate a report record, including label/series length agreement."""
    value, issues = _validate_model(ReportRecord, raw)
    if isinstance(raw, dict):
        issues.extend(_chart_consistency_issues(raw.get("charts")))
    if issues:
        return ValidationResult(errors=tuple(issues))
    return ValidationResult(value=value)


def validate_record_json(text: str) -> ValidationResult[ReportRecord]:
    """Parse raw service output as JSON, then validate it as a report record."""
    try:
        raw = json.loads(text)
    except (TypeError, ValueError) as exc:
        return ValidationResult(errors=(ValidationIssue(ROOT_PATH, f"invalid JSON: {exc}"),))
    return validate_record(raw)
