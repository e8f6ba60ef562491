"""
Pydantic models for the report pipeline.

Wire names are camelCase (``executiveSummary``, ``analysisType``) and chart
specs use the Chart.js field names (``type``, ``datasets``) so a record can be
handed straight to a client-side chart library.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ============================================================
# Literal Types (Enums)
# ============================================================

AnalysisType = Literal[
    "market-analysis",
    "competitive-analysis",
    "trend-analysis",
    "financial-analysis",
]
OutputFormat = Literal["pdf", "html", "markdown"]
ExportFormat = Literal["pdf", "html", "markdown"]
ChartType = Literal["bar", "line", "pie", "doughnut", "radar"]
Phase = Literal["research", "analysis", "charts", "generation", "export"]
EventType = Literal["progress", "complete", "error"]

PHASE_ORDER: tuple[str, ...] = ("research", "analysis", "charts", "generation", "export")
AXIS_CHART_TYPES = frozenset({"bar", "line"})


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


# Stripped text that must not be blank; list items report their own index.
NonBlankText = Annotated[str, AfterValidator(_strip_required)]


class WireModel(BaseModel):
    # NaN and Infinity do not survive JSON serialization, so they are rejected.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        allow_inf_nan=False,
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize with wire names, dropping absent optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ============================================================
# Report Configuration
# ============================================================

class ReportConfig(WireModel):
    """Immutable description of the report a caller wants."""

    model_config = ConfigDict(frozen=True)

    title: str
    subtitle: Optional[str] = None
    topic: str
    analysis_type: AnalysisType
    timeframe: str
    region: Optional[str] = None
    include_charts: bool = True
    include_sources: bool = True
    output_format: OutputFormat = Field(
        default="pdf",
        validation_alias=AliasChoices("outputFormat", "output_format", "format"),
        serialization_alias="outputFormat",
    )

    @field_validator("title", "topic")
    @classmethod
    def _require_text(cls, value: str) -> str:
        return _strip_required(value)

    @field_validator("subtitle", "region")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("timeframe")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


# ============================================================
# Chart Models
# ============================================================

class ChartDataset(WireModel):
    """One named numeric series; its length must match the chart labels."""

    label: str
    data: list[float]
    background_color: Optional[Union[str, list[str]]] = None
    border_color: Optional[str] = None
    border_width: Optional[float] = None


class ChartSpec(WireModel):
    """Declarative chart specification."""

    id: Optional[str] = None
    chart_type: ChartType = Field(alias="type")
    title: str
    labels: list[str]
    datasets: list[ChartDataset] = Field(min_length=1)
    options: Optional[dict[str, Any]] = None


# ============================================================
# Report Record
# ============================================================

class MarketSize(WireModel):
    """Market sizing figures; each field is independently optional."""

    current: Optional[float] = None
    projected: Optional[float] = None
    unit: Optional[str] = None
    growth_rate: Optional[float] = None

    def is_empty(self) -> bool:
        return self.current is None and self.projected is None and self.growth_rate is None


class SourceReference(WireModel):
    title: Optional[str] = None
    url: str


class ReportRecord(WireModel):
    """Structured report produced by extraction and enriched with chart metadata.

    Immutable: enrichment and source attachment produce copies.
    """

    model_config = ConfigDict(frozen=True)

    executive_summary: NonBlankText
    key_findings: list[NonBlankText] = Field(min_length=1)
    market_size: Optional[MarketSize] = None
    charts: list[ChartSpec] = Field(default_factory=list)
    recommendations: list[NonBlankText] = Field(min_length=1)
    risk_factors: Optional[list[str]] = None
    methodology: Optional[str] = None
    sources: Optional[list[SourceReference]] = None


# ============================================================
# Progress Events
# ============================================================

class ProgressEvent(WireModel):
    """Point-in-time status of a streamed pipeline run."""

    type: EventType = "progress"
    phase: Phase
    progress: int = Field(ge=0, le=100)
    message: str
    sources_found: Optional[int] = None
    charts_generated: Optional[int] = None
    report: Optional[ReportRecord] = None
    error: Optional[dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.type in ("complete", "error")
