"""
Chart enrichment: attach ids, colour hints and rendering options.

Pure and deterministic. Labels, series values, chart count and order are
never changed, and enriching an already enriched chart is a no-op on data.
"""

from __future__ import annotations

from typing import Any, Sequence

from ..schemas import ChartDataset, ChartSpec, ReportRecord
from ..schemas.report import AXIS_CHART_TYPES

DEFAULT_PALETTE = ("#3498db", "#e74c3c", "#2ecc71", "#f39c12", "#9b59b6", "#1abc9c")
DEFAULT_BORDER_COLOR = "#2c3e50"
GRID_COLOR = "rgba(0,0,0,0.1)"
SLICE_CHART_TYPES = frozenset({"pie", "doughnut"})


def chart_id(index: int) -> str:
    """Stable 1-based chart identifier."""
    return f"chart-{index + 1}"


def build_chart_options(chart_type: str, title: str) -> dict[str, Any]:
    """Rendering options for a chart; axis grids only for bar and line."""
    options: dict[str, Any] = {
        "responsive": True,
        "maintainAspectRatio": False,
        "plugins": {
            "title": {
                "display": True,
                "text": title,
                "font": {"size": 16, "weight": "bold"},
            },
            "legend": {
                "display": True,
                "position": "bottom",
            },
        },
    }
    if chart_type in AXIS_CHART_TYPES:
        options["scales"] = {
            "y": {"beginAtZero": True, "grid": {"color": GRID_COLOR}},
            "x": {"grid": {"color": GRID_COLOR}},
        }
    return options


def _with_colour_hints(chart_type: str, labels: list[str], index: int, dataset: ChartDataset) -> ChartDataset:
    update: dict[str, Any] = {}
    if dataset.background_color is None:
        if chart_type in SLICE_CHART_TYPES:
            update["background_color"] = [
                DEFAULT_PALETTE[i % len(DEFAULT_PALETTE)] for i in range(len(labels))
            ]
        else:
            update["background_color"] = DEFAULT_PALETTE[index % len(DEFAULT_PALETTE)]
    if dataset.border_color is None:
        update["border_color"] = DEFAULT_BORDER_COLOR
    if dataset.border_width is None:
        update["border_width"] = 1
    return dataset.model_copy(update=update) if update else dataset


def enrich_chart(chart: ChartSpec, index: int) -> ChartSpec:
    datasets = [
        _with_colour_hints(chart.chart_type, chart.labels, series_index, dataset)
        for series_index, dataset in enumerate(chart.datasets)
    ]
    return chart.model_copy(
        update={
            "id": chart_id(index),
            "datasets": datasets,
            "options": build_chart_options(chart.chart_type, chart.title),
        }
    )


def enrich_charts(charts: Sequence[ChartSpec]) -> list[ChartSpec]:
    return [enrich_chart(chart, index) for index, chart in enumerate(charts)]


def enrich_record(record: ReportRecord) -> ReportRecord:
    """Return a copy of ``record`` with enriched charts."""
    return record.model_copy(update={"charts": enrich_charts(record.charts)})
