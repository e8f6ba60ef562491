"""Markdown rendering of report records, following the same section rules as HTML."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from ..schemas import ChartSpec, ReportConfig, ReportRecord
from .html import format_analysis_type, format_figure, format_generated_date


def _escape_cell(value: str) -> str:
    return value.replace("|", "\\|").replace("\n", " ").strip()


def _chart_table(chart: ChartSpec) -> list[str]:
    header = ["Label", *(_escape_cell(dataset.label) for dataset in chart.datasets)]
    lines = [
        f"### {chart.title}",
        "",
        "| " + " | ".join(header) + " |",
        "| " + " | ".join("---" for _ in header) + " |",
    ]
    for index, label in enumerate(chart.labels):
        values = [format_figure(dataset.data[index]) for dataset in chart.datasets]
        lines.append("| " + " | ".join([_escape_cell(label), *values]) + " |")
    lines.append("")
    return lines


def _bullets(items: Optional[list[str]], *, ordered: bool = False) -> list[str]:
    kept = [item.strip() for item in items or [] if item and item.strip()]
    if ordered:
        return [f"{index}. {item}" for index, item in enumerate(kept, start=1)]
    return [f"- {item}" for item in kept]


def render_markdown_document(
    record: ReportRecord,
    config: ReportConfig,
    *,
    generated_at: Optional[datetime] = None,
) -> str:
    """Render a report record as a Markdown document."""
    generated_at = generated_at or datetime.now(timezone.utc)
    lines = [f"# {config.title}", ""]
    if config.subtitle:
        lines += [f"## {config.subtitle}", ""]
    lines.append(f"**Analysis Type:** {format_analysis_type(config.analysis_type)}  ")
    if config.timeframe:
        lines.append(f"**Timeframe:** {config.timeframe}  ")
    if config.region:
        lines.append(f"**Region:** {config.region}  ")
    lines += [f"**Generated:** {format_generated_date(generated_at)}", ""]

    lines += ["## Executive Summary", "", record.executive_summary, ""]
    lines += ["## Key Findings", "", *_bullets(record.key_findings), ""]

    market_size = record.market_size
    if market_size is not None and not market_size.is_empty():
        unit = f" {market_size.unit.strip()}" if market_size.unit and market_size.unit.strip() else ""
        lines += ["## Market Overview", "", "| Metric | Value |", "| --- | --- |"]
        if market_size.current is not None:
            lines.append(f"| Current Market Size | {format_figure(market_size.current)}{unit} |")
        if market_size.projected is not None:
            lines.append(f"| Projected Size | {format_figure(market_size.projected)}{unit} |")
        if market_size.growth_rate is not None:
            lines.append(f"| Growth Rate | {format_figure(market_size.growth_rate)}% |")
        lines.append("")

    if config.include_charts and record.charts:
        lines += ["## Data Visualizations", ""]
        for chart in record.charts:
            lines += _chart_table(chart)

    lines += ["## Strategic Recommendations", "", *_bullets(record.recommendations, ordered=True), ""]

    risks = _bullets(record.risk_factors)
    if risks:
        lines += ["## Risk Factors", "", *risks, ""]

    if record.methodology and record.methodology.strip():
        lines += ["## Methodology", "", record.methodology.strip(), ""]

    if config.include_sources and record.sources:
        lines += ["## Sources", ""]
        for source in record.sources:
            label = source.title.strip() if source.title and source.title.strip() else source.url
            lines.append(f"- [{label}]({source.url})")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"
