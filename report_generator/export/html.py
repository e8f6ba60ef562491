"""
HTML rendering of report records.

Produces one self-contained, styled HTML document per report:
- Sections whose backing field is absent are omitted, never rendered empty
- Charts are embedded as declarative Chart.js specs; they are drawn
  client-side in a browser, or as SVG at PDF export time
- Output is byte-identical for identical inputs and ``generated_at``
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from html import escape
from typing import Any, Optional

import markdown

from ..generation.charts import chart_id
from ..schemas import ChartSpec, MarketSize, ReportConfig, ReportRecord

CHART_SCRIPT_URL = "https://cdn.jsdelivr.net/npm/chart.js@4.4.0/dist/chart.umd.min.js"

REPORT_STYLES = """
        * {
            box-sizing: border-box;
        }

        body {
            font-family: 'Helvetica Neue', Arial, sans-serif;
            font-size: 11pt;
            line-height: 1.6;
            color: #333333;
            max-width: 1000px;
            margin: 0 auto;
            padding: 20px;
        }

        header {
            margin-bottom: 24px;
        }

        h1 {
            color: #2c3e50;
            border-bottom: 3px solid #3498db;
            padding-bottom: 10px;
            page-break-after: avoid;
        }

        h2 {
            color: #34495e;
            margin-top: 30px;
            page-break-after: avoid;
        }

        h3 {
            color: #7f8c8d;
            page-break-after: avoid;
        }

        .subtitle {
            color: #7f8c8d;
            margin-top: 0;
        }

        .meta {
            margin: 4px 0;
            color: #555555;
        }

        .section {
            margin: 20px 0;
            padding: 20px;
            border-radius: 8px;
            page-break-inside: auto;
        }

        .executive-summary {
            background: #f8f9fa;
            border-left: 4px solid #3498db;
        }

        .key-findings {
            background: #ffffff;
            border: 1px solid #dddddd;
        }

        .market-overview .metrics {
            display: flex;
            gap: 20px;
            margin: 20px 0;
        }

        .metric-card {
            flex: 1;
            padding: 15px;
            border-radius: 8px;
            text-align: center;
            page-break-inside: avoid;
        }

        .metric-card h3 {
            margin: 0 0 8px 0;
            color: #34495e;
            font-size: 11pt;
        }

        .metric-value {
            font-size: 22px;
            font-weight: bold;
            margin: 0;
        }

        .metric-current { background: #e3f2fd; }
        .metric-current .metric-value { color: #1976d2; }
        .metric-projected { background: #f3e5f5; }
        .metric-projected .metric-value { color: #7b1fa2; }
        .metric-growth { background: #e8f5e8; }
        .metric-growth .metric-value { color: #388e3c; }

        .chart-container {
            margin: 30px 0;
            padding: 20px;
            border: 1px solid #eeeeee;
            border-radius: 8px;
            background: #fafafa;
            page-break-inside: avoid;
        }

        .chart-wrapper {
            position: relative;
            height: 400px;
            width: 100%;
        }

        .chart-wrapper.chart-static {
            height: auto;
        }

        .chart-wrapper svg {
            width: 100%;
            height: auto;
        }

        .recommendations {
            background: #e8f5e8;
            border-left: 4px solid #27ae60;
        }

        .risk-factors {
            background: #fdf2e9;
            border-left: 4px solid #e67e22;
        }

        .sources {
            background: #f4f4f4;
            font-size: 9pt;
        }

        .sources a {
            color: #2563eb;
            word-break: break-all;
        }

        ul, ol {
            padding-left: 20px;
        }

        li {
            margin: 8px 0;
        }

        li::marker {
            color: #3498db;
        }

        p {
            margin: 0 0 0.6em 0;
        }

        p:last-child {
            margin-bottom: 0;
        }
"""

CHART_INIT_SCRIPT = """
        document.querySelectorAll('script.chart-spec').forEach(function (node) {
            var canvas = document.getElementById(node.dataset.chartId);
            if (!canvas || typeof Chart === 'undefined') {
                return;
            }
            try {
                new Chart(canvas, JSON.parse(node.textContent));
            } catch (e) {
                console.error('Chart ' + node.dataset.chartId + ' error:', e);
            }
        });
"""


def render_text(content: str) -> str:
    """Render free text (which may carry light markdown) as escaped HTML."""
    if not content or not content.strip():
        return ""
    return markdown.markdown(escape(content.strip(), quote=False), extensions=["tables", "sane_lists"])


def render_inline(content: str) -> str:
    """Render a single list item, unwrapping the paragraph markdown adds."""
    html = render_text(content)
    if html.startswith("<p>") and html.endswith("</p>") and html.count("<p>") == 1:
        return html[3:-4]
    return html


def format_figure(value: float) -> str:
    """Format a numeric figure without spurious trailing zeros."""
    if float(value).is_integer():
        return f"{value:,.0f}"
    return f"{value:,.2f}".rstrip("0").rstrip(".")


def format_analysis_type(analysis_type: str) -> str:
    return analysis_type.replace("-", " ").upper()


def format_generated_date(generated_at: datetime) -> str:
    return generated_at.strftime("%B %d, %Y")


def chart_payload(chart: ChartSpec) -> dict[str, Any]:
    """Chart.js configuration object for one chart spec."""
    payload: dict[str, Any] = {
        "type": chart.chart_type,
        "data": {
            "labels": list(chart.labels),
            "datasets": [dataset.to_wire() for dataset in chart.datasets],
        },
    }
    if chart.options is not None:
        payload["options"] = chart.options
    return payload


def serialize_chart_payload(chart: ChartSpec) -> str:
    """Deterministic JSON safe to embed inside a ``<script>`` element."""
    text = json.dumps(chart_payload(chart), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return text.replace("</", "<\\/")


def _render_list(items: list[str], *, ordered: bool = False) -> str:
    tag = "ol" if ordered else "ul"
    rendered = "".join(f"<li>{render_inline(item)}</li>" for item in items if item and item.strip())
    return f"<{tag}>{rendered}</{tag}>"


def render_header(config: ReportConfig, generated_at: datetime) -> str:
    subtitle_html = f'<h2 class="subtitle">{escape(config.subtitle)}</h2>' if config.subtitle else ""

    scope_parts = []
    if config.timeframe:
        scope_parts.append(f"<strong>Timeframe:</strong> {escape(config.timeframe)}")
    if config.region:
        scope_parts.append(f"<strong>Region:</strong> {escape(config.region)}")
    scope_html = f'<p class="meta">{" &middot; ".join(scope_parts)}</p>' if scope_parts else ""

    return f"""
    <header>
        <h1>{escape(config.title)}</h1>
        {subtitle_html}
        <p class="meta"><strong>Analysis Type:</strong> {format_analysis_type(config.analysis_type)}</p>
        {scope_html}
        <p class="meta"><strong>Generated:</strong> {format_generated_date(generated_at)}</p>
    </header>
"""


def render_market_overview(market_size: Optional[MarketSize]) -> str:
    """Market overview cards; one card per figure that is present."""
    if market_size is None or market_size.is_empty():
        return ""

    unit = f" {escape(market_size.unit.strip())}" if market_size.unit and market_size.unit.strip() else ""
    cards = []
    if market_size.current is not None:
        cards.append(("metric-current", "Current Market Size", f"{format_figure(market_size.current)}{unit}"))
    if market_size.projected is not None:
        cards.append(("metric-projected", "Projected Size", f"{format_figure(market_size.projected)}{unit}"))
    if market_size.growth_rate is not None:
        cards.append(("metric-growth", "Growth Rate", f"{format_figure(market_size.growth_rate)}%"))

    cards_html = "".join(
        f'<div class="metric-card {css_class}"><h3>{label}</h3><p class="metric-value">{value}</p></div>'
        for css_class, label, value in cards
    )
    return f"""
    <section class="section market-overview">
        <h2>Market Overview</h2>
        <div class="metrics">{cards_html}</div>
    </section>
"""


def render_chart_block(chart: ChartSpec, index: int) -> str:
    element_id = escape(chart.id or chart_id(index))
    return f"""
        <div class="chart-container" id="{element_id}-container">
            <h3>{escape(chart.title)}</h3>
            <div class="chart-wrapper" data-chart-id="{element_id}"><canvas id="{element_id}"></canvas></div>
            <script type="application/json" class="chart-spec" data-chart-id="{element_id}">{serialize_chart_payload(chart)}</script>
        </div>
"""


def render_visualizations(charts: list[ChartSpec]) -> str:
    if not charts:
        return ""
    blocks = "".join(render_chart_block(chart, index) for index, chart in enumerate(charts))
    return f"""
    <section class="section visualizations">
        <h2>Data Visualizations</h2>
        {blocks}
    </section>
"""


def _render_list_section(css_class: str, heading: str, items: Optional[list[str]], *, ordered: bool = False) -> str:
    if not items or not any(item and item.strip() for item in items):
        return ""
    return f"""
    <section class="section {css_class}">
        <h2>{heading}</h2>
        {_render_list(items, ordered=ordered)}
    </section>
"""


def _render_text_section(css_class: str, heading: str, content: Optional[str]) -> str:
    body = render_text(content or "")
    if not body:
        return ""
    return f"""
    <section class="section {css_class}">
        <h2>{heading}</h2>
        {body}
    </section>
"""


def render_sources(record: ReportRecord, config: ReportConfig) -> str:
    if not config.include_sources or not record.sources:
        return ""
    items = []
    for source in record.sources:
        url = escape(source.url)
        label = escape(source.title.strip()) if source.title and source.title.strip() else url
        items.append(f'<li><a href="{url}">{label}</a></li>')
    return f"""
    <section class="section sources">
        <h2>Sources</h2>
        <ol>{"".join(items)}</ol>
    </section>
"""


def render_html(
    record: ReportRecord,
    config: ReportConfig,
    *,
    generated_at: Optional[datetime] = None,
) -> str:
    """
    Render a report record as a complete HTML document.

    Args:
        record: Validated (and usually enriched) report record
        config: The configuration the report was generated for
        generated_at: Timestamp printed in the header; defaults to now (UTC)

    Returns:
        Complete HTML document string
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    charts = record.charts if config.include_charts else []

    chart_scripts = ""
    if charts:
        chart_scripts = f"""
    <script src="{CHART_SCRIPT_URL}"></script>
    <script>{CHART_INIT_SCRIPT}    </script>"""

    body_parts = [
        render_header(config, generated_at),
        _render_text_section("executive-summary", "Executive Summary", record.executive_summary),
        _render_list_section("key-findings", "Key Findings", record.key_findings),
        render_market_overview(record.market_size),
        render_visualizations(charts),
        _render_list_section("recommendations", "Strategic Recommendations", record.recommendations, ordered=True),
        _render_list_section("risk-factors", "Risk Factors", record.risk_factors),
        _render_text_section("methodology", "Methodology", record.methodology),
        render_sources(record, config),
    ]

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <meta name="generated-at" content="{generated_at.isoformat()}">
    <title>{escape(config.title)}</title>
    <style>{REPORT_STYLES}    </style>
</head>
<body>
{''.join(part for part in body_parts if part)}{chart_scripts}
</body>
</html>"""
