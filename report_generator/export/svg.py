"""
Export-time chart settlement.

A rendering engine without a script runtime cannot execute the Chart.js
initialisation embedded in report HTML, so before layout every chart
placeholder is replaced with an inline SVG drawn from the chart's
declarative spec.
"""

from __future__ import annotations

import json
import math
import re
from html import escape
from typing import Any

PALETTE = ["#3498db", "#e74c3c", "#2ecc71", "#f39c12", "#9b59b6", "#1abc9c"]

WIDTH = 700
HEIGHT = 320

_SPEC_PATTERN = re.compile(
    r'<script type="application/json" class="chart-spec" data-chart-id="(?P<id>[^"]+)">(?P<spec>.*?)</script>',
    re.DOTALL,
)
_PLACEHOLDER_TEMPLATE = (
    '<div class="chart-wrapper" data-chart-id="{id}"><canvas id="{id}"></canvas></div>'
)


def _to_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _series_colour(dataset: dict, index: int) -> str:
    background = dataset.get("backgroundColor")
    if isinstance(background, str) and background:
        return background
    return PALETTE[index % len(PALETTE)]


def _slice_colours(dataset: dict, count: int) -> list[str]:
    background = dataset.get("backgroundColor")
    if isinstance(background, list) and background:
        return [str(background[i % len(background)]) for i in range(count)]
    return [PALETTE[i % len(PALETTE)] for i in range(count)]


def _normalize(payload: dict) -> tuple[str, list[str], list[tuple[str, list[float | None], dict]]]:
    chart_type = payload.get("type") if isinstance(payload.get("type"), str) else "bar"
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    labels = [str(label) for label in data.get("labels") or []]
    series: list[tuple[str, list[float | None], dict]] = []
    for index, dataset in enumerate(data.get("datasets") or []):
        if not isinstance(dataset, dict):
            continue
        name = str(dataset.get("label") or f"Series {index + 1}")
        values = [_to_float(value) for value in dataset.get("data") or []]
        series.append((name, values, dataset))
    return chart_type, labels, series


def _legend(entries: list[tuple[str, str]], y: float) -> list[str]:
    parts: list[str] = []
    for index, (name, colour) in enumerate(entries):
        x = 55 + (index % 5) * 125
        row_y = y + (index // 5) * 14
        parts.append(f'<rect x="{x}" y="{row_y - 9:.1f}" width="10" height="10" fill="{escape(colour)}" rx="1"/>')
        parts.append(f'<text x="{x + 14}" y="{row_y:.1f}" font-size="9" fill="#334155">{escape(name)}</text>')
    return parts


def _axis_chart_svg(chart_type: str, labels: list[str], series: list) -> list[str]:
    margin_top, margin_right, margin_bottom, margin_left = 20, 20, 80, 55
    plot_width = WIDTH - margin_left - margin_right
    plot_height = HEIGHT - margin_top - margin_bottom
    baseline = margin_top + plot_height

    max_value = max((v for _n, values, _d in series for v in values if v is not None), default=0.0)
    if max_value <= 0:
        max_value = 1.0

    parts = [
        f'<line x1="{margin_left}" y1="{baseline}" x2="{WIDTH - margin_right}" y2="{baseline}" stroke="#CBD5E1" stroke-width="1"/>',
        f'<line x1="{margin_left}" y1="{margin_top}" x2="{margin_left}" y2="{baseline}" stroke="#CBD5E1" stroke-width="1"/>',
    ]
    for tick in (0, 0.25, 0.5, 0.75, 1.0):
        y = baseline - tick * plot_height
        parts.append(
            f'<line x1="{margin_left}" y1="{y:.1f}" x2="{WIDTH - margin_right}" y2="{y:.1f}" stroke="#E2E8F0" stroke-width="0.8"/>'
        )
        parts.append(
            f'<text x="{margin_left - 8}" y="{y + 3:.1f}" text-anchor="end" font-size="8.5" fill="#64748B">{max_value * tick:,.1f}</text>'
        )

    count = max(len(labels), 1)
    category_width = plot_width / count

    if chart_type == "line":
        for series_index, (_name, values, dataset) in enumerate(series):
            colour = _series_colour(dataset, series_index)
            points = []
            for idx, value in enumerate(values[: len(labels)]):
                if value is None:
                    continue
                x = margin_left + (idx + 0.5) * category_width
                y = baseline - (max(value, 0) / max_value) * plot_height
                points.append((x, y))
            if len(points) >= 2:
                joined = " ".join(f"{x:.1f},{y:.1f}" for x, y in points)
                parts.append(f'<polyline fill="none" stroke="{escape(colour)}" stroke-width="2.2" points="{joined}"/>')
            for x, y in points:
                parts.append(f'<circle cx="{x:.1f}" cy="{y:.1f}" r="2.8" fill="{escape(colour)}"/>')
    else:
        group_count = max(len(series), 1)
        bar_width = max(category_width / (group_count + 1), 4)
        for series_index, (_name, values, dataset) in enumerate(series):
            colour = _series_colour(dataset, series_index)
            for idx, value in enumerate(values[: len(labels)]):
                if value is None:
                    continue
                bar_height = (max(value, 0) / max_value) * plot_height
                x = margin_left + idx * category_width + (series_index + 0.5) * bar_width
                parts.append(
                    f'<rect x="{x:.1f}" y="{baseline - bar_height:.1f}" width="{bar_width:.1f}" height="{bar_height:.1f}" fill="{escape(colour)}" rx="1.5"/>'
                )

    for idx, label in enumerate(labels):
        x = margin_left + (idx + 0.5) * category_width
        parts.append(
            f'<text x="{x:.1f}" y="{baseline + 16}" text-anchor="middle" font-size="9" fill="#475569">{escape(label)}</text>'
        )

    parts.extend(
        _legend(
            [(name, _series_colour(dataset, index)) for index, (name, _v, dataset) in enumerate(series)],
            HEIGHT - 40,
        )
    )
    return parts


def _slice_chart_svg(chart_type: str, labels: list[str], series: list) -> list[str]:
    name, values, dataset = series[0]
    values = [max(value or 0.0, 0.0) for value in values[: len(labels)]]
    total = sum(values)
    colours = _slice_colours(dataset, len(values))
    cx, cy, radius = 200.0, HEIGHT / 2, 120.0
    inner = radius * 0.55 if chart_type == "doughnut" else 0.0

    parts: list[str] = []
    if total <= 0:
        parts.append(f'<circle cx="{cx}" cy="{cy}" r="{radius}" fill="#E2E8F0"/>')
    else:
        angle = -math.pi / 2
        for value, colour in zip(values, colours):
            if value <= 0:
                continue
            sweep = (value / total) * 2 * math.pi
            if sweep >= 2 * math.pi - 1e-9:
                parts.append(f'<circle cx="{cx}" cy="{cy}" r="{radius}" fill="{escape(colour)}"/>')
            else:
                x1, y1 = cx + radius * math.cos(angle), cy + radius * math.sin(angle)
                x2, y2 = cx + radius * math.cos(angle + sweep), cy + radius * math.sin(angle + sweep)
                large_arc = 1 if sweep > math.pi else 0
                parts.append(
                    f'<path d="M{cx:.1f},{cy:.1f} L{x1:.1f},{y1:.1f} A{radius:.1f},{radius:.1f} 0 {large_arc} 1 {x2:.1f},{y2:.1f} Z" '
                    f'fill="{escape(colour)}" stroke="white" stroke-width="1"/>'
                )
            angle += sweep
    if inner:
        parts.append(f'<circle cx="{cx}" cy="{cy}" r="{inner:.1f}" fill="white"/>')

    for index, (label, value, colour) in enumerate(zip(labels, values, colours)):
        y = 40 + index * 18
        share = f" ({value / total * 100:.1f}%)" if total > 0 else ""
        parts.append(f'<rect x="380" y="{y - 9}" width="10" height="10" fill="{escape(colour)}" rx="1"/>')
        parts.append(f'<text x="396" y="{y}" font-size="10" fill="#334155">{escape(label)}{share}</text>')
    return parts


def _radar_chart_svg(labels: list[str], series: list) -> list[str]:
    cx, cy, radius = WIDTH / 2, (HEIGHT - 40) / 2 + 10, 110.0
    count = max(len(labels), 1)
    max_value = max((v for _n, values, _d in series for v in values if v is not None), default=0.0)
    if max_value <= 0:
        max_value = 1.0

    def point(idx: int, fraction: float) -> tuple[float, float]:
        angle = -math.pi / 2 + idx * 2 * math.pi / count
        return cx + radius * fraction * math.cos(angle), cy + radius * fraction * math.sin(angle)

    parts: list[str] = []
    for ring in (0.25, 0.5, 0.75, 1.0):
        ring_points = " ".join(f"{x:.1f},{y:.1f}" for x, y in (point(i, ring) for i in range(count)))
        parts.append(f'<polygon points="{ring_points}" fill="none" stroke="#E2E8F0" stroke-width="0.8"/>')
    for idx, label in enumerate(labels):
        x, y = point(idx, 1.12)
        parts.append(f'<text x="{x:.1f}" y="{y:.1f}" text-anchor="middle" font-size="9" fill="#475569">{escape(label)}</text>')

    for series_index, (_name, values, dataset) in enumerate(series):
        colour = _series_colour(dataset, series_index)
        polygon = " ".join(
            f"{x:.1f},{y:.1f}"
            for x, y in (
                point(idx, max(value or 0.0, 0.0) / max_value)
                for idx, value in enumerate(values[: len(labels)])
            )
        )
        parts.append(
            f'<polygon points="{polygon}" fill="{escape(colour)}" fill-opacity="0.2" stroke="{escape(colour)}" stroke-width="1.8"/>'
        )

    parts.extend(
        _legend(
            [(name, _series_colour(dataset, index)) for index, (name, _v, dataset) in enumerate(series)],
            HEIGHT - 12,
        )
    )
    return parts


def build_chart_svg(payload: dict) -> str:
    """Render a Chart.js-style payload as a static SVG; empty string if unusable."""
    chart_type, labels, series = _normalize(payload)
    if not labels or not series:
        return ""

    if chart_type in ("pie", "doughnut"):
        body = _slice_chart_svg(chart_type, labels, series)
    elif chart_type == "radar":
        body = _radar_chart_svg(labels, series)
    else:
        body = _axis_chart_svg(chart_type, labels, series)

    return "".join(
        [
            f'<svg viewBox="0 0 {WIDTH} {HEIGHT}" xmlns="http://www.w3.org/2000/svg" role="img" aria-label="Chart">',
            f'<rect x="0" y="0" width="{WIDTH}" height="{HEIGHT}" fill="white"/>',
            *body,
            "</svg>",
        ]
    )


def settle_charts(markup: str) -> tuple[str, int]:
    """Replace every chart canvas placeholder with an inline SVG.

    Returns:
        Tuple of (settled_markup, charts_rendered)
    """
    rendered = 0
    for match in _SPEC_PATTERN.finditer(markup):
        chart_id = match.group("id")
        try:
            payload = json.loads(match.group("spec").replace("<\\/", "</"))
        except (TypeError, ValueError):
            continue
        if not isinstance(payload, dict):
            continue
        svg = build_chart_svg(payload) or "<p class='chart-empty'>No chart data available.</p>"
        placeholder = _PLACEHOLDER_TEMPLATE.format(id=chart_id)
        if placeholder not in markup:
            continue
        markup = markup.replace(
            placeholder,
            f'<div class="chart-wrapper chart-static" data-chart-id="{chart_id}">{svg}</div>',
        )
        rendered += 1
    return markup, rendered
