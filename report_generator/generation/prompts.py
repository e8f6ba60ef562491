"""
Prompt builders for the research and extraction calls.

Every builder is a pure function of its inputs so identical configs always
produce identical prompts.
"""

from __future__ import annotations

from typing import Iterable

from ..schemas import ReportConfig, ValidationIssue


RESEARCH_SYSTEM_PROMPT = (
    "You are a senior market research analyst. You write thorough, factual research "
    "notes with specific figures, company names and dates."
)

EXTRACTION_SYSTEM_PROMPT = (
    "You are an expert business analyst. You convert research notes into a structured "
    "report and reply with a single JSON object only."
)

REPORT_RECORD_SCHEMA = """{
  "executiveSummary": string,                 // required, 2-3 key insights
  "keyFindings": [string, ...],               // required, at least one item
  "marketSize": {                             // optional, omit unknown fields
    "current": number,
    "projected": number,
    "unit": string,                           // e.g. "B USD"
    "growthRate": number                      // percent, e.g. 7.5
  },
  "charts": [                                 // required, may be empty
    {
      "type": "bar" | "line" | "pie" | "doughnut" | "radar",
      "title": string,
      "labels": [string, ...],
      "datasets": [                           // at least one series
        {
          "label": string,
          "data": [number, ...],              // exactly one value per label
          "backgroundColor": [string, ...],   // optional
          "borderColor": string               // optional
        }
      ]
    }
  ],
  "recommendations": [string, ...],           // required, at least one item
  "riskFactors": [string, ...],               // optional
  "methodology": string                       // optional
}"""

ANALYSIS_TYPE_FOCUS = {
    "market-analysis": "overall market size, segmentation and growth outlook",
    "competitive-analysis": "key players, market share and competitive positioning",
    "trend-analysis": "consumer behaviour shifts, emerging trends and their trajectory",
    "financial-analysis": "revenue, margins, investment activity and financial performance",
}


def _scope_phrase(config: ReportConfig) -> str:
    parts = [config.topic]
    if config.timeframe:
        parts.append(f"for {config.timeframe}")
    if config.region:
        parts.append(f"in {config.region}")
    return " ".join(parts)


def build_research_prompt(config: ReportConfig, *, web_search: bool = False) -> str:
    """Build the long-form research prompt from the report configuration."""
    opener = (
        f"Search the web for comprehensive information about {_scope_phrase(config)}."
        if web_search
        else f"Generate comprehensive market research information about {_scope_phrase(config)}."
    )
    lines = [
        opener,
        "",
        "Focus on gathering:",
        "1. Market size and growth metrics with specific numbers",
        "2. Key players and market share data",
        "3. Consumer behavior and trends",
        "4. Competitive landscape",
        "5. Growth drivers and challenges",
        "6. Future projections and forecasts",
        "",
        f"Analysis Type: {config.analysis_type}",
        f"Primary focus: {ANALYSIS_TYPE_FOCUS[config.analysis_type]}",
        "Required depth: Professional analyst level",
    ]
    if web_search:
        lines.append("Sources needed: Recent, authoritative business and market research sources")
    else:
        lines.append("Provide realistic figures, growth rates and company names where known.")
    return "\n".join(lines)


def build_extraction_prompt(research_text: str, config: ReportConfig) -> str:
    """Build the structured-extraction prompt embedding the research text."""
    chart_instructions = (
        "4. 3-4 meaningful charts with data taken from the research:\n"
        "   - Market size/growth charts (bar or line)\n"
        "   - Market share charts (pie or doughnut)\n"
        "   - Trend analysis (line charts)\n"
        "   - Competitive comparison (bar charts)"
        if config.include_charts
        else "4. No charts: return an empty \"charts\" list"
    )
    return f"""Analyze the following research data and create a structured report titled "{config.title}".

## Research Data
{research_text}

## Report Requirements
1. Executive Summary (2-3 key insights)
2. Key Findings (5-7 specific data points)
3. Market Size information (only the figures the research supports)
{chart_instructions}
5. Strategic Recommendations (3-5 actionable items)
6. Risk Factors (if applicable)
7. Methodology notes

Analysis Type: {config.analysis_type}

Make sure all data is factual and based on the research provided.

## Output Format
Return one JSON object matching this schema (comments are guidance only):
{REPORT_RECORD_SCHEMA}"""


def build_extraction_retry_prompt(
    research_text: str,
    config: ReportConfig,
    issues: Iterable[ValidationIssue],
) -> str:
    """Stricter re-prompt listing what was wrong with the previous answer."""
    problems = "\n".join(f"- {issue.path}: {issue.reason}" for issue in issues)
    return f"""{build_extraction_prompt(research_text, config)}

## Corrections Required
Your previous answer did not match the schema:
{problems}

Return ONLY the JSON object. Every required field must be present, and every
dataset "data" list must contain exactly one number per entry in "labels"."""
