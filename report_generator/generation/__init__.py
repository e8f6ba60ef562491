"""
Generation pipeline module.

Runs research, structured extraction and chart enrichment, either to
completion or as a stream of progress events.
"""

from .charts import enrich_charts, enrich_record
from .extraction import run_extraction
from .pipeline import RunProgress, generate_report, stream_report_generation
from .research import ResearchResult, run_research

__all__ = [
    "enrich_charts",
    "enrich_record",
    "run_extraction",
    "RunProgress",
    "generate_report",
    "stream_report_generation",
    "ResearchResult",
    "run_research",
]
