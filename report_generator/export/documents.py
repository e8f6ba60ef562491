"""
Export entry point: render a record and, for PDF, paginate it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..schemas import ReportConfig, ReportRecord
from .html import render_html
from .markdown_doc import render_markdown_document
from .pdf import EngineFactory, export_document

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    "pdf": "application/pdf",
    "html": "text/html; charset=utf-8",
    "markdown": "text/markdown; charset=utf-8",
}
FILE_EXTENSIONS = {"pdf": "pdf", "html": "html", "markdown": "md"}


@dataclass(frozen=True)
class ExportedReport:
    content: bytes
    filename: str
    media_type: str


def export_filename(title: str, fmt: str) -> str:
    """Strip everything outside ``[A-Za-z0-9]`` from the title and add the extension."""
    safe_name = re.sub(r"[^A-Za-z0-9]", "", title) or "report"
    return f"{safe_name}.{FILE_EXTENSIONS[fmt]}"


def export_report(
    record: ReportRecord,
    config: ReportConfig,
    fmt: str = "pdf",
    *,
    generated_at: Optional[datetime] = None,
    engine_factory: Optional[EngineFactory] = None,
) -> ExportedReport:
    """
    Export a report record.

    HTML and Markdown are returned exactly as rendered; the PDF engine is
    only started for ``fmt="pdf"``.

    Raises:
        ValueError: unsupported format
        ExportError: PDF export failed
    """
    if fmt not in MEDIA_TYPES:
        raise ValueError(f"Unsupported export format: {fmt}")

    filename = export_filename(config.title, fmt)
    if fmt == "markdown":
        content = render_markdown_document(record, config, generated_at=generated_at).encode("utf-8")
    else:
        markup = render_html(record, config, generated_at=generated_at)
        if fmt == "html":
            content = markup.encode("utf-8")
        else:
            content = export_document(markup, title=config.title, engine_factory=engine_factory).content

    logger.info("Exported report (format=%s, filename=%s, bytes=%d)", fmt, filename, len(content))
    return ExportedReport(content=content, filename=filename, media_type=MEDIA_TYPES[fmt])
