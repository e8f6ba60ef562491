"""
Export module.

Renders report records to HTML or Markdown and converts HTML to PDF.
"""

from .documents import ExportedReport, export_filename, export_report
from .html import render_html
from .markdown_doc import render_markdown_document
from .pdf import ExportResult, ExportState, PageOptions, WeasyPrintEngine, export_document

__all__ = [
    "ExportedReport",
    "export_filename",
    "export_report",
    "render_html",
    "render_markdown_document",
    "ExportResult",
    "ExportState",
    "PageOptions",
    "WeasyPrintEngine",
    "export_document",
]
