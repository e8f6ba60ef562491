from __future__ import annotations

import unittest
from datetime import datetime, timezone
from multiprocessing import TimeoutError as WorkerTimeout
from unittest.mock import MagicMock, patch

from report_generator.errors import (
    EngineLaunchFailure,
    ExportError,
    PaginationFailure,
    RenderTimeout,
)
from report_generator.export import documents
from report_generator.export.documents import export_filename, export_report
from report_generator.export.html import chart_payload, render_html
from report_generator.export.markdown_doc import render_markdown_document
from report_generator.export.pdf import ExportState, PageOptions, export_document
from report_generator.export.svg import build_chart_svg, settle_charts
from report_generator.generation.charts import enrich_record
from report_generator.schemas import validate_record

from fakes import FakeEngine, make_config, make_record_payload

GENERATED_AT = datetime(2025, 3, 14, tzinfo=timezone.utc)


def _record(**overrides):
    return enrich_record(validate_record(make_record_payload(**overrides)).value)


class ExportDocumentTests(unittest.TestCase):
    def test_successful_export_walks_every_state_and_closes_engine(self):
        engine = FakeEngine(pages=3)

        result = export_document("<html></html>", title="Oat Milk Report", engine_factory=lambda: engine, timeout_seconds=7)

        self.assertEqual(result.content, b"%PDF-1.7 fake")
        self.assertEqual(result.page_count, 3)
        self.assertEqual(
            result.transitions,
            [
                ExportState.IDLE,
                ExportState.LAUNCHING,
                ExportState.LOADING,
                ExportState.PAGINATING,
                ExportState.DONE,
            ],
        )
        self.assertEqual(engine.timeouts, [7, 7])
        self.assertIn('content: "Oat Milk Report"', engine.stylesheet)
        self.assertEqual(engine.closed, 1)

    def test_load_timeout_raises_render_timeout_and_closes_engine(self):
        engine = FakeEngine(load_error=WorkerTimeout())

        with self.assertRaises(RenderTimeout):
            export_document("<html></html>", engine_factory=lambda: engine, timeout_seconds=1)

        self.assertEqual(engine.closed, 1)

    def test_pagination_error_raises_pagination_failure(self):
        engine = FakeEngine(paginate_error=OSError("disk full"))

        with self.assertRaises(PaginationFailure) as context:
            export_document("<html></html>", engine_factory=lambda: engine, timeout_seconds=1)

        self.assertIn("disk full", context.exception.message)
        self.assertEqual(engine.closed, 1)

    def test_load_error_raises_export_error(self):
        engine = FakeEngine(load_error=ValueError("bad markup"))

        with self.assertRaises(ExportError) as context:
            export_document("<html></html>", engine_factory=lambda: engine, timeout_seconds=1)

        self.assertEqual(context.exception.kind, "export_error")
        self.assertEqual(engine.closed, 1)

    def test_engine_that_cannot_start_raises_launch_failure(self):
        def broken_factory():
            raise OSError("no display libraries")

        with self.assertRaises(EngineLaunchFailure):
            export_document("<html></html>", engine_factory=broken_factory, timeout_seconds=1)


class PageOptionsTests(unittest.TestCase):
    def test_stylesheet_sets_size_margins_and_page_counter(self):
        css = PageOptions(header_title='Say "hi"').stylesheet()

        self.assertIn("size: A4;", css)
        self.assertIn("margin: 1in 0.75in 1in 0.75in;", css)
        self.assertIn('counter(page) " of " counter(pages)', css)
        self.assertIn('content: "Say \\"hi\\"";', css)

    def test_header_and_footer_are_optional(self):
        css = PageOptions(size="Letter", page_numbers=False).stylesheet()

        self.assertIn("size: Letter;", css)
        self.assertNotIn("@top-center", css)
        self.assertNotIn("@bottom-center", css)


class ChartSettlementTests(unittest.TestCase):
    def test_every_chart_type_draws(self):
        for chart_type in ("bar", "line", "pie", "doughnut", "radar"):
            record = _record(
                charts=[
                    {
                        "type": chart_type,
                        "title": chart_type,
                        "labels": ["A", "B", "C"],
                        "datasets": [{"label": "S", "data": [1, 2, 3]}],
                    }
                ]
            )
            svg = build_chart_svg(chart_payload(record.charts[0]))
            self.assertTrue(svg.startswith("<svg"), chart_type)
            self.assertTrue(svg.endswith("</svg>"), chart_type)

    def test_unusable_payload_draws_nothing(self):
        self.assertEqual(build_chart_svg({"type": "bar", "data": {"labels": [], "datasets": []}}), "")

    def test_placeholders_are_replaced_with_svg(self):
        markup = render_html(_record(), make_config(), generated_at=GENERATED_AT)

        settled, rendered = settle_charts(markup)

        self.assertEqual(rendered, 2)
        self.assertNotIn("<canvas", settled)
        self.assertIn('<div class="chart-wrapper chart-static" data-chart-id="chart-1"><svg', settled)

    def test_markup_without_charts_is_unchanged(self):
        markup = render_html(_record(charts=[]), make_config(), generated_at=GENERATED_AT)

        self.assertEqual(settle_charts(markup), (markup, 0))


class ExportReportTests(unittest.TestCase):
    def test_html_export_returns_rendered_markup_without_engine(self):
        record, config = _record(), make_config()
        factory = MagicMock()

        with patch.object(documents, "export_document") as export_mock:
            exported = export_report(record, config, "html", generated_at=GENERATED_AT, engine_factory=factory)

        export_mock.assert_not_called()
        factory.assert_not_called()
        self.assertEqual(exported.content, render_html(record, config, generated_at=GENERATED_AT).encode("utf-8"))
        self.assertEqual(exported.filename, "OatMilkReport.html")
        self.assertEqual(exported.media_type, "text/html; charset=utf-8")

    def test_markdown_export(self):
        record, config = _record(), make_config()

        exported = export_report(record, config, "markdown", generated_at=GENERATED_AT)

        self.assertEqual(
            exported.content,
            render_markdown_document(record, config, generated_at=GENERATED_AT).encode("utf-8"),
        )
        self.assertEqual(exported.filename, "OatMilkReport.md")

    def test_pdf_export_uses_engine(self):
        engine = FakeEngine()

        exported = export_report(_record(), make_config(), "pdf", engine_factory=lambda: engine)

        self.assertEqual(exported.content, b"%PDF-1.7 fake")
        self.assertEqual(exported.media_type, "application/pdf")
        self.assertEqual(exported.filename, "OatMilkReport.pdf")
        self.assertIn("Oat Milk Report", engine.loaded_markup)
        self.assertEqual(engine.closed, 1)

    def test_unsupported_format_is_rejected(self):
        with self.assertRaises(ValueError):
            export_report(_record(), make_config(), "docx")

    def test_filename_keeps_only_ascii_alphanumerics(self):
        self.assertEqual(export_filename("Q3 Report: EV/Charging (2025)!", "pdf"), "Q3ReportEVCharging2025.pdf")
        self.assertEqual(export_filename("¿?", "html"), "report.html")


if __name__ == "__main__":
    unittest.main()
