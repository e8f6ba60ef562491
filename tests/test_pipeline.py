from __future__ import annotations

import asyncio
import json
import unittest
from unittest.mock import patch

from report_generator.errors import ExtractionSchemaViolation, GenerationError, ResearchUnavailable
from report_generator.generation.pipeline import (
    RunProgress,
    generate_report,
    stream_report_generation,
)
from report_generator.schemas import PHASE_ORDER

from fakes import (
    FakeChatClient,
    chat_response,
    make_config,
    make_record_payload,
    make_settings,
    url_citation,
)


def _successful_client() -> FakeChatClient:
    return FakeChatClient(
        chat_response("Oat milk notes.", annotations=[url_citation("https://a.example", "Source A")]),
        chat_response(json.dumps(make_record_payload())),
    )


async def _collect(stream) -> list:
    return [event async for event in stream]


class GenerateReportTests(unittest.IsolatedAsyncioTestCase):
    async def test_runs_stages_in_order_and_enriches_charts(self):
        client = _successful_client()

        record = await generate_report(make_config(), client=client, settings=make_settings())

        self.assertEqual(len(client.calls), 2)
        self.assertNotIn("response_format", client.calls[0])
        self.assertIn("Oat milk notes.", client.calls[1]["messages"][1]["content"])
        self.assertEqual([chart.id for chart in record.charts], ["chart-1", "chart-2"])
        self.assertIn("scales", record.charts[0].options)
        self.assertNotIn("scales", record.charts[1].options)
        self.assertEqual([s.url for s in record.sources], ["https://a.example"])

    async def test_sources_are_omitted_when_not_requested(self):
        record = await generate_report(
            make_config(includeSources=False), client=_successful_client(), settings=make_settings()
        )

        self.assertIsNone(record.sources)

    async def test_research_timeout_stops_before_extraction(self):
        async def never_answers(**_):
            await asyncio.sleep(5)

        client = FakeChatClient(never_answers)

        with self.assertRaises(ResearchUnavailable) as context:
            await generate_report(
                make_config(), client=client, settings=make_settings(RESEARCH_TIMEOUT_SECONDS=0.05)
            )

        self.assertTrue(context.exception.timed_out)
        self.assertEqual(len(client.calls), 1)

    async def test_unexpected_failure_is_raised_as_generation_error(self):
        client = FakeChatClient(RuntimeError("boom"))

        with self.assertLogs("report_generator.generation.pipeline", level="ERROR"):
            with self.assertRaises(GenerationError) as context:
                await generate_report(make_config(), client=client, settings=make_settings())

        self.assertEqual(context.exception.kind, "generation_error")
        self.assertIn("boom", context.exception.message)
        self.assertIsInstance(context.exception.__cause__, RuntimeError)

    async def test_missing_client_configuration_is_raised_as_generation_error(self):
        with patch(
            "report_generator.generation.pipeline.get_async_client",
            side_effect=ValueError("No generation service auth configured."),
        ):
            with self.assertLogs("report_generator.generation.pipeline", level="ERROR"):
                with self.assertRaises(GenerationError) as context:
                    await generate_report(make_config(), settings=make_settings())

        self.assertIn("No generation service auth configured", context.exception.message)

    async def test_extraction_retry_recovers(self):
        invalid = make_record_payload()
        del invalid["recommendations"]
        client = FakeChatClient(
            chat_response("notes"),
            chat_response(json.dumps(invalid)),
            chat_response(json.dumps(make_record_payload())),
        )

        record = await generate_report(make_config(), client=client, settings=make_settings())

        self.assertEqual(len(client.calls), 3)
        self.assertTrue(record.recommendations)


class StreamReportGenerationTests(unittest.IsolatedAsyncioTestCase):
    async def test_events_are_ordered_and_end_with_one_completion(self):
        events = await _collect(
            stream_report_generation(make_config(), client=_successful_client(), settings=make_settings())
        )

        phases = [PHASE_ORDER.index(event.phase) for event in events]
        progress = [event.progress for event in events]
        self.assertEqual(phases, sorted(phases))
        self.assertEqual(progress, sorted(progress))
        self.assertEqual([event.progress for event in events], [10, 35, 40, 60, 80, 90, 100])

        terminal = [event for event in events if event.is_terminal]
        self.assertEqual(len(terminal), 1)
        self.assertIs(terminal[0], events[-1])
        self.assertEqual(events[-1].type, "complete")
        self.assertIsNotNone(events[-1].report)
        self.assertEqual(events[1].sources_found, 1)
        self.assertEqual(events[4].charts_generated, 2)

    async def test_failure_emits_single_error_event_after_partial_progress(self):
        client = FakeChatClient(chat_response("notes"), chat_response("{}"), chat_response("{}"))

        events = await _collect(
            stream_report_generation(make_config(), client=client, settings=make_settings())
        )

        last = events[-1]
        self.assertEqual(last.type, "error")
        self.assertEqual(last.phase, "analysis")
        self.assertEqual(last.progress, 40)
        self.assertEqual(last.error["kind"], "extraction_schema_violation")
        self.assertEqual(sum(1 for event in events if event.is_terminal), 1)
        self.assertNotIn("complete", [event.type for event in events])

    async def test_unexpected_failure_becomes_generation_error(self):
        client = FakeChatClient(RuntimeError("boom"))

        with self.assertLogs("report_generator.generation.pipeline", level="ERROR"):
            events = await _collect(
                stream_report_generation(make_config(), client=client, settings=make_settings())
            )

        self.assertEqual(events[-1].type, "error")
        self.assertEqual(events[-1].error["kind"], "generation_error")

    async def test_closing_stream_early_skips_remaining_stages(self):
        client = _successful_client()
        stream = stream_report_generation(make_config(), client=client, settings=make_settings())

        first = await stream.__anext__()
        await stream.aclose()

        self.assertEqual(first.phase, "research")
        self.assertEqual(client.calls, [])

    async def test_cancelling_consumer_cancels_inflight_request(self):
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def slow_research(**_):
            started.set()
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        client = FakeChatClient(slow_research)

        async def consume():
            async for _ in stream_report_generation(make_config(), client=client, settings=make_settings()):
                pass

        task = asyncio.create_task(consume())
        await asyncio.wait_for(started.wait(), timeout=1)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertTrue(cancelled.is_set())
        self.assertEqual(len(client.calls), 1)


class RunProgressTests(unittest.TestCase):
    def test_rejects_backwards_phase(self):
        run = RunProgress()
        run.event("charts", 60, "Generating visualizations...")

        with self.assertRaises(RuntimeError):
            run.event("analysis", 70, "late")

    def test_rejects_decreasing_progress(self):
        run = RunProgress()
        run.event("research", 35, "Found 0 sources")

        with self.assertRaises(RuntimeError):
            run.event("research", 10, "again")

    def test_no_events_after_terminal(self):
        run = RunProgress()
        run.failure(ExtractionSchemaViolation([]))

        with self.assertRaises(RuntimeError):
            run.event("generation", 90, "Finalizing report...")
        with self.assertRaises(RuntimeError):
            run.failure(ExtractionSchemaViolation([]))


if __name__ == "__main__":
    unittest.main()
