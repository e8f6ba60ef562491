from __future__ import annotations

import asyncio
import json
import unittest

import httpx
from openai import APIConnectionError

from report_generator.errors import (
    ExtractionSchemaViolation,
    ExtractionUnavailable,
    ResearchUnavailable,
)
from report_generator.generation.extraction import run_extraction
from report_generator.generation.prompts import (
    build_extraction_prompt,
    build_extraction_retry_prompt,
    build_research_prompt,
)
from report_generator.generation.research import run_research
from report_generator.schemas import ValidationIssue

from fakes import (
    FakeChatClient,
    chat_response,
    make_config,
    make_record_payload,
    make_settings,
    url_citation,
)


def _connection_error() -> APIConnectionError:
    return APIConnectionError(request=httpx.Request("POST", "https://api.example/v1/chat/completions"))


class PromptTests(unittest.TestCase):
    def test_research_prompt_is_deterministic_and_scoped(self):
        config = make_config(region="Europe")

        first = build_research_prompt(config)
        second = build_research_prompt(config)

        self.assertEqual(first, second)
        self.assertIn("oat milk for 2025 in Europe", first)
        self.assertIn("Analysis Type: market-analysis", first)

    def test_research_prompt_mentions_search_when_enabled(self):
        prompt = build_research_prompt(make_config(), web_search=True)

        self.assertTrue(prompt.startswith("Search the web"))

    def test_extraction_prompt_embeds_research_and_schema(self):
        prompt = build_extraction_prompt("RESEARCH NOTES", make_config())

        self.assertIn("RESEARCH NOTES", prompt)
        self.assertIn('"executiveSummary"', prompt)
        self.assertIn("3-4 meaningful charts", prompt)

    def test_extraction_prompt_without_charts(self):
        prompt = build_extraction_prompt("notes", make_config(includeCharts=False))

        self.assertIn('No charts: return an empty "charts" list', prompt)

    def test_retry_prompt_lists_issues(self):
        issues = [ValidationIssue("recommendations", "Field required")]

        prompt = build_extraction_retry_prompt("notes", make_config(), issues)

        self.assertIn("## Corrections Required", prompt)
        self.assertIn("- recommendations: Field required", prompt)


class ResearchStageTests(unittest.IsolatedAsyncioTestCase):
    async def test_returns_text_and_distinct_sources(self):
        client = FakeChatClient(
            chat_response(
                "  Oat milk research notes.  ",
                annotations=[
                    url_citation("https://a.example", "A"),
                    url_citation("https://a.example", "A again"),
                    url_citation("https://b.example"),
                ],
            )
        )

        result = await run_research(make_config(), client=client, settings=make_settings())

        self.assertEqual(result.text, "Oat milk research notes.")
        self.assertEqual([s.url for s in result.sources], ["https://a.example", "https://b.example"])
        self.assertEqual(result.sources_found, 2)
        request = client.calls[0]
        self.assertEqual(request["model"], "test-model")
        self.assertEqual(request["max_tokens"], 4000)
        self.assertEqual(request["temperature"], 0.4)
        self.assertNotIn("web_search_options", request)

    async def test_web_search_uses_search_model_without_sampling(self):
        client = FakeChatClient(chat_response("notes"))
        settings = make_settings(ENABLE_WEB_SEARCH=True, RESEARCH_SEARCH_MODEL="search-model")

        result = await run_research(make_config(), client=client, settings=settings)

        request = client.calls[0]
        self.assertTrue(result.web_search)
        self.assertEqual(request["model"], "search-model")
        self.assertEqual(request["web_search_options"], {})
        self.assertNotIn("temperature", request)

    async def test_timeout_raises_research_unavailable(self):
        async def never_answers(**_):
            await asyncio.sleep(5)

        client = FakeChatClient(never_answers)
        settings = make_settings(RESEARCH_TIMEOUT_SECONDS=0.05)

        with self.assertRaises(ResearchUnavailable) as context:
            await run_research(make_config(), client=client, settings=settings)

        self.assertTrue(context.exception.timed_out)
        self.assertEqual(len(client.calls), 1)

    async def test_service_failure_raises_research_unavailable(self):
        client = FakeChatClient(_connection_error())

        with self.assertRaises(ResearchUnavailable) as context:
            await run_research(make_config(), client=client, settings=make_settings())

        self.assertFalse(context.exception.timed_out)
        self.assertEqual(len(client.calls), 1)

    async def test_empty_answer_raises_research_unavailable(self):
        client = FakeChatClient(chat_response("   "))

        with self.assertRaises(ResearchUnavailable):
            await run_research(make_config(), client=client, settings=make_settings())


class ExtractionStageTests(unittest.IsolatedAsyncioTestCase):
    async def test_valid_first_answer_is_returned(self):
        client = FakeChatClient(chat_response(json.dumps(make_record_payload())))

        record = await run_extraction("notes", make_config(), client=client, settings=make_settings())

        self.assertEqual(len(record.recommendations), 2)
        self.assertEqual(len(client.calls), 1)
        request = client.calls[0]
        self.assertEqual(request["response_format"], {"type": "json_object"})
        self.assertEqual(request["temperature"], 0.2)
        self.assertEqual(request["max_tokens"], 3000)

    async def test_schema_violation_is_retried_once_with_stricter_prompt(self):
        invalid = make_record_payload()
        del invalid["recommendations"]
        client = FakeChatClient(
            chat_response(json.dumps(invalid)),
            chat_response(json.dumps(make_record_payload())),
        )

        record = await run_extraction("notes", make_config(), client=client, settings=make_settings())

        self.assertEqual(len(record.recommendations), 2)
        self.assertEqual(len(client.calls), 2)
        retry_prompt = client.calls[1]["messages"][1]["content"]
        self.assertIn("## Corrections Required", retry_prompt)
        self.assertIn("- recommendations: Field required", retry_prompt)

    async def test_persistent_violation_raises_after_retry(self):
        invalid = make_record_payload()
        del invalid["recommendations"]
        client = FakeChatClient(chat_response(json.dumps(invalid)), chat_response("not json"))

        with self.assertRaises(ExtractionSchemaViolation) as context:
            await run_extraction("notes", make_config(), client=client, settings=make_settings())

        self.assertEqual(context.exception.attempts, 2)
        self.assertEqual(context.exception.issues[0].path, "$")
        self.assertEqual(context.exception.kind, "extraction_schema_violation")

    async def test_retry_count_is_bounded(self):
        invalid = json.dumps(make_record_payload(keyFindings=[]))
        client = FakeChatClient(chat_response(invalid), chat_response(invalid))

        with self.assertRaises(ExtractionSchemaViolation):
            await run_extraction(
                "notes", make_config(), client=client, settings=make_settings(), max_retries=5
            )

        self.assertEqual(len(client.calls), 2)

    async def test_retries_can_be_disabled(self):
        client = FakeChatClient(chat_response("{}"))

        with self.assertRaises(ExtractionSchemaViolation) as context:
            await run_extraction(
                "notes", make_config(), client=client, settings=make_settings(EXTRACTION_MAX_RETRIES=0)
            )

        self.assertEqual(context.exception.attempts, 1)
        self.assertEqual(len(client.calls), 1)

    async def test_charts_are_dropped_when_not_requested(self):
        client = FakeChatClient(chat_response(json.dumps(make_record_payload())))

        record = await run_extraction(
            "notes", make_config(includeCharts=False), client=client, settings=make_settings()
        )

        self.assertEqual(record.charts, [])

    async def test_service_failure_raises_extraction_unavailable(self):
        client = FakeChatClient(_connection_error())

        with self.assertRaises(ExtractionUnavailable):
            await run_extraction("notes", make_config(), client=client, settings=make_settings())


if __name__ == "__main__":
    unittest.main()
