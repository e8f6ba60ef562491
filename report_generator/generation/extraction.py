"""
Extraction stage: coerce research text into a validated ``ReportRecord``.

The service is asked for a JSON object, but its answer is only trusted after
it passes ``validate_record``. A schema violation gets at most
``EXTRACTION_MAX_RETRIES`` stricter re-prompts (default one).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from openai import APITimeoutError, AsyncOpenAI, OpenAIError

from ..config.settings import Settings, get_settings
from ..errors import ExtractionSchemaViolation, ExtractionUnavailable
from ..infra.llm import get_async_client, resolve_stage_runtime
from ..schemas import ReportConfig, ReportRecord, ValidationIssue, validate_record_json
from .prompts import (
    EXTRACTION_SYSTEM_PROMPT,
    build_extraction_prompt,
    build_extraction_retry_prompt,
)

logger = logging.getLogger(__name__)

MAX_RETRY_CEILING = 1


async def _request_structured_output(
    client: AsyncOpenAI,
    prompt: str,
    *,
    model: str,
    max_tokens: int,
    timeout_seconds: float,
) -> str:
    try:
        response = await asyncio.wait_for(
            client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.2,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
                timeout=timeout_seconds,
            ),
            timeout=timeout_seconds,
        )
    except (asyncio.TimeoutError, APITimeoutError) as exc:
        raise ExtractionUnavailable(
            f"Extraction request timed out after {timeout_seconds:.0f}s",
            timed_out=True,
        ) from exc
    except OpenAIError as exc:
        raise ExtractionUnavailable(f"Extraction request failed: {exc}") from exc

    if not response.choices:
        return ""
    return response.choices[0].message.content or ""


async def run_extraction(
    research_text: str,
    config: ReportConfig,
    *,
    client: Optional[AsyncOpenAI] = None,
    settings: Optional[Settings] = None,
    max_retries: Optional[int] = None,
) -> ReportRecord:
    """Turn research text into a schema-valid report record.

    Raises:
        ExtractionSchemaViolation: every attempt produced invalid output.
        ExtractionUnavailable: the service call itself failed.
    """
    settings = settings or get_settings()
    runtime = resolve_stage_runtime("extraction", settings)
    retries = settings.EXTRACTION_MAX_RETRIES if max_retries is None else max_retries
    retries = max(0, min(retries, MAX_RETRY_CEILING))
    client = client or get_async_client()

    issues: list[ValidationIssue] = []
    attempts = 0
    for attempt in range(retries + 1):
        attempts = attempt + 1
        if attempt == 0:
            prompt = build_extraction_prompt(research_text, config)
        else:
            logger.warning(
                "Extraction output rejected (%d issue(s)); re-prompting (attempt %d/%d)",
                len(issues),
                attempts,
                retries + 1,
            )
            prompt = build_extraction_retry_prompt(research_text, config, issues)

        raw_output = await _request_structured_output(
            client,
            prompt,
            model=runtime.model,
            max_tokens=runtime.max_tokens,
            timeout_seconds=runtime.timeout_seconds,
        )
        result = validate_record_json(raw_output)
        if result.ok:
            record = result.value
            if not config.include_charts and record.charts:
                record = record.model_copy(update={"charts": []})
            logger.info(
                "Extraction completed (attempts=%d, findings=%d, charts=%d)",
                attempts,
                len(record.key_findings),
                len(record.charts),
            )
            return record
        issues = list(result.errors)

    logger.error("Extraction failed schema validation after %d attempt(s)", attempts)
    raise ExtractionSchemaViolation(issues, attempts=attempts)
