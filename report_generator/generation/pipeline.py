"""
Generation pipeline: research -> extraction -> chart enrichment.

Handles:
- Strictly sequential stages (extraction consumes research output)
- Progress events with non-decreasing phase and percentage
- Exactly one terminal event per streamed run
- Consumer abandonment observed at the next suspension point
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from openai import AsyncOpenAI

from ..config.settings import Settings, get_settings
from ..errors import ExtractionSchemaViolation, GenerationError, ReportError
from ..infra.llm import get_async_client
from ..schemas import PHASE_ORDER, ProgressEvent, ReportConfig, ReportRecord, validate_record
from .charts import enrich_record
from .extraction import run_extraction
from .research import ResearchResult, run_research

logger = logging.getLogger(__name__)


@dataclass
class RunProgress:
    """Tracks one run's position and refuses out-of-order or post-terminal events."""

    phase: str = PHASE_ORDER[0]
    progress: int = 0
    terminated: bool = False

    def _advance(self, phase: str, progress: int) -> None:
        if self.terminated:
            raise RuntimeError("Progress stream already terminated")
        if PHASE_ORDER.index(phase) < PHASE_ORDER.index(self.phase):
            raise RuntimeError(f"Phase {phase} cannot follow {self.phase}")
        if progress < self.progress:
            raise RuntimeError(f"Progress cannot move back from {self.progress} to {progress}")
        self.phase = phase
        self.progress = progress

    def event(self, phase: str, progress: int, message: str, **extra) -> ProgressEvent:
        self._advance(phase, progress)
        return ProgressEvent(phase=phase, progress=progress, message=message, **extra)

    def complete(self, record: ReportRecord) -> ProgressEvent:
        event = self.event("generation", 100, "Report complete!", report=record)
        self.terminated = True
        return event.model_copy(update={"type": "complete"})

    def failure(self, error: ReportError) -> ProgressEvent:
        if self.terminated:
            raise RuntimeError("Progress stream already terminated")
        self.terminated = True
        return ProgressEvent(
            type="error",
            phase=self.phase,
            progress=self.progress,
            message=error.message,
            error=error.to_dict(),
        )


def _finalize_record(record: ReportRecord, research: ResearchResult, config: ReportConfig) -> ReportRecord:
    """Attach research sources and re-check the enriched record against the schema."""
    sources = list(research.sources) if config.include_sources and research.sources else None
    record = record.model_copy(update={"sources": sources})

    result = validate_record(record.to_wire())
    if not result.ok:
        raise ExtractionSchemaViolation(
            list(result.errors),
            attempts=1,
            message="Enriched report failed schema validation",
        )
    return result.value


async def _run_pipeline(
    config: ReportConfig,
    run: RunProgress,
    *,
    client: Optional[AsyncOpenAI],
    settings: Settings,
) -> AsyncIterator[ProgressEvent]:
    """Run every stage, yielding progress; raises ``ReportError`` on failure."""
    yield run.event("research", 10, "Starting market research...")

    client = client or get_async_client()
    research = await run_research(config, client=client, settings=settings)
    yield run.event(
        "research",
        35,
        f"Found {research.sources_found} sources",
        sources_found=research.sources_found,
    )

    yield run.event("analysis", 40, "Analyzing research data...")
    record = await run_extraction(research.text, config, client=client, settings=settings)

    yield run.event("charts", 60, "Generating visualizations...")
    record = enrich_record(record)
    yield run.event(
        "charts",
        80,
        "Charts generated",
        charts_generated=len(record.charts),
    )

    yield run.event("generation", 90, "Finalizing report...")
    record = _finalize_record(record, research, config)
    yield run.complete(record)


async def generate_report(
    config: ReportConfig,
    *,
    client: Optional[AsyncOpenAI] = None,
    settings: Optional[Settings] = None,
) -> ReportRecord:
    """Run the whole pipeline and return the validated record.

    Raises:
        GenerationError: a stage failed (``ResearchUnavailable``,
            ``ExtractionSchemaViolation`` or ``ExtractionUnavailable``), or an
            unexpected error occurred (plain ``GenerationError``).
    """
    settings = settings or get_settings()
    run = RunProgress()
    logger.info("Report generation started (title=%s)", config.title)

    try:
        async with aclosing(_run_pipeline(config, run, client=client, settings=settings)) as events:
            async for event in events:
                if event.type == "complete" and event.report is not None:
                    logger.info("Report generation completed (title=%s)", config.title)
                    return event.report
    except ReportError as exc:
        logger.error("Report generation failed (kind=%s): %s", exc.kind, exc.message)
        raise
    except Exception as exc:
        logger.exception("Unexpected error during report generation")
        raise GenerationError(f"Report generation failed: {exc}") from exc

    raise GenerationError("Pipeline finished without producing a report")


async def stream_report_generation(
    config: ReportConfig,
    *,
    client: Optional[AsyncOpenAI] = None,
    settings: Optional[Settings] = None,
) -> AsyncIterator[ProgressEvent]:
    """Yield progress events for one run, ending with a complete or error event.

    The stream is single-consumer and not restartable. Closing it early
    cancels the in-flight service call at its next suspension point.
    """
    settings = settings or get_settings()
    run = RunProgress()
    logger.info("Streaming report generation started (title=%s)", config.title)

    try:
        async with aclosing(_run_pipeline(config, run, client=client, settings=settings)) as events:
            async for event in events:
                yield event
    except (GeneratorExit, asyncio.CancelledError):
        logger.warning(
            "Report stream abandoned by consumer (title=%s, phase=%s, progress=%d)",
            config.title,
            run.phase,
            run.progress,
        )
        raise
    except ReportError as exc:
        logger.error("Report generation failed (kind=%s): %s", exc.kind, exc.message)
        yield run.failure(exc)
    except Exception as exc:
        logger.exception("Unexpected error during report generation")
        yield run.failure(GenerationError(f"Report generation failed: {exc}"))
