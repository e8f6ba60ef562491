"""
Research stage: one long-form generation call, optionally search-augmented.

The call is bounded by a token ceiling and a timeout and is never retried
here; retry policy belongs to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from openai import APITimeoutError, AsyncOpenAI, OpenAIError

from ..config.settings import Settings, get_settings
from ..errors import ResearchUnavailable
from ..infra.llm import get_async_client, resolve_stage_runtime
from ..schemas import ReportConfig, SourceReference
from .prompts import RESEARCH_SYSTEM_PROMPT, build_research_prompt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResearchResult:
    text: str
    sources: tuple[SourceReference, ...] = field(default_factory=tuple)
    web_search: bool = False

    @property
    def sources_found(self) -> int:
        return len(self.sources)


def _collect_sources(message: Any) -> tuple[SourceReference, ...]:
    """Collect distinct ``url_citation`` annotations from a chat message."""
    annotations = getattr(message, "annotations", None) or []
    sources: list[SourceReference] = []
    seen: set[str] = set()
    for annotation in annotations:
        if getattr(annotation, "type", None) != "url_citation":
            continue
        citation = getattr(annotation, "url_citation", None)
        url = getattr(citation, "url", None)
        if not isinstance(url, str) or not url.strip() or url in seen:
            continue
        seen.add(url)
        title = getattr(citation, "title", None)
        sources.append(SourceReference(url=url, title=title if isinstance(title, str) else None))
    return tuple(sources)


async def run_research(
    config: ReportConfig,
    *,
    client: Optional[AsyncOpenAI] = None,
    settings: Optional[Settings] = None,
    web_search: Optional[bool] = None,
) -> ResearchResult:
    """Produce unstructured research text for ``config``.

    Raises:
        ResearchUnavailable: the service call failed, timed out, or returned
            no text.
    """
    settings = settings or get_settings()
    runtime = resolve_stage_runtime("research", settings)
    use_search = settings.ENABLE_WEB_SEARCH if web_search is None else web_search
    prompt = build_research_prompt(config, web_search=use_search)

    request: dict[str, Any] = {
        "model": runtime.model,
        "messages": [
            {"role": "system", "content": RESEARCH_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        "max_tokens": runtime.max_tokens,
    }
    if use_search:
        # Search-enabled chat models reject sampling parameters.
        request["model"] = settings.RESEARCH_SEARCH_MODEL.strip() or runtime.model
        request["web_search_options"] = {}
    else:
        request["temperature"] = 0.4

    client = client or get_async_client()
    logger.info(
        "Research started (topic=%s, model=%s, web_search=%s)",
        config.topic,
        request["model"],
        use_search,
    )

    try:
        response = await asyncio.wait_for(
            client.chat.completions.create(**request, timeout=runtime.timeout_seconds),
            timeout=runtime.timeout_seconds,
        )
    except (asyncio.TimeoutError, APITimeoutError) as exc:
        logger.error("Research timed out after %.0fs", runtime.timeout_seconds)
        raise ResearchUnavailable(
            f"Research request timed out after {runtime.timeout_seconds:.0f}s",
            timed_out=True,
        ) from exc
    except OpenAIError as exc:
        logger.error("Research request failed: %s", exc)
        raise ResearchUnavailable(f"Research request failed: {exc}") from exc

    message = response.choices[0].message if response.choices else None
    text = (getattr(message, "content", None) or "").strip()
    if not text:
        raise ResearchUnavailable("Research request returned no content")

    sources = _collect_sources(message)
    logger.info("Research completed (chars=%d, sources=%d)", len(text), len(sources))
    return ResearchResult(text=text, sources=sources, web_search=use_search)
