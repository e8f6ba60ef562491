"""AsyncOpenAI client factory and per-stage model resolution."""

from __future__ import annotations

import logging
import threading
from typing import NamedTuple, Optional

from openai import AsyncOpenAI

from report_generator.config.settings import Settings, get_settings
from report_generator.infra.oauth import resolve_service_credentials

logger = logging.getLogger(__name__)

_client: Optional[AsyncOpenAI] = None
_client_lock = threading.Lock()


class StageRuntime(NamedTuple):
    model: str
    max_tokens: int
    timeout_seconds: float


def build_async_client(settings: Settings | None = None) -> AsyncOpenAI:
    """Create an AsyncOpenAI client from resolved auth configuration.

    SDK-level retries are disabled: the research call is never retried
    internally and extraction retries are handled by the pipeline itself.
    """
    settings = settings or get_settings()
    credentials = resolve_service_credentials(settings)
    logger.info(
        "Initializing generation client (mode=%s, base_url=%s)",
        credentials.mode,
        credentials.base_url,
    )
    return AsyncOpenAI(
        api_key=credentials.token,
        base_url=credentials.base_url,
        max_retries=0,
    )


def get_async_client() -> AsyncOpenAI:
    """Return the process-wide client; its connection pool is shared across runs."""
    global _client
    with _client_lock:
        if _client is None:
            _client = build_async_client()
        return _client


def resolve_stage_runtime(stage: str, settings: Settings | None = None) -> StageRuntime:
    """Resolve model, token ceiling and timeout for ``research`` or ``extraction``."""
    settings = settings or get_settings()
    default_model = settings.OPENAI_MODEL.strip() or "gpt-4o"

    if stage == "research":
        model = settings.RESEARCH_MODEL.strip() or default_model
        max_tokens = settings.RESEARCH_MAX_TOKENS
        timeout = settings.RESEARCH_TIMEOUT_SECONDS
    elif stage == "extraction":
        model = settings.EXTRACTION_MODEL.strip() or default_model
        max_tokens = settings.EXTRACTION_MAX_TOKENS
        timeout = settings.EXTRACTION_TIMEOUT_SECONDS
    else:
        raise ValueError(f"Unknown generation stage: {stage}")

    if max_tokens <= 0:
        raise ValueError(f"{stage.upper()}_MAX_TOKENS must be a positive integer")
    if timeout <= 0:
        raise ValueError(f"{stage.upper()}_TIMEOUT_SECONDS must be positive")

    return StageRuntime(model=model, max_tokens=max_tokens, timeout_seconds=timeout)
