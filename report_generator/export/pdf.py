"""
PDF export for rendered report HTML.

Uses WeasyPrint, run inside a dedicated single-worker child process that is
scoped to one export call: launched at entry and terminated on every exit
path (success, timeout or error). Nothing is pooled across calls.

States: idle -> launching -> loading -> paginating -> done, with a move to
failed from any state.
"""

from __future__ import annotations

import io
import logging
import multiprocessing
from dataclasses import dataclass, field
from enum import Enum
from multiprocessing import TimeoutError as WorkerTimeout
from typing import Callable, Optional, Protocol
from urllib.parse import urlparse

from ..config.settings import get_settings
from ..errors import EngineLaunchFailure, ExportError, PaginationFailure, RenderTimeout
from .svg import settle_charts

logger = logging.getLogger(__name__)

LAUNCH_TIMEOUT_SECONDS = 20.0


class ExportState(str, Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    LOADING = "loading"
    PAGINATING = "paginating"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PageOptions:
    """Physical page layout plus the running header and footer."""

    size: str = "A4"
    margin_top: str = "1in"
    margin_right: str = "0.75in"
    margin_bottom: str = "1in"
    margin_left: str = "0.75in"
    header_title: Optional[str] = None
    page_numbers: bool = True

    def stylesheet(self) -> str:
        header = ""
        if self.header_title:
            escaped = self.header_title.replace("\\", "\\\\").replace('"', '\\"')
            header = f"""
            @top-center {{
                content: "{escaped}";
                font-size: 9pt;
                color: #666666;
            }}"""
        footer = ""
        if self.page_numbers:
            footer = """
            @bottom-center {
                content: counter(page) " of " counter(pages);
                font-size: 9pt;
                color: #666666;
            }"""
        return f"""
        @page {{
            size: {self.size};
            margin: {self.margin_top} {self.margin_right} {self.margin_bottom} {self.margin_left};{header}{footer}
        }}

        body {{
            max-width: none;
            padding: 0;
        }}
"""


class RenderEngine(Protocol):
    """A rendering engine instance owned by exactly one export call."""

    def load(self, markup: str, stylesheet: str, timeout: float) -> int:
        """Load markup, settle charts and lay out pages; return the page count."""

    def paginate(self, timeout: float) -> bytes:
        """Write the laid-out document as PDF bytes."""

    def close(self) -> None:
        """Release the engine; must be safe to call more than once."""


# ------------------------------------------------------------
# Worker-process side
# ------------------------------------------------------------

_worker_document = None


def _offline_url_fetcher(url: str, *args, **kwargs):
    """Only local resources are fetched; remote URLs (chart CDN etc.) are refused."""
    from weasyprint import default_url_fetcher

    if urlparse(url).scheme in ("http", "https", "ftp"):
        raise ValueError(f"Remote resource blocked during export: {url}")
    return default_url_fetcher(url, *args, **kwargs)


def _worker_ping() -> str:
    import weasyprint

    return str(weasyprint.__version__)


def _worker_load(markup: str, stylesheet: str) -> int:
    global _worker_document
    from weasyprint import CSS, HTML

    settled, _rendered = settle_charts(markup)
    _worker_document = HTML(string=settled, url_fetcher=_offline_url_fetcher).render(
        stylesheets=[CSS(string=stylesheet)]
    )
    return len(_worker_document.pages)


def _worker_write_pdf() -> bytes:
    if _worker_document is None:
        raise RuntimeError("No document loaded")
    buffer = io.BytesIO()
    _worker_document.write_pdf(buffer)
    return buffer.getvalue()


# ------------------------------------------------------------
# Parent side
# ------------------------------------------------------------

class WeasyPrintEngine:
    """WeasyPrint in a private child process, terminated by ``close``."""

    def __init__(self, *, start_method: str = "spawn", launch_timeout: float = LAUNCH_TIMEOUT_SECONDS):
        self._pool = None
        try:
            context = multiprocessing.get_context(start_method)
            self._pool = context.Pool(processes=1)
            version = self._pool.apply_async(_worker_ping).get(launch_timeout)
        except WorkerTimeout as exc:
            self.close()
            raise EngineLaunchFailure(
                f"Rendering engine did not start within {launch_timeout:.0f}s"
            ) from exc
        except Exception as exc:
            self.close()
            raise EngineLaunchFailure(f"Rendering engine failed to start: {exc}") from exc
        logger.debug("WeasyPrint engine started (version=%s)", version)

    def load(self, markup: str, stylesheet: str, timeout: float) -> int:
        return self._pool.apply_async(_worker_load, (markup, stylesheet)).get(timeout)

    def paginate(self, timeout: float) -> bytes:
        return self._pool.apply_async(_worker_write_pdf).get(timeout)

    def close(self) -> None:
        pool, self._pool = self._pool, None
        if pool is not None:
            pool.terminate()
            pool.join()


EngineFactory = Callable[[], RenderEngine]


@dataclass
class ExportResult:
    content: bytes
    page_count: int
    transitions: list[ExportState] = field(default_factory=list)


@dataclass
class _ExportRun:
    state: ExportState = ExportState.IDLE
    transitions: list[ExportState] = field(default_factory=lambda: [ExportState.IDLE])

    def move(self, state: ExportState) -> None:
        logger.debug("Export state %s -> %s", self.state.value, state.value)
        self.state = state
        self.transitions.append(state)


def export_document(
    markup: str,
    *,
    title: Optional[str] = None,
    engine_factory: Optional[EngineFactory] = None,
    timeout_seconds: Optional[float] = None,
    page_options: Optional[PageOptions] = None,
) -> ExportResult:
    """
    Convert rendered report HTML into a paginated PDF.

    Args:
        markup: Complete HTML document from ``render_html``
        title: Running header text; omitted when not given
        engine_factory: Builds the engine instance for this call
        timeout_seconds: Bound on content loading and on pagination
        page_options: Page size and margins; defaults follow settings

    Raises:
        EngineLaunchFailure, RenderTimeout, PaginationFailure, ExportError
    """
    settings = get_settings()
    timeout = timeout_seconds if timeout_seconds is not None else settings.EXPORT_TIMEOUT_SECONDS
    options = page_options or PageOptions(size=settings.EXPORT_PAGE_SIZE, header_title=title)
    factory = engine_factory or WeasyPrintEngine

    run = _ExportRun()
    engine: Optional[RenderEngine] = None
    try:
        run.move(ExportState.LAUNCHING)
        try:
            engine = factory()
        except EngineLaunchFailure:
            raise
        except Exception as exc:
            raise EngineLaunchFailure(f"Rendering engine failed to start: {exc}") from exc

        run.move(ExportState.LOADING)
        try:
            page_count = engine.load(markup, options.stylesheet(), timeout)
        except WorkerTimeout as exc:
            raise RenderTimeout(f"Content did not settle within {timeout:.0f}s") from exc
        except Exception as exc:
            raise ExportError(f"Failed to load document: {exc}") from exc

        run.move(ExportState.PAGINATING)
        try:
            content = engine.paginate(timeout)
        except WorkerTimeout as exc:
            raise RenderTimeout(f"Pagination did not finish within {timeout:.0f}s") from exc
        except Exception as exc:
            raise PaginationFailure(f"Failed to paginate document: {exc}") from exc

        run.move(ExportState.DONE)
        logger.info("PDF export completed (pages=%d, bytes=%d)", page_count, len(content))
        return ExportResult(content=content, page_count=page_count, transitions=list(run.transitions))
    except ExportError as exc:
        run.move(ExportState.FAILED)
        logger.error("PDF export failed in %s (kind=%s): %s", run.transitions[-2].value, exc.kind, exc.message)
        raise
    finally:
        if engine is not None:
            engine.close()
