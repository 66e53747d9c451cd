"""Console and network diagnostics collected from browser pages.

The DiagnosticsCollector listens on every page a BrowserSession opens and
keeps console errors, uncaught page errors, failed requests and HTTP error
responses so they can be attached to the run report.
"""

import logging
from typing import Any, List, Optional, Sequence

from playwright.async_api import Page

from ..models.harness_models import DiagnosticEntry

logger = logging.getLogger(__name__)


class DiagnosticsCollector:
    """Record browser-side problems for later diagnosis.

    Listeners are registered per page and tag every entry with the page
    name, so output from a second tab (e.g. a debug window) stays separate
    from the main app.
    """

    RECORDED_CONSOLE_LEVELS = ("error", "warning")

    def __init__(self, ignored_patterns: Optional[Sequence[str]] = None):
        """Initialize the collector.

        Args:
            ignored_patterns: Substrings of messages that should not be recorded
        """
        self.ignored_patterns = list(ignored_patterns or [])
        self.entries: List[DiagnosticEntry] = []

    def attach(self, page: Page, page_name: str) -> None:
        """Register console and network listeners on a page.

        Args:
            page: Playwright page
            page_name: Name used to tag entries from this page
        """
        page.on("console", lambda message: self._on_console(page_name, message))
        page.on("pageerror", lambda error: self._on_page_error(page_name, error))
        page.on("requestfailed", lambda request: self._on_request_failed(page_name, request))
        page.on("response", lambda response: self._on_response(page_name, response))
        logger.debug(f"Attached diagnostics listeners to page '{page_name}'")

    def errors(self) -> List[DiagnosticEntry]:
        """Entries that indicate a failure rather than a warning."""
        return [e for e in self.entries if e.level != "warning"]

    def _is_ignored(self, text: str) -> bool:
        return any(pattern in text for pattern in self.ignored_patterns)

    def _record(self, entry: DiagnosticEntry) -> None:
        if self._is_ignored(entry.message):
            return
        self.entries.append(entry)
        logger.debug(f"[{entry.page}] {entry.kind}: {entry.message[:120]}")

    def _on_console(self, page_name: str, message: Any) -> None:
        level = message.type
        if level not in self.RECORDED_CONSOLE_LEVELS:
            return
        self._record(
            DiagnosticEntry(kind="console", page=page_name, level=level, message=message.text)
        )

    def _on_page_error(self, page_name: str, error: Any) -> None:
        message = getattr(error, "message", None) or str(error)
        self._record(DiagnosticEntry(kind="pageerror", page=page_name, message=message))

    def _on_request_failed(self, page_name: str, request: Any) -> None:
        failure = request.failure or "request failed"
        self._record(
            DiagnosticEntry(
                kind="requestfailed",
                page=page_name,
                message=f"{request.method} {request.url}: {failure}",
                url=request.url,
            )
        )

    def _on_response(self, page_name: str, response: Any) -> None:
        if response.status < 400:
            return
        self._record(
            DiagnosticEntry(
                kind="response",
                page=page_name,
                message=f"HTTP {response.status} {response.url}",
                url=response.url,
                status=response.status,
            )
        )
