"""Numbered screenshot capture into the run directory."""

import logging
from datetime import datetime
from typing import Optional

from playwright.async_api import Page

from ..models.harness_models import RunContext, ScreenshotRecord, slugify

logger = logging.getLogger(__name__)


class ScreenshotRecorder:
    """Capture screenshots as ``{seq:02d}-{name}.png`` files.

    The sequence only advances after a successful write, so the files of a
    run are numbered 01, 02, ... without gaps and a number is never reused.
    """

    def __init__(self, context: RunContext):
        self.context = context
        self._sequence = len(context.screenshots)

    @property
    def sequence(self) -> int:
        """Number of the last screenshot written."""
        return self._sequence

    def next_filename(self, name: str) -> str:
        slug = slugify(name) or "screenshot"
        return f"{self._sequence + 1:02d}-{slug}.png"

    async def capture(
        self,
        page: Page,
        name: str,
        description: str = "",
        full_page: bool = True,
        page_name: str = "main",
    ) -> Optional[ScreenshotRecord]:
        """Write a screenshot of ``page`` and record it on the run context.

        Args:
            page: Page to capture
            name: Short name used in the file name
            description: Free-text description for the report
            full_page: Capture the full scrollable page
            page_name: Name of the page in the session

        Returns:
            The ScreenshotRecord, or None if the capture failed (a run
            warning is recorded instead)
        """
        filename = self.next_filename(name)
        path = self.context.output_dir / filename
        try:
            await page.screenshot(path=str(path), full_page=full_page)
        except Exception as e:
            message = f"Screenshot '{name}' failed: {e}"
            logger.warning(message)
            self.context.add_warning(message)
            return None

        self._sequence += 1
        record = ScreenshotRecord(
            sequence=self._sequence,
            filename=filename,
            description=description or name,
            captured_at=datetime.now(),
            full_page=full_page,
            page=page_name,
        )
        self.context.add_screenshot(record)
        logger.info(f"Screenshot saved: {filename}")
        return record
