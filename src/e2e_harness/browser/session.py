"""Browser lifecycle management for harness runs.

This module provides the BrowserSession class which owns the Playwright
instance, one browser, one browser context and any number of named pages.
It restores a saved auth-state snapshot so a run can skip interactive login.

CRITICAL: close() must run on every exit path. Use the session as an async
context manager, or call close() in a finally block.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
)

from ..config.harness_config import HarnessConfig
from ..exceptions import LaunchError
from .auth_state import AuthStateError, load_auth_state
from .diagnostics import DiagnosticsCollector

logger = logging.getLogger(__name__)


class BrowserSession:
    """Own one browser process and the pages opened in it.

    PATTERN: one isolated context per run, shared by every page so that
    tabs see the same cookies and storage.
    """

    def __init__(
        self,
        config: HarnessConfig,
        diagnostics: Optional[DiagnosticsCollector] = None,
    ):
        """Initialize the session without launching anything.

        Args:
            config: Harness configuration (browser, headless, viewport, auth state)
            diagnostics: Collector for console/network events (created if omitted)
        """
        self.config = config
        self.diagnostics = diagnostics or DiagnosticsCollector(
            config.ignored_console_patterns
        )
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.pages: Dict[str, Page] = {}
        self.warnings: List[str] = []
        self.close_count = 0
        self._opened = False
        self._closed = False

    @classmethod
    async def open(
        cls,
        config: HarnessConfig,
        diagnostics: Optional[DiagnosticsCollector] = None,
    ) -> "BrowserSession":
        """Launch a browser and return the open session.

        Raises:
            LaunchError: If Playwright or the browser cannot start
        """
        session = cls(config, diagnostics)
        await session.start()
        return session

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    async def start(self) -> None:
        """Start Playwright, launch the browser and create the context.

        Raises:
            LaunchError: If any part of the launch fails
        """
        if self._opened:
            return
        if self._closed:
            raise LaunchError("Session was already closed")

        browser_name = self.config.browser.value
        try:
            self.playwright = await async_playwright().start()
        except Exception as e:
            logger.error(f"Failed to initialize Playwright: {e}")
            self._closed = True
            raise LaunchError(f"Playwright initialization failed: {e}") from e

        try:
            launcher = getattr(self.playwright, browser_name)
            self.browser = await launcher.launch(
                headless=self.config.headless,
                args=list(self.config.launch_args),
            )
            self.context = await self.browser.new_context(**self._context_options())
        except Exception as e:
            logger.error(f"Failed to launch {browser_name} browser: {e}")
            await self.close()
            raise LaunchError(f"Browser launch failed: {e}") from e

        self._opened = True
        logger.info(f"Launched {browser_name} browser (headless={self.config.headless})")

    def _context_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "viewport": {
                "width": self.config.viewport.width,
                "height": self.config.viewport.height,
            }
        }

        auth_path = self.config.auth_state_path
        if not auth_path:
            return options

        try:
            state = load_auth_state(auth_path)
        except AuthStateError as e:
            message = f"Running without saved auth: {e}"
            logger.warning(message)
            self.warnings.append(message)
            return options

        options["storage_state"] = state.to_storage_state()
        logger.info(f"Restored auth state from {auth_path}")
        return options

    async def new_page(self, name: str = "main") -> Page:
        """Open a new page (tab) in the session's context.

        Console and network listeners are attached for diagnostics. Page
        creation is retried once before giving up.

        Args:
            name: Name the page is registered under

        Returns:
            The page; an existing page is returned if the name is taken

        Raises:
            LaunchError: If the session is not open or the page cannot be created
        """
        if name in self.pages:
            return self.pages[name]
        if not self.is_open or self.context is None:
            raise LaunchError("Browser session is not open")

        page: Optional[Page] = None
        for attempt in (1, 2):
            try:
                page = await self.context.new_page()
                break
            except Exception as e:
                if attempt == 2:
                    logger.error(f"Failed to create page '{name}': {e}")
                    raise LaunchError(f"Page creation failed: {e}") from e
                logger.warning(f"Page creation failed ({e}), retrying once")

        self.adopt_page(name, page)
        return page

    def adopt_page(self, name: str, page: Page) -> None:
        """Register a page opened outside new_page (e.g. a popup)."""
        self.pages[name] = page
        self.diagnostics.attach(page, name)
        logger.debug(f"Registered page '{name}'")

    def page(self, name: str) -> Page:
        """Return a registered page by name."""
        try:
            return self.pages[name]
        except KeyError:
            raise KeyError(f"No page named '{name}' in this session") from None

    async def persist_auth_state(self, path: Union[str, Path]) -> Path:
        """Save the context's cookies and localStorage for later runs.

        Overwrites any existing file at ``path``.

        Raises:
            LaunchError: If the session is not open
        """
        if not self.is_open or self.context is None:
            raise LaunchError("Browser session is not open")

        state = await self.context.storage_state()
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(state, indent=2), encoding="utf-8")
        logger.info(f"Saved auth state to {target}")
        return target

    async def close(self) -> None:
        """Close pages, context, browser and Playwright.

        Safe to call repeatedly; the shutdown itself runs exactly once.
        Errors are logged, never raised, so close() can sit in finally blocks.
        """
        if self._closed:
            return
        self._closed = True
        self.close_count += 1

        if self.context is not None:
            try:
                await self.context.close()
            except Exception as e:
                logger.error(f"Error closing browser context: {e}")
        if self.browser is not None:
            try:
                await self.browser.close()
            except Exception as e:
                logger.error(f"Error closing browser: {e}")
        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.error(f"Error stopping Playwright: {e}")

        self.pages.clear()
        self.context = None
        self.browser = None
        self.playwright = None
        logger.info("Browser session closed")
