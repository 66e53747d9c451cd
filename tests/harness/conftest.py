"""Shared fixtures for harness tests.

FakePage models just enough of a Playwright page (locators, navigation,
screenshots, page text) for the harness to run against without a browser.
"""

import re
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from e2e_harness.config.harness_config import HarnessConfig
from e2e_harness.models.harness_models import RunContext
from e2e_harness.runner.conditions import PAGE_TEXT_SCRIPT

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-data"


class FakeElement:
    """One element on a FakePage."""

    def __init__(
        self,
        text: str = "",
        visible: bool = True,
        enabled: bool = True,
        on_click: Optional[Callable[[], None]] = None,
    ):
        self.text = text
        self.visible = visible
        self.enabled = enabled
        self.on_click = on_click
        self.clicks = 0
        self.value: Optional[str] = None
        self.pressed: List[str] = []


class FakeLocator:
    """Locator over a fixed list of FakeElements."""

    def __init__(self, elements: List[FakeElement]):
        self.elements = list(elements)

    async def count(self) -> int:
        return len(self.elements)

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self.elements[index : index + 1])

    def filter(self, has_text=None) -> "FakeLocator":
        return FakeLocator([e for e in self.elements if has_text.search(e.text)])

    async def is_visible(self) -> bool:
        return bool(self.elements) and self.elements[0].visible

    async def is_enabled(self) -> bool:
        return bool(self.elements) and self.elements[0].enabled

    async def click(self, timeout=None) -> None:
        element = self._one()
        element.clicks += 1
        if element.on_click:
            element.on_click()

    async def fill(self, value: str, timeout=None) -> None:
        self._one().value = value

    async def press(self, key: str, timeout=None) -> None:
        self._one().pressed.append(key)

    async def inner_text(self) -> str:
        return self._one().text

    def _one(self) -> FakeElement:
        if not self.elements:
            raise PlaywrightError("Element is not attached to the DOM")
        return self.elements[0]


class FakePage:
    """Page with a scripted DOM, keyed by selector, text, role and label."""

    def __init__(self, url: str = "about:blank", body_text: str = "", status: int = 200):
        self.url = url
        self.body_text = body_text
        self.status = status
        self.css: Dict[str, List[FakeElement]] = {}
        self.texts: Dict[str, List[FakeElement]] = {}
        self.roles: Dict[tuple, List[FakeElement]] = {}
        self.labels: Dict[str, List[FakeElement]] = {}
        self.scripts: Dict[str, object] = {}
        self.invalid_selectors: List[str] = []
        self.goto_error: Optional[Exception] = None
        self.closed = False
        self.visited: List[str] = []
        self.screenshot_paths: List[str] = []
        self.handlers: Dict[str, list] = {}
        self.keyboard = MagicMock()
        self.keyboard.press = AsyncMock()
        self.wait_for_load_state = AsyncMock()
        self.context = MagicMock()

    def add_css(self, selector: str, *elements: FakeElement) -> "FakePage":
        self.css.setdefault(selector, []).extend(elements)
        return self

    def add_text(self, text: str, *elements: FakeElement) -> "FakePage":
        for element in elements:
            element.text = element.text or text
        self.texts.setdefault(text, []).extend(elements)
        return self

    def locator(self, selector: str):
        if selector in self.invalid_selectors:
            locator = MagicMock()
            locator.count = AsyncMock(side_effect=PlaywrightError(f"Unexpected token in {selector}"))
            return locator
        if selector in self.css:
            return FakeLocator(self.css[selector])
        # Tag-scoped text lookups: every element registered by text
        elements = [e for items in self.texts.values() for e in items]
        return FakeLocator(elements if re.fullmatch(r"[a-z]+", selector) else [])

    def get_by_text(self, text: str) -> FakeLocator:
        matches = [
            e
            for key, items in self.texts.items()
            if text.lower() in key.lower()
            for e in items
        ]
        return FakeLocator(matches)

    def get_by_role(self, role: str, name: Optional[str] = None) -> FakeLocator:
        return FakeLocator(self.roles.get((role, name), []))

    def get_by_label(self, label: str) -> FakeLocator:
        return FakeLocator(self.labels.get(label, []))

    async def goto(self, url: str, wait_until=None, timeout=None):
        if self.goto_error is not None:
            raise self.goto_error
        self.url = url
        self.visited.append(url)
        return SimpleNamespace(status=self.status, url=url)

    async def evaluate(self, expression: str, arg=None):
        if expression == PAGE_TEXT_SCRIPT:
            return self.body_text
        return self.scripts.get(expression)

    async def screenshot(self, path: str, full_page: bool = True) -> bytes:
        if self.closed:
            raise PlaywrightError("Target page, context or browser has been closed")
        Path(path).write_bytes(PNG_BYTES)
        self.screenshot_paths.append(path)
        return PNG_BYTES

    def on(self, event: str, handler) -> None:
        self.handlers.setdefault(event, []).append(handler)


@pytest.fixture
def make_page():
    """Factory for FakePage instances."""
    return FakePage


@pytest.fixture
def make_element():
    """Factory for FakeElement instances."""
    return FakeElement


@pytest.fixture
def config(tmp_path):
    """Fast-polling config writing into tmp_path."""
    return HarnessConfig(
        output_root=str(tmp_path / "runs"),
        default_timeout_ms=300,
        poll_interval_ms=10,
        settle_ms=0,
        auth_state_path=None,
        base_url="https://example.test",
    )


@pytest.fixture
def run_context(tmp_path):
    """Fresh run context under tmp_path."""
    return RunContext.create(tmp_path / "runs", prefix="test")
