"""Condition polling for wait-for steps.

Replaces fixed sleeps with "check, sleep a poll interval, check again"
until the condition holds or the timeout runs out. A condition that holds
at 2s of a 5s budget returns at ~2s.
"""

import asyncio
import logging
import re
import time
from typing import Awaitable, Callable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from ..browser.locator_chain import ElementLocatorChain
from ..exceptions import LocatorNotFound, StepTimeout
from ..models.harness_models import ConditionKind, LocatorChain, WaitCondition

logger = logging.getLogger(__name__)

PAGE_TEXT_SCRIPT = "() => document.body ? document.body.innerText : ''"


async def poll_until(
    check: Callable[[], Awaitable[bool]],
    timeout_ms: int,
    poll_interval_ms: int = 250,
    description: str = "condition",
) -> float:
    """Call ``check`` until it returns True.

    Args:
        check: Async predicate
        timeout_ms: Total time budget
        poll_interval_ms: Delay between checks
        description: Used in the timeout message

    Returns:
        Seconds elapsed until the predicate held

    Raises:
        StepTimeout: If the predicate never held within ``timeout_ms``
    """
    start = time.monotonic()
    deadline = start + max(timeout_ms, 0) / 1000
    while True:
        if await check():
            return time.monotonic() - start
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise StepTimeout(
                f"Timed out after {timeout_ms}ms waiting for {description}", timeout_ms
            )
        await asyncio.sleep(min(poll_interval_ms / 1000, remaining))


async def page_text(page: Page) -> str:
    """Visible text of the page body."""
    return await page.evaluate(PAGE_TEXT_SCRIPT) or ""


class ConditionChecker:
    """Evaluate wait-for conditions against a page."""

    def __init__(self, resolver: ElementLocatorChain):
        self.resolver = resolver

    @staticmethod
    def describe(condition: WaitCondition, target: Optional[LocatorChain] = None) -> str:
        target = target or condition.target
        if condition.kind in (ConditionKind.ELEMENT, ConditionKind.ELEMENT_ABSENT):
            chain = target.describe() if target else "?"
            return f"{condition.kind.value} {chain}"
        return f"{condition.kind.value} {condition.value!r}"

    async def check(
        self,
        page: Page,
        condition: WaitCondition,
        target: Optional[LocatorChain] = None,
    ) -> bool:
        """Evaluate the condition once.

        Transient browser errors (e.g. evaluating during a navigation)
        count as "not yet".
        """
        target = target or condition.target
        try:
            return await self._check(page, condition, target)
        except PlaywrightError as e:
            logger.debug(f"Condition check failed transiently: {e}")
            return False

    async def _check(
        self,
        page: Page,
        condition: WaitCondition,
        target: Optional[LocatorChain],
    ) -> bool:
        kind = condition.kind

        if kind in (ConditionKind.ELEMENT, ConditionKind.ELEMENT_ABSENT):
            if target is None:
                raise ValueError(f"{kind.value} condition needs a target")
            try:
                await self.resolver.resolve(page, target)
                found = True
            except LocatorNotFound:
                found = False
            return found if kind == ConditionKind.ELEMENT else not found

        if condition.value is None:
            raise ValueError(f"{kind.value} condition needs a value")

        if kind == ConditionKind.URL:
            return re.search(condition.value, page.url) is not None
        if kind == ConditionKind.TEXT:
            return condition.value in await page_text(page)
        if kind == ConditionKind.TEXT_ABSENT:
            return condition.value not in await page_text(page)
        if kind == ConditionKind.SCRIPT:
            return bool(await page.evaluate(condition.value))

        raise ValueError(f"Unsupported condition kind: {kind}")

    async def wait(
        self,
        page: Page,
        condition: WaitCondition,
        timeout_ms: int,
        poll_interval_ms: int,
        target: Optional[LocatorChain] = None,
    ) -> float:
        """Poll the condition until it holds.

        Returns:
            Seconds waited

        Raises:
            StepTimeout: If the condition did not hold in time
        """
        target = target or condition.target
        return await poll_until(
            lambda: self.check(page, condition, target),
            timeout_ms,
            poll_interval_ms,
            description=self.describe(condition, target),
        )
