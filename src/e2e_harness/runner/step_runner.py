"""Sequential execution of scenario steps against named pages.

Each step moves PENDING -> RUNNING -> PASSED | FAILED. A failed critical
step aborts the run and every remaining step is recorded as SKIPPED.

PATTERN: Every browser call gets the time left in the step's budget, and
the whole step is additionally guarded by asyncio.wait_for so nothing can
hang a run.
"""

import asyncio
import logging
import re
import time
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Union
from urllib.parse import urljoin, urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..browser.locator_chain import ElementLocatorChain, LocatorResolution
from ..config.harness_config import HarnessConfig
from ..exceptions import (
    AssertionFailed,
    HarnessError,
    LaunchError,
    LocatorNotFound,
    NavigationError,
    StepTimeout,
)
from ..models.harness_models import (
    ActionKind,
    AssertionKind,
    RunContext,
    RunStatus,
    Step,
    StepResult,
    StepStatus,
)
from .conditions import ConditionChecker, page_text
from .screenshots import ScreenshotRecorder

logger = logging.getLogger(__name__)

# Extra time the outer guard allows so inner deadlines report their own errors
GUARD_GRACE_MS = 1_000

SETTLING_ACTIONS = (ActionKind.CLICK, ActionKind.TYPE, ActionKind.PRESS)

PageFactory = Callable[[str], Awaitable[Page]]
PageRegistrar = Callable[[str, Page], None]
ResultCallback = Callable[[int, int, StepResult], None]


class NavigationStepRunner:
    """Run steps one at a time and record a StepResult for each.

    Example:
        runner = NavigationStepRunner(config, context, base_url="https://example.test")
        status = await runner.run(scenario.steps, {"main": page})
    """

    def __init__(
        self,
        config: HarnessConfig,
        context: RunContext,
        base_url: Optional[str] = None,
        resolver: Optional[ElementLocatorChain] = None,
        recorder: Optional[ScreenshotRecorder] = None,
        page_factory: Optional[PageFactory] = None,
        page_registrar: Optional[PageRegistrar] = None,
        on_result: Optional[ResultCallback] = None,
    ):
        """Initialize the runner.

        Args:
            config: Timeouts, settling and screenshot options
            context: Run context receiving step results and warnings
            base_url: Base for relative navigation URLs
            resolver: Locator chain resolver
            recorder: Screenshot recorder for the run directory
            page_factory: Opens a page for an unknown page name (session.new_page)
            page_registrar: Registers popups opened by clicks (session.adopt_page)
            on_result: Called with (index, total, result) after each step
        """
        self.config = config
        self.context = context
        self.base_url = base_url
        self.resolver = resolver or ElementLocatorChain(config.poll_interval_ms)
        self.recorder = recorder or ScreenshotRecorder(context)
        self.conditions = ConditionChecker(self.resolver)
        self.page_factory = page_factory
        self.page_registrar = page_registrar
        self.on_result = on_result
        self.pages: Dict[str, Page] = {}
        self.current_step: Optional[Step] = None
        self._steps: List[Step] = []
        self._position = 0

    async def run(
        self, steps: Sequence[Step], pages: Union[Page, Dict[str, Page]]
    ) -> RunStatus:
        """Execute steps strictly in order.

        Args:
            steps: Steps to execute
            pages: A single page (registered as "main") or pages by name

        Returns:
            RunStatus.COMPLETED, or RunStatus.ABORTED after a critical failure
        """
        self.pages = dict(pages) if isinstance(pages, dict) else {"main": pages}
        self._steps = list(steps)
        total = len(self._steps)
        aborted = False

        for index, step in enumerate(self._steps):
            self._position = index
            if aborted:
                result = self.skipped_result(step)
            else:
                logger.info(f"Step {index + 1}/{total} RUNNING: {step.name} ({step.action.value})")
                self.current_step = step
                started = datetime.now()
                try:
                    page = await self._page_for(step)
                except LaunchError as e:
                    result = self._failed(step, e, started)
                    aborted = True
                else:
                    result = await self.run_step(step, page)
                    if not result.passed and self._is_critical(step, result):
                        aborted = True
                self.current_step = None

                if aborted:
                    logger.error(f"Critical step '{step.name}' failed, aborting run")

            self.context.add_step_result(result)
            self._position = index + 1
            if self.on_result:
                self.on_result(index, total, result)

        return RunStatus.ABORTED if aborted else RunStatus.COMPLETED

    def record_interrupted(self, error: HarnessError) -> None:
        """Record the in-flight step as failed and the rest as skipped.

        Used after the run-level timeout cancelled run().
        """
        remaining = self._steps[self._position:]
        total = len(self._steps)
        for offset, step in enumerate(remaining):
            if offset == 0:
                result = self._failed(step, error, datetime.now())
            else:
                result = self.skipped_result(step)
            self.context.add_step_result(result)
            if self.on_result:
                self.on_result(self._position + offset, total, result)
        self._position = total
        self.current_step = None

    async def run_step(self, step: Step, page: Page) -> StepResult:
        """Execute one step and return its result.

        Step errors never propagate; they are recorded on the result.
        """
        started = datetime.now()
        warnings: List[str] = []
        timeout_ms = self._timeout_for(step)

        # Screenshot steps skip the step guard but still honour an empty budget
        if step.action == ActionKind.SCREENSHOT and timeout_ms > 0:
            record = await self.recorder.capture(
                page,
                step.screenshot or step.name,
                step.description or "",
                full_page=step.full_page,
                page_name=step.page,
            )
            return StepResult(
                name=step.name,
                action=step.action,
                page=step.page,
                status=StepStatus.PASSED,
                started_at=started,
                finished_at=datetime.now(),
                screenshot=record.filename if record else None,
            )

        try:
            if timeout_ms <= 0:
                raise StepTimeout(
                    f"Step '{step.name}' has no time budget ({timeout_ms}ms)", timeout_ms
                )
            deadline = time.monotonic() + timeout_ms / 1000
            try:
                await asyncio.wait_for(
                    self._execute(step, page, deadline, warnings),
                    timeout=(timeout_ms + GUARD_GRACE_MS) / 1000,
                )
            except asyncio.TimeoutError:
                raise StepTimeout(
                    f"Step '{step.name}' did not finish within {timeout_ms}ms", timeout_ms
                ) from None
            except PlaywrightTimeoutError as e:
                raise StepTimeout(
                    f"Step '{step.name}' timed out: {_first_line(e)}", timeout_ms
                ) from e
        except Exception as e:
            logger.error(f"Step '{step.name}' failed: {type(e).__name__}: {e}")
            screenshot = None
            if self.config.screenshot_on_failure:
                record = await self.recorder.capture(
                    page,
                    f"{step.name}-failure",
                    f"Failure in step '{step.name}'",
                    page_name=step.page,
                )
                screenshot = record.filename if record else None
            return self._failed(step, e, started, warnings, screenshot)

        screenshot = None
        if step.screenshot:
            record = await self.recorder.capture(
                page,
                step.screenshot,
                step.description or step.name,
                full_page=step.full_page,
                page_name=step.page,
            )
            screenshot = record.filename if record else None

        logger.info(f"Step '{step.name}' PASSED")
        return StepResult(
            name=step.name,
            action=step.action,
            page=step.page,
            status=StepStatus.PASSED,
            started_at=started,
            finished_at=datetime.now(),
            screenshot=screenshot,
            warnings=warnings,
        )

    def resolve_url(self, url: str) -> str:
        """Join a relative URL with the base URL."""
        if urlparse(url).scheme:
            return url
        if not self.base_url:
            raise NavigationError(url, "relative URL and no base URL configured")
        return urljoin(self.base_url, url)

    async def _execute(
        self, step: Step, page: Page, deadline: float, warnings: List[str]
    ) -> None:
        if step.action == ActionKind.NAVIGATE:
            await self._navigate(step, page, deadline)
            return

        if step.action == ActionKind.CLICK:
            resolution = await self._resolve(step, page, deadline, warnings)
            if step.opens_page:
                await self._click_opening_page(step, page, resolution, deadline)
            else:
                await resolution.locator.click(timeout=_remaining_ms(deadline))

        elif step.action == ActionKind.TYPE:
            resolution = await self._resolve(step, page, deadline, warnings)
            await resolution.locator.fill(step.value or "", timeout=_remaining_ms(deadline))
            if step.submit:
                await resolution.locator.press("Enter", timeout=_remaining_ms(deadline))

        elif step.action == ActionKind.PRESS:
            if not step.value:
                raise ValueError(f"Step '{step.name}' has no key to press")
            if step.target is not None:
                resolution = await self._resolve(step, page, deadline, warnings)
                await resolution.locator.press(step.value, timeout=_remaining_ms(deadline))
            else:
                await page.keyboard.press(step.value)

        elif step.action == ActionKind.WAIT_FOR:
            if step.condition is None:
                raise ValueError(f"Step '{step.name}' has no condition")
            waited = await self.conditions.wait(
                page,
                step.condition,
                _remaining_ms(deadline),
                self.config.poll_interval_ms,
                target=step.condition.target or step.target,
            )
            logger.debug(f"Condition for '{step.name}' held after {waited:.2f}s")
            return

        elif step.action == ActionKind.ASSERT:
            await self._check_assertion(step, page)
            return

        else:
            raise ValueError(f"Unknown action type: {step.action}")

        if step.action in SETTLING_ACTIONS and not step.no_wait:
            await self._settle(page, deadline)

    async def _navigate(self, step: Step, page: Page, deadline: float) -> None:
        raw_url = step.url or step.value
        if not raw_url:
            raise ValueError(f"Step '{step.name}' has no URL")
        url = self.resolve_url(raw_url)
        timeout = _remaining_ms(deadline)

        logger.info(f"Navigating to {url}")
        try:
            response = await page.goto(
                url, wait_until=self.config.wait_until, timeout=timeout
            )
        except PlaywrightTimeoutError as e:
            raise NavigationError(url, f"load timed out after {timeout}ms") from e
        except PlaywrightError as e:
            raise NavigationError(url, _first_line(e)) from e

        if response is not None and response.status >= 400:
            raise NavigationError(url, f"HTTP {response.status}", status=response.status)

    async def _click_opening_page(
        self, step: Step, page: Page, resolution: LocatorResolution, deadline: float
    ) -> None:
        async with page.context.expect_page(timeout=_remaining_ms(deadline)) as page_info:
            await resolution.locator.click(timeout=_remaining_ms(deadline))
        new_page = await page_info.value
        self.pages[step.opens_page] = new_page
        if self.page_registrar:
            self.page_registrar(step.opens_page, new_page)
        logger.info(f"Click opened page '{step.opens_page}'")
        try:
            await new_page.wait_for_load_state(
                "domcontentloaded", timeout=_remaining_ms(deadline)
            )
        except PlaywrightError as e:
            logger.debug(f"New page '{step.opens_page}' still loading: {e}")

    async def _resolve(
        self, step: Step, page: Page, deadline: float, warnings: List[str]
    ) -> LocatorResolution:
        if step.target is None:
            raise ValueError(f"Step '{step.name}' has no target")
        resolution = await self.resolver.wait_for(page, step.target, _remaining_ms(deadline))
        warnings.extend(resolution.warnings)
        return resolution

    async def _check_assertion(self, step: Step, page: Page) -> None:
        assertion = step.assertion
        if assertion is None:
            raise ValueError(f"Step '{step.name}' has no assertion")
        kind = assertion.kind

        if kind in (AssertionKind.VISIBLE, AssertionKind.ABSENT, AssertionKind.TEXT_CONTAINS):
            if step.target is None:
                raise ValueError(f"Step '{step.name}' has no target")
            chain = step.target.describe()
            try:
                resolution = await self.resolver.resolve(page, step.target)
            except LocatorNotFound as e:
                if kind == AssertionKind.ABSENT:
                    return
                raise AssertionFailed(f"Expected {chain} to be visible: {e}") from e
            if kind == AssertionKind.ABSENT:
                raise AssertionFailed(
                    f"Expected {chain} to be absent, found via {resolution.candidate.describe()}"
                )
            if kind == AssertionKind.TEXT_CONTAINS:
                text = await resolution.locator.inner_text()
                if (assertion.value or "") not in text:
                    raise AssertionFailed(
                        f"Expected {chain} to contain {assertion.value!r}, got {text[:200]!r}"
                    )
            return

        if kind == AssertionKind.URL_MATCHES:
            if not re.search(assertion.value or "", page.url):
                raise AssertionFailed(
                    f"URL {page.url} does not match {assertion.value!r}"
                )
            return

        text = await page_text(page)
        if kind == AssertionKind.PAGE_CONTAINS and (assertion.value or "") not in text:
            raise AssertionFailed(f"Page does not contain {assertion.value!r}")
        if kind == AssertionKind.PAGE_LACKS and assertion.value and assertion.value in text:
            raise AssertionFailed(f"Page unexpectedly contains {assertion.value!r}")

    async def _settle(self, page: Page, deadline: float) -> None:
        try:
            await page.wait_for_load_state(
                "domcontentloaded", timeout=_remaining_ms(deadline)
            )
        except PlaywrightError as e:
            logger.debug(f"Page did not settle: {e}")
        remaining = max(deadline - time.monotonic(), 0)
        if self.config.settle_ms:
            await asyncio.sleep(min(self.config.settle_ms / 1000, remaining))

    async def _page_for(self, step: Step) -> Page:
        if step.page in self.pages:
            return self.pages[step.page]
        if self.page_factory is None:
            raise LaunchError(f"No page named '{step.page}' and no way to open one")
        page = await self.page_factory(step.page)
        self.pages[step.page] = page
        return page

    def _timeout_for(self, step: Step) -> int:
        if step.timeout_ms is not None:
            return step.timeout_ms
        return self.config.default_timeout_ms

    @staticmethod
    def _is_critical(step: Step, result: StepResult) -> bool:
        if step.critical is not None:
            return step.critical
        return result.error_type == NavigationError.__name__

    @staticmethod
    def _failed(
        step: Step,
        error: BaseException,
        started: datetime,
        warnings: Optional[List[str]] = None,
        screenshot: Optional[str] = None,
    ) -> StepResult:
        return StepResult(
            name=step.name,
            action=step.action,
            page=step.page,
            status=StepStatus.FAILED,
            error=_first_line(error),
            error_type=type(error).__name__,
            started_at=started,
            finished_at=datetime.now(),
            screenshot=screenshot,
            warnings=list(warnings or []),
        )

    @staticmethod
    def skipped_result(step: Step) -> StepResult:
        now = datetime.now()
        return StepResult(
            name=step.name,
            action=step.action,
            page=step.page,
            status=StepStatus.SKIPPED,
            started_at=now,
            finished_at=now,
        )


def _remaining_ms(deadline: float) -> int:
    # Playwright treats timeout=0 as "no timeout"
    return max(int((deadline - time.monotonic()) * 1000), 1)


def _first_line(error: BaseException) -> str:
    text = str(error).strip()
    return text.splitlines()[0] if text else type(error).__name__
