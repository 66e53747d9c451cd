"""Top-level driver for one harness run.

Control flow is strictly top-down:

    RunContext -> BrowserSession -> NavigationStepRunner -> EndpointProbe -> RunReportWriter

CRITICAL: The browser session is closed and a (possibly partial) report is
written on every exit path, including launch failures and the run timeout.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Tuple

from playwright.async_api import Page

from ..browser.session import BrowserSession
from ..config.harness_config import HarnessConfig
from ..exceptions import LaunchError, StepTimeout
from ..models.harness_models import RunContext, RunReport, RunStatus
from ..reporting.report_writer import RunReportWriter
from ..scenarios.loader import Scenario
from ..verification.endpoint_probe import EndpointProbe
from .step_runner import NavigationStepRunner, ResultCallback

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "e2e_harness"
RUN_LOG_FILENAME = "runner.log"

SessionFactory = Callable[[HarnessConfig], BrowserSession]
UserWait = Callable[[], Awaitable[None]]


class HarnessDriver:
    """
    Run a scenario end to end and return its RunReport.

    Example:
        config = load_config()
        report = await HarnessDriver(config).run(load_scenario("login.yaml"))
        sys.exit(report.exit_code)
    """

    def __init__(
        self,
        config: HarnessConfig,
        session_factory: Optional[SessionFactory] = None,
        report_writer: Optional[RunReportWriter] = None,
        endpoint_probe: Optional[EndpointProbe] = None,
        on_result: Optional[ResultCallback] = None,
        wait_for_user: Optional[UserWait] = None,
    ):
        """
        Initialize the driver.

        Args:
            config: Harness configuration
            session_factory: Builds the (unstarted) BrowserSession
            report_writer: Writes report.json and report.html
            endpoint_probe: Runs scenario endpoint checks
            on_result: Progress callback passed to the step runner
            wait_for_user: Awaited before closing in interactive mode
        """
        self.config = config
        self.session_factory = session_factory or BrowserSession
        self.report_writer = report_writer or RunReportWriter()
        self.endpoint_probe = endpoint_probe
        self.on_result = on_result
        self.wait_for_user = wait_for_user or _wait_for_enter
        self.context: Optional[RunContext] = None

    async def run(self, scenario: Scenario) -> RunReport:
        """
        Execute a scenario.

        Args:
            scenario: Scenario to run

        Returns:
            The written RunReport

        Raises:
            ConfigError: If no base URL can be resolved (before anything starts)
        """
        base_url = scenario.base_url or self.config.resolve_base_url()
        context = RunContext.create(
            self.config.output_root, self.config.output_prefix, scenario=scenario.name
        )
        self.context = context
        handler, previous_level = self._attach_run_logger(context.output_dir / RUN_LOG_FILENAME)
        logger.info(f"Run {context.run_id} started: scenario '{scenario.name}' against {base_url}")

        session = self.session_factory(self.config)

        try:
            try:
                status, error = await self._execute(scenario, session, context, base_url)
            except Exception as e:
                logger.error(f"Run {context.run_id} failed unexpectedly: {type(e).__name__}: {e}")
                for step in scenario.steps[len(context.step_results):]:
                    context.add_step_result(NavigationStepRunner.skipped_result(step))
                self._write_report(session, context, RunStatus.ABORTED, f"{type(e).__name__}: {e}")
                raise

            report = self._write_report(session, context, status, error)

            if self.config.interactive and session.is_open:
                if self.config.headless:
                    logger.info("Interactive mode ignored for a headless browser")
                else:
                    await self.wait_for_user()
        finally:
            await session.close()
            self._detach_run_logger(handler, previous_level)

        return report

    async def _execute(
        self,
        scenario: Scenario,
        session: BrowserSession,
        context: RunContext,
        base_url: str,
    ) -> Tuple[RunStatus, Optional[str]]:
        try:
            await session.start()
        except LaunchError as e:
            logger.error(f"Browser launch failed: {e}")
            status, error = RunStatus.ABORTED, str(e)
            for step in scenario.steps:
                context.add_step_result(NavigationStepRunner.skipped_result(step))
        else:
            status, error = await self._run_steps(scenario, session, context, base_url)

        if scenario.endpoints:
            probe = self.endpoint_probe or EndpointProbe(base_url)
            context.endpoints.extend(await probe.run(scenario.endpoints))
        return status, error

    def _write_report(
        self,
        session: BrowserSession,
        context: RunContext,
        status: RunStatus,
        error: Optional[str],
    ) -> RunReport:
        for warning in session.warnings:
            context.add_warning(warning)
        context.diagnostics.extend(session.diagnostics.entries)

        report = RunReport.from_context(context, status, datetime.now(), error)
        self.report_writer.write(report, self.config.report_formats)
        logger.info(
            f"Run {context.run_id} {status.value}: {report.summary.passed} passed, "
            f"{report.summary.failed} failed, {report.summary.skipped} skipped, "
            f"{len(session.diagnostics.errors())} browser errors"
        )
        return report

    async def _run_steps(
        self,
        scenario: Scenario,
        session: BrowserSession,
        context: RunContext,
        base_url: str,
    ):
        runner = NavigationStepRunner(
            self.config,
            context,
            base_url=base_url,
            page_factory=session.new_page,
            page_registrar=session.adopt_page,
            on_result=self.on_result,
        )

        pages: Dict[str, Page] = {}
        try:
            for name in scenario.pages:
                pages[name] = await session.new_page(name)
        except LaunchError as e:
            logger.error(f"Could not open page: {e}")
            for step in scenario.steps:
                context.add_step_result(runner.skipped_result(step))
            return RunStatus.ABORTED, str(e)

        run_timeout_ms = self.config.run_timeout_ms
        try:
            status = await asyncio.wait_for(
                runner.run(scenario.steps, pages), timeout=run_timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            message = f"Run exceeded {run_timeout_ms}ms"
            logger.error(message)
            runner.record_interrupted(StepTimeout(message, run_timeout_ms))
            return RunStatus.ABORTED, message
        return status, None

    def _attach_run_logger(self, log_path: Path):
        handler = logging.FileHandler(log_path, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        handler.setLevel(logging.INFO)

        package_logger = logging.getLogger(PACKAGE_LOGGER)
        previous_level = package_logger.level
        if package_logger.getEffectiveLevel() > logging.INFO:
            package_logger.setLevel(logging.INFO)
        package_logger.addHandler(handler)
        return handler, previous_level

    def _detach_run_logger(self, handler: logging.Handler, previous_level: int) -> None:
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        package_logger.removeHandler(handler)
        package_logger.setLevel(previous_level)
        handler.close()


async def _wait_for_enter() -> None:
    loop = asyncio.get_event_loop()
    await loop.run_in_executor(None, input, "Browser left open for inspection. Press Enter to close...")
