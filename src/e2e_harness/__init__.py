"""e2e-harness: browser-driven UI verification for deployed web apps.

A run opens a Playwright browser, executes a scenario's steps against
elements found through fallback locator chains, captures numbered
screenshots and writes JSON and HTML reports into a fresh run directory.
"""

from .browser import BrowserSession, ElementLocatorChain
from .config import HarnessConfig, load_config
from .exceptions import (
    AssertionFailed,
    ConfigError,
    HarnessError,
    LaunchError,
    LocatorNotFound,
    NavigationError,
    ReportWriteError,
    ScenarioError,
    StepTimeout,
)
from .models import LocatorChain, RunContext, RunReport, Step, StepResult
from .reporting import RunReportWriter
from .runner import HarnessDriver, NavigationStepRunner, ScreenshotRecorder
from .scenarios import Scenario, load_scenario

__version__ = "0.1.0"

__all__ = [
    "BrowserSession",
    "ElementLocatorChain",
    "HarnessConfig",
    "load_config",
    "AssertionFailed",
    "ConfigError",
    "HarnessError",
    "LaunchError",
    "LocatorNotFound",
    "NavigationError",
    "ReportWriteError",
    "ScenarioError",
    "StepTimeout",
    "LocatorChain",
    "RunContext",
    "RunReport",
    "Step",
    "StepResult",
    "RunReportWriter",
    "HarnessDriver",
    "NavigationStepRunner",
    "ScreenshotRecorder",
    "Scenario",
    "load_scenario",
]
