"""Error taxonomy for the harness.

Step-level errors (LocatorNotFound, StepTimeout, NavigationError,
AssertionFailed) are caught by the step runner and recorded on the
StepResult. LaunchError is fatal and propagates to the driver.
ReportWriteError is only ever surfaced as a run warning.
"""

from typing import Optional


class HarnessError(Exception):
    """Base class for all harness errors."""

    pass


class ConfigError(HarnessError):
    """Raised when the harness configuration is invalid."""

    pass


class ScenarioError(HarnessError):
    """Raised when a scenario file cannot be loaded."""

    pass


class LaunchError(HarnessError):
    """Raised when the browser process or a page cannot be started."""

    pass


class LocatorNotFound(HarnessError):
    """Raised when no candidate of a locator chain resolves.

    Carries the full chain description and the page URL so a failed
    step can be diagnosed from the report alone.
    """

    def __init__(self, chain_description: str, url: Optional[str] = None):
        self.chain_description = chain_description
        self.url = url
        where = f" on {url}" if url else ""
        super().__init__(f"No element matched {chain_description}{where}")


class StepTimeout(HarnessError):
    """Raised when a step does not complete within its timeout."""

    def __init__(self, message: str, timeout_ms: Optional[int] = None):
        self.timeout_ms = timeout_ms
        super().__init__(message)


class NavigationError(HarnessError):
    """Raised when a page fails to load or returns an error status."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        self.url = url
        self.status = status
        super().__init__(f"Navigation to {url} failed: {reason}")


class AssertionFailed(HarnessError):
    """Raised when an assert step's check does not hold."""

    pass


class ReportWriteError(HarnessError):
    """Raised when a report artifact cannot be written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Failed to write {path}: {reason}")
