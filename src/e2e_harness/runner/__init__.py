"""Step execution: conditions, screenshots, the step runner and the run driver."""

from .conditions import ConditionChecker, poll_until
from .driver import HarnessDriver
from .screenshots import ScreenshotRecorder
from .step_runner import NavigationStepRunner

__all__ = [
    "ConditionChecker",
    "poll_until",
    "HarnessDriver",
    "ScreenshotRecorder",
    "NavigationStepRunner",
]
