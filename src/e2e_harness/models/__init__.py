"""Models package for the e2e harness."""

from .harness_models import (
    ActionKind,
    Assertion,
    AssertionKind,
    AttributeMatch,
    BrowserType,
    ConditionKind,
    DiagnosticEntry,
    EndpointCheck,
    EndpointResult,
    LocatorCandidate,
    LocatorChain,
    LocatorStrategy,
    RunContext,
    RunReport,
    RunStatus,
    RunSummary,
    ScreenshotRecord,
    Step,
    StepResult,
    StepStatus,
    Viewport,
    WaitCondition,
    slugify,
)

__all__ = [
    # Browser
    "BrowserType",
    "Viewport",
    # Locators
    "LocatorStrategy",
    "AttributeMatch",
    "LocatorCandidate",
    "LocatorChain",
    # Steps
    "ActionKind",
    "ConditionKind",
    "WaitCondition",
    "AssertionKind",
    "Assertion",
    "Step",
    "StepStatus",
    "StepResult",
    # Run records
    "ScreenshotRecord",
    "DiagnosticEntry",
    "EndpointCheck",
    "EndpointResult",
    "RunStatus",
    "RunContext",
    "RunSummary",
    "RunReport",
    "slugify",
]
