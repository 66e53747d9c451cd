"""Data models for harness runs.

This module defines the Pydantic models shared by every harness component:
locator chains, steps and their results, screenshot records, browser
diagnostics, endpoint probe results, the run context and the final report.
"""

import re
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class BrowserType(str, Enum):
    """Supported browser engines."""

    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class Viewport(BaseModel):
    """Browser viewport configuration."""

    width: int = Field(default=1280, description="Viewport width")
    height: int = Field(default=720, description="Viewport height")


class LocatorStrategy(str, Enum):
    """Ways a locator candidate can find an element."""

    CSS = "css"
    TEXT = "text"
    ROLE = "role"
    LABEL = "label"
    ATTRIBUTE = "attribute"


class AttributeMatch(str, Enum):
    """Comparison used by attribute candidates."""

    EQUALS = "equals"
    CONTAINS = "contains"
    PREFIX = "prefix"
    SUFFIX = "suffix"


class LocatorCandidate(BaseModel):
    """One strategy in a locator chain."""

    strategy: LocatorStrategy = Field(description="Lookup strategy")
    value: str = Field(description="Selector, text, role, label or attribute value")
    tag: Optional[str] = Field(default=None, description="Tag scope for text matches")
    name: Optional[str] = Field(default=None, description="Accessible name for role matches")
    attribute: Optional[str] = Field(default=None, description="Attribute name")
    match: AttributeMatch = Field(
        default=AttributeMatch.CONTAINS, description="Attribute comparison"
    )

    class Config:
        frozen = True

    def describe(self) -> str:
        """Short human-readable form, e.g. ``text:"Sign in"``."""
        if self.strategy == LocatorStrategy.CSS:
            return f"css:{self.value}"
        if self.strategy == LocatorStrategy.TEXT:
            scope = f"{self.tag} " if self.tag else ""
            return f'text:{scope}"{self.value}"'
        if self.strategy == LocatorStrategy.ROLE:
            if self.name:
                return f'role:{self.value}[name="{self.name}"]'
            return f"role:{self.value}"
        if self.strategy == LocatorStrategy.LABEL:
            return f'label:"{self.value}"'
        return f'attribute:{self.attribute}[{self.match.value}="{self.value}"]'

    @classmethod
    def parse(cls, raw: Union[str, Dict[str, Any], "LocatorCandidate"]) -> "LocatorCandidate":
        """Build a candidate from its shorthand form.

        Accepted forms::

            "css:#login"            {"css": "#login"}
            'text:"Sign in"'        {"text": "Sign in", "tag": "button"}
            "role:button"           {"role": "button", "name": "Sign in"}
            "label:Email"           {"label": "Email"}
                                    {"attribute": "data-testid", "value": "login"}

        A bare string without a known prefix is treated as a CSS selector.
        """
        if isinstance(raw, LocatorCandidate):
            return raw

        if isinstance(raw, str):
            prefix, sep, rest = raw.partition(":")
            if sep and prefix in {s.value for s in LocatorStrategy} - {"attribute"}:
                return cls(strategy=LocatorStrategy(prefix), value=_unquote(rest))
            return cls(strategy=LocatorStrategy.CSS, value=raw)

        if not isinstance(raw, dict):
            raise ValueError(f"Unsupported locator candidate: {raw!r}")

        if "strategy" in raw:
            return cls(**raw)

        if "css" in raw:
            return cls(strategy=LocatorStrategy.CSS, value=raw["css"])
        if "text" in raw:
            return cls(strategy=LocatorStrategy.TEXT, value=raw["text"], tag=raw.get("tag"))
        if "role" in raw:
            return cls(strategy=LocatorStrategy.ROLE, value=raw["role"], name=raw.get("name"))
        if "label" in raw:
            return cls(strategy=LocatorStrategy.LABEL, value=raw["label"])
        if "attribute" in raw:
            if "value" not in raw:
                raise ValueError(f"Attribute candidate needs a 'value': {raw!r}")
            return cls(
                strategy=LocatorStrategy.ATTRIBUTE,
                attribute=raw["attribute"],
                value=raw["value"],
                match=AttributeMatch(raw.get("match", AttributeMatch.CONTAINS.value)),
            )

        raise ValueError(f"Locator candidate has no known strategy key: {raw!r}")


class LocatorChain(BaseModel):
    """Ordered fallback candidates for finding one element."""

    candidates: List[LocatorCandidate] = Field(description="Candidates in priority order")

    class Config:
        frozen = True

    def describe(self) -> str:
        return "[" + ", ".join(c.describe() for c in self.candidates) + "]"

    @classmethod
    def parse(cls, raw: Any) -> "LocatorChain":
        """Build a chain from a list of candidate shorthands (or a single one)."""
        if isinstance(raw, LocatorChain):
            return raw
        if isinstance(raw, dict) and "candidates" in raw:
            raw = raw["candidates"]
        if not isinstance(raw, list):
            raw = [raw]
        if not raw:
            raise ValueError("Locator chain needs at least one candidate")
        return cls(candidates=[LocatorCandidate.parse(item) for item in raw])


class ActionKind(str, Enum):
    """Step action kinds."""

    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    PRESS = "press"
    WAIT_FOR = "wait-for"
    ASSERT = "assert"
    SCREENSHOT = "screenshot"


class ConditionKind(str, Enum):
    """Conditions a wait-for step can poll."""

    ELEMENT = "element"
    ELEMENT_ABSENT = "element-absent"
    URL = "url"
    TEXT = "text"
    TEXT_ABSENT = "text-absent"
    SCRIPT = "script"


class WaitCondition(BaseModel):
    """Condition polled by a wait-for step."""

    kind: ConditionKind = Field(description="Condition kind")
    value: Optional[str] = Field(
        default=None, description="URL pattern, text or JavaScript expression"
    )
    target: Optional[LocatorChain] = Field(
        default=None, description="Element chain for element conditions"
    )

    class Config:
        frozen = True


class AssertionKind(str, Enum):
    """One-shot checks an assert step can make."""

    VISIBLE = "visible"
    ABSENT = "absent"
    TEXT_CONTAINS = "text-contains"
    PAGE_CONTAINS = "page-contains"
    PAGE_LACKS = "page-lacks"
    URL_MATCHES = "url-matches"


class Assertion(BaseModel):
    """Check made by an assert step."""

    kind: AssertionKind = Field(description="Assertion kind")
    value: Optional[str] = Field(default=None, description="Expected text or URL pattern")

    class Config:
        frozen = True


class Step(BaseModel):
    """A named unit of interaction, authored statically by a scenario."""

    name: str = Field(description="Step name")
    action: ActionKind = Field(description="Action kind")
    target: Optional[LocatorChain] = Field(default=None, description="Target element chain")
    value: Optional[str] = Field(default=None, description="Input value or key combination")
    url: Optional[str] = Field(default=None, description="Navigation URL")
    timeout_ms: Optional[int] = Field(default=None, ge=0, description="Timeout override")
    critical: Optional[bool] = Field(
        default=None, description="Abort the run on failure (unset: NavigationError only)"
    )
    page: str = Field(default="main", description="Name of the page the step runs on")
    no_wait: bool = Field(default=False, description="Skip settling after the action")
    submit: bool = Field(default=False, description="Press Enter after typing")
    opens_page: Optional[str] = Field(
        default=None, description="Register the popup opened by a click under this name"
    )
    screenshot: Optional[str] = Field(
        default=None, description="Capture a screenshot with this name after the step"
    )
    full_page: bool = Field(default=True, description="Full-page screenshot")
    description: Optional[str] = Field(default=None, description="Free-text description")
    condition: Optional[WaitCondition] = Field(default=None, description="wait-for condition")
    assertion: Optional[Assertion] = Field(default=None, description="assert check")

    class Config:
        frozen = True


class StepStatus(str, Enum):
    """Lifecycle of one step."""

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunStatus(str, Enum):
    """Terminal state of a run."""

    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class StepResult(BaseModel):
    """Outcome of one executed (or skipped) step."""

    name: str = Field(description="Step name")
    action: ActionKind = Field(description="Action kind")
    page: str = Field(default="main", description="Page name")
    status: StepStatus = Field(description="Final step status")
    error: Optional[str] = Field(default=None, description="Error message")
    error_type: Optional[str] = Field(default=None, description="Error class name")
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime = Field(default_factory=datetime.now)
    screenshot: Optional[str] = Field(default=None, description="Screenshot filename")
    warnings: List[str] = Field(default_factory=list, description="Non-fatal warnings")

    class Config:
        frozen = True

    @property
    def passed(self) -> bool:
        return self.status == StepStatus.PASSED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "action": self.action.value,
            "page": self.page,
            "passed": self.passed,
            "status": self.status.value,
            "error": self.error,
            "errorType": self.error_type,
            "screenshot": self.screenshot,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat(),
            "warnings": list(self.warnings),
        }


class ScreenshotRecord(BaseModel):
    """One captured screenshot."""

    sequence: int = Field(description="Sequence number within the run")
    filename: str = Field(description="File name inside the run directory")
    description: str = Field(default="", description="Free-text description")
    captured_at: datetime = Field(default_factory=datetime.now)
    full_page: bool = Field(default=True, description="Full-page capture")
    page: str = Field(default="main", description="Page name")

    class Config:
        frozen = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "filename": self.filename,
            "description": self.description,
            "capturedAt": self.captured_at.isoformat(),
            "fullPage": self.full_page,
            "page": self.page,
        }


class DiagnosticEntry(BaseModel):
    """Console message, page error or network failure seen during a run."""

    kind: str = Field(description="console | pageerror | requestfailed | response")
    page: str = Field(description="Page name")
    message: str = Field(description="Message text")
    level: Optional[str] = Field(default=None, description="Console level")
    url: Optional[str] = Field(default=None, description="Request URL")
    status: Optional[int] = Field(default=None, description="HTTP status")
    timestamp: datetime = Field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "page": self.page,
            "message": self.message,
            "level": self.level,
            "url": self.url,
            "status": self.status,
            "timestamp": self.timestamp.isoformat(),
        }


class EndpointCheck(BaseModel):
    """Backend endpoint probed independently of the UI."""

    name: str = Field(description="Check name")
    url: str = Field(description="Absolute URL or path relative to the base URL")
    method: str = Field(default="GET", description="HTTP method")
    expected_status: int = Field(default=200, description="Expected HTTP status")
    contains: Optional[str] = Field(default=None, description="Text the body must contain")
    headers: Dict[str, str] = Field(default_factory=dict, description="Request headers")
    json_body: Optional[Dict[str, Any]] = Field(default=None, description="JSON payload")
    timeout_ms: int = Field(default=10_000, description="Request timeout")


class EndpointResult(BaseModel):
    """Outcome of one endpoint probe."""

    name: str
    url: str
    method: str
    passed: bool
    status: Optional[int] = None
    error: Optional[str] = None
    checked_at: datetime = Field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "method": self.method,
            "passed": self.passed,
            "status": self.status,
            "error": self.error,
            "checkedAt": self.checked_at.isoformat(),
        }


class RunContext(BaseModel):
    """Identity and collected records of one harness run.

    Identity fields are frozen. The record lists only ever grow; they are
    filled by the runner and recorder while the run executes.
    """

    run_id: str = Field(description="Timestamp-based run identifier")
    output_dir: Path = Field(description="Run-scoped output directory")
    started_at: datetime = Field(default_factory=datetime.now)
    scenario: Optional[str] = Field(default=None, description="Scenario name")
    step_results: List[StepResult] = Field(default_factory=list)
    screenshots: List[ScreenshotRecord] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    diagnostics: List[DiagnosticEntry] = Field(default_factory=list)
    endpoints: List[EndpointResult] = Field(default_factory=list)

    class Config:
        frozen = True

    @classmethod
    def create(
        cls,
        output_root: Union[str, Path],
        prefix: str = "run",
        scenario: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "RunContext":
        """Create a context and its fresh output directory.

        The directory is never reused: if ``{prefix}-{timestamp}`` already
        exists a numeric suffix is appended.
        """
        started_at = now or datetime.now()
        root = Path(output_root)
        root.mkdir(parents=True, exist_ok=True)

        base_id = f"{slugify(prefix) or 'run'}-{started_at.strftime('%Y%m%d-%H%M%S')}"
        run_id = base_id
        attempt = 1
        while True:
            output_dir = root / run_id
            try:
                output_dir.mkdir()
                break
            except FileExistsError:
                run_id = f"{base_id}-{attempt}"
                attempt += 1

        return cls(
            run_id=run_id,
            output_dir=output_dir,
            started_at=started_at,
            scenario=scenario,
        )

    def add_step_result(self, result: StepResult) -> None:
        self.step_results.append(result)

    def add_screenshot(self, record: ScreenshotRecord) -> None:
        self.screenshots.append(record)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)


class RunSummary(BaseModel):
    """Counts of step outcomes."""

    passed: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0

    @classmethod
    def from_results(cls, results: List[StepResult]) -> "RunSummary":
        return cls(
            passed=sum(1 for r in results if r.status == StepStatus.PASSED),
            failed=sum(1 for r in results if r.status == StepStatus.FAILED),
            skipped=sum(1 for r in results if r.status == StepStatus.SKIPPED),
            total=len(results),
        )


class RunReport(BaseModel):
    """Aggregate of one run's records, built once at the end of the run."""

    run_id: str
    scenario: Optional[str] = None
    status: RunStatus
    started_at: datetime
    finished_at: datetime
    output_dir: Path
    steps: List[StepResult] = Field(default_factory=list)
    screenshots: List[ScreenshotRecord] = Field(default_factory=list)
    summary: RunSummary
    warnings: List[str] = Field(default_factory=list)
    diagnostics: List[DiagnosticEntry] = Field(default_factory=list)
    endpoints: List[EndpointResult] = Field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_context(
        cls,
        context: RunContext,
        status: RunStatus,
        finished_at: Optional[datetime] = None,
        error: Optional[str] = None,
    ) -> "RunReport":
        return cls(
            run_id=context.run_id,
            scenario=context.scenario,
            status=status,
            started_at=context.started_at,
            finished_at=finished_at or datetime.now(),
            output_dir=context.output_dir,
            steps=list(context.step_results),
            screenshots=list(context.screenshots),
            summary=RunSummary.from_results(context.step_results),
            warnings=list(context.warnings),
            diagnostics=list(context.diagnostics),
            endpoints=list(context.endpoints),
            error=error,
        )

    @property
    def endpoint_failures(self) -> int:
        return sum(1 for e in self.endpoints if not e.passed)

    @property
    def succeeded(self) -> bool:
        return (
            self.status == RunStatus.COMPLETED
            and self.summary.failed == 0
            and self.endpoint_failures == 0
        )

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def to_dict(self) -> Dict[str, Any]:
        """Canonical machine-readable form (the report.json payload)."""
        return {
            "runId": self.run_id,
            "scenario": self.scenario,
            "status": self.status.value,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat(),
            "steps": [step.to_dict() for step in self.steps],
            "screenshots": [shot.to_dict() for shot in self.screenshots],
            "summary": {
                "passed": self.summary.passed,
                "failed": self.summary.failed,
                "skipped": self.summary.skipped,
                "total": self.summary.total,
            },
            "warnings": list(self.warnings),
            "diagnostics": [entry.to_dict() for entry in self.diagnostics],
            "endpoints": [result.to_dict() for result in self.endpoints],
            "error": self.error,
        }


def slugify(text: str) -> str:
    """Lower-case, dash-separated form of ``text`` safe for file names."""
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", text.strip().lower())
    return slug.strip("-")


def _unquote(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1]
    return text
