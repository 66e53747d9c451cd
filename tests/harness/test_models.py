"""Tests for harness data models."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from e2e_harness.models.harness_models import (
    ActionKind,
    AttributeMatch,
    LocatorCandidate,
    LocatorChain,
    LocatorStrategy,
    RunContext,
    RunReport,
    RunStatus,
    Step,
    StepResult,
    StepStatus,
    EndpointResult,
    slugify,
)


class TestLocatorParsing:
    """Tests for locator shorthand parsing."""

    def test_prefixed_strings(self):
        assert LocatorCandidate.parse("css:#login") == LocatorCandidate(
            strategy=LocatorStrategy.CSS, value="#login"
        )
        text = LocatorCandidate.parse('text:"Sign in"')
        assert text.strategy == LocatorStrategy.TEXT
        assert text.value == "Sign in"

    def test_bare_string_is_css(self):
        candidate = LocatorCandidate.parse("button.primary")
        assert candidate.strategy == LocatorStrategy.CSS
        assert candidate.value == "button.primary"

    def test_dict_forms(self):
        role = LocatorCandidate.parse({"role": "button", "name": "Sign in"})
        assert role.strategy == LocatorStrategy.ROLE
        assert role.name == "Sign in"

        scoped = LocatorCandidate.parse({"text": "Dev Toolkit", "tag": "button"})
        assert scoped.tag == "button"

        attribute = LocatorCandidate.parse(
            {"attribute": "data-testid", "value": "login", "match": "prefix"}
        )
        assert attribute.attribute == "data-testid"
        assert attribute.match == AttributeMatch.PREFIX

    def test_attribute_without_value_rejected(self):
        with pytest.raises(ValueError, match="value"):
            LocatorCandidate.parse({"attribute": "data-testid"})

    def test_unknown_dict_rejected(self):
        with pytest.raises(ValueError, match="no known strategy"):
            LocatorCandidate.parse({"xpath": "//button"})

    def test_chain_parse_and_describe(self):
        chain = LocatorChain.parse(['css:"#login"', 'text:"Sign in"'])
        assert [c.value for c in chain.candidates] == ["#login", "Sign in"]
        assert chain.describe() == '[css:#login, text:"Sign in"]'

    def test_chain_accepts_single_item(self):
        chain = LocatorChain.parse({"css": "#login"})
        assert len(chain.candidates) == 1

    def test_empty_chain_rejected(self):
        with pytest.raises(ValueError):
            LocatorChain.parse([])


class TestStep:
    """Tests for the Step model."""

    def test_step_is_immutable(self):
        step = Step(name="open", action=ActionKind.NAVIGATE, url="/")
        with pytest.raises(ValidationError):
            step.name = "other"

    def test_negative_timeout_rejected(self):
        with pytest.raises(ValidationError):
            Step(name="open", action=ActionKind.NAVIGATE, url="/", timeout_ms=-1)


class TestRunContext:
    """Tests for run directory creation."""

    def test_run_id_format(self, tmp_path):
        now = datetime(2024, 5, 1, 12, 30, 45)
        context = RunContext.create(tmp_path, prefix="Dev Toolkit", now=now)
        assert context.run_id == "dev-toolkit-20240501-123045"
        assert context.output_dir.is_dir()

    def test_directories_never_reused(self, tmp_path):
        now = datetime(2024, 5, 1, 12, 30, 45)
        first = RunContext.create(tmp_path, now=now)
        second = RunContext.create(tmp_path, now=now)
        third = RunContext.create(tmp_path, now=now)
        dirs = {first.output_dir, second.output_dir, third.output_dir}
        assert len(dirs) == 3
        assert second.run_id == "run-20240501-123045-1"

    def test_identity_is_frozen(self, tmp_path):
        context = RunContext.create(tmp_path)
        with pytest.raises(ValidationError):
            context.run_id = "other"


class TestRunReport:
    """Tests for report aggregation."""

    def _result(self, name, status):
        return StepResult(name=name, action=ActionKind.CLICK, status=status)

    def test_summary_and_exit_code(self, tmp_path):
        context = RunContext.create(tmp_path)
        context.add_step_result(self._result("a", StepStatus.PASSED))
        context.add_step_result(self._result("b", StepStatus.FAILED))
        context.add_step_result(self._result("c", StepStatus.SKIPPED))

        report = RunReport.from_context(context, RunStatus.ABORTED)
        assert report.summary.passed == 1
        assert report.summary.failed == 1
        assert report.summary.skipped == 1
        assert report.summary.total == 3
        assert report.exit_code == 1

    def test_zero_failures_exits_zero(self, tmp_path):
        context = RunContext.create(tmp_path)
        context.add_step_result(self._result("a", StepStatus.PASSED))
        report = RunReport.from_context(context, RunStatus.COMPLETED)
        assert report.succeeded
        assert report.exit_code == 0

    def test_endpoint_failure_fails_run(self, tmp_path):
        context = RunContext.create(tmp_path)
        context.add_step_result(self._result("a", StepStatus.PASSED))
        context.endpoints.append(
            EndpointResult(name="health", url="/health", method="GET", passed=False)
        )
        report = RunReport.from_context(context, RunStatus.COMPLETED)
        assert report.exit_code == 1
        assert report.summary.failed == 0

    def test_to_dict_keys(self, tmp_path):
        context = RunContext.create(tmp_path, scenario="login")
        context.add_step_result(self._result("a", StepStatus.PASSED))
        data = RunReport.from_context(context, RunStatus.COMPLETED).to_dict()

        assert list(data) == [
            "runId",
            "scenario",
            "status",
            "startedAt",
            "finishedAt",
            "steps",
            "screenshots",
            "summary",
            "warnings",
            "diagnostics",
            "endpoints",
            "error",
        ]
        assert data["steps"][0]["passed"] is True
        assert data["summary"] == {"passed": 1, "failed": 0, "skipped": 0, "total": 1}


def test_slugify():
    assert slugify("After Click!") == "after-click"
    assert slugify("  --  ") == ""
