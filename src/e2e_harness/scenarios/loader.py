"""Load scenario files.

A scenario is a YAML or JSON document::

    name: login-flow
    base_url: https://example.test      # optional, overrides the environment
    pages: [main]                       # opened before the first step
    steps:
      - name: open app
        action: navigate
        url: /
      - name: sign in
        action: click
        target: ["css:#login", 'text:"Sign in"']
      - name: dashboard shown
        action: wait-for
        condition: {text: "Dashboard"}
        timeout_ms: 5000
    endpoints:
      - name: health
        url: /api/health

Conditions and assertions accept ``{kind: ..., value: ...}`` or the
shorthand ``{<kind>: <value>}``; element conditions take a locator chain as
their value.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..exceptions import ScenarioError
from ..models.harness_models import (
    ActionKind,
    Assertion,
    AssertionKind,
    ConditionKind,
    EndpointCheck,
    LocatorChain,
    Step,
    WaitCondition,
)

logger = logging.getLogger(__name__)

SCENARIO_SUFFIXES = (".yaml", ".yml", ".json")

_ELEMENT_CONDITIONS = (ConditionKind.ELEMENT, ConditionKind.ELEMENT_ABSENT)
_ELEMENT_ASSERTIONS = (
    AssertionKind.VISIBLE,
    AssertionKind.ABSENT,
    AssertionKind.TEXT_CONTAINS,
)


class Scenario(BaseModel):
    """A named, statically authored sequence of steps."""

    name: str = Field(description="Scenario name")
    description: str = Field(default="", description="What the scenario verifies")
    base_url: Optional[str] = Field(default=None, description="Base URL override")
    pages: List[str] = Field(default_factory=lambda: ["main"], description="Pages opened upfront")
    steps: List[Step] = Field(default_factory=list, description="Steps in execution order")
    endpoints: List[EndpointCheck] = Field(default_factory=list, description="Backend probes")
    source: Optional[str] = Field(default=None, description="File the scenario came from")


def load_scenario(path: Union[str, Path]) -> Scenario:
    """Load a scenario from a YAML or JSON file.

    Raises:
        ScenarioError: If the file is missing, unparseable or invalid
    """
    source = Path(path)
    if not source.is_file():
        raise ScenarioError(f"Scenario file not found: {source}")

    try:
        text = source.read_text(encoding="utf-8")
        if source.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ScenarioError(f"Cannot parse scenario {source}: {e}") from e

    scenario = parse_scenario(data, source=str(source), default_name=source.stem)
    logger.debug(f"Loaded scenario '{scenario.name}' with {len(scenario.steps)} steps")
    return scenario


def list_scenarios(directory: Union[str, Path]) -> List[Path]:
    """Scenario files directly inside ``directory``, sorted by name."""
    root = Path(directory)
    if not root.is_dir():
        raise ScenarioError(f"Scenario directory not found: {root}")
    return sorted(
        p for p in root.iterdir() if p.is_file() and p.suffix.lower() in SCENARIO_SUFFIXES
    )


def parse_scenario(
    data: Any, source: str = "<scenario>", default_name: Optional[str] = None
) -> Scenario:
    """Build a Scenario from already-parsed data.

    Raises:
        ScenarioError: Naming the offending step when validation fails
    """
    if not isinstance(data, dict):
        raise ScenarioError(f"{source}: scenario must be a mapping")

    raw_steps = data.get("steps")
    if not isinstance(raw_steps, list) or not raw_steps:
        raise ScenarioError(f"{source}: scenario must include a non-empty 'steps' list")

    steps = [_parse_step(raw, index, source) for index, raw in enumerate(raw_steps)]

    endpoints = []
    for index, raw in enumerate(data.get("endpoints") or []):
        try:
            endpoints.append(EndpointCheck(**raw))
        except (TypeError, ValidationError) as e:
            raise ScenarioError(f"{source}: endpoint {index + 1} is invalid: {e}") from e

    pages = data.get("pages") or ["main"]
    if "main" not in pages:
        pages = ["main"] + list(pages)

    try:
        return Scenario(
            name=data.get("name") or default_name or "scenario",
            description=data.get("description") or "",
            base_url=data.get("base_url"),
            pages=pages,
            steps=steps,
            endpoints=endpoints,
            source=source,
        )
    except ValidationError as e:
        raise ScenarioError(f"{source}: invalid scenario: {e}") from e


def _parse_step(raw: Any, index: int, source: str) -> Step:
    label = f"step {index + 1}"
    if not isinstance(raw, dict):
        raise ScenarioError(f"{source}: {label} must be a mapping")

    fields: Dict[str, Any] = dict(raw)
    name = fields.get("name") or f"{fields.get('action', 'step')}-{index + 1}"
    label = f"step {index + 1} ('{name}')"
    fields["name"] = name

    try:
        action = ActionKind(fields.get("action"))
        fields["action"] = action
        if fields.get("target") is not None:
            fields["target"] = LocatorChain.parse(fields["target"])
        if fields.get("condition") is not None:
            fields["condition"] = _parse_condition(fields["condition"])
        if fields.get("assertion") is not None:
            assertion, target = _parse_assertion(fields["assertion"])
            fields["assertion"] = assertion
            if target is not None and fields.get("target") is None:
                fields["target"] = target
        step = Step(**fields)
    except (ValueError, TypeError) as e:
        raise ScenarioError(f"{source}: {label} is invalid: {e}") from e

    problem = _validate_step(step)
    if problem:
        raise ScenarioError(f"{source}: {label} {problem}")
    return step


def _split_kind(raw: Dict[str, Any], kinds: Any) -> Any:
    """Return (kind, value) for ``{kind: k, value: v}`` or ``{k: v}`` forms."""
    if "kind" in raw:
        return raw["kind"], raw.get("value")
    known = [key for key in raw if key in {k.value for k in kinds}]
    if len(known) != 1:
        raise ValueError(f"expected exactly one of {sorted(k.value for k in kinds)}, got {raw!r}")
    return known[0], raw[known[0]]


def _parse_condition(raw: Any) -> WaitCondition:
    if isinstance(raw, WaitCondition):
        return raw
    if not isinstance(raw, dict):
        raise ValueError(f"condition must be a mapping, got {raw!r}")

    kind_value, value = _split_kind(raw, ConditionKind)
    kind = ConditionKind(kind_value)
    target = raw.get("target")
    if kind in _ELEMENT_CONDITIONS:
        if target is None and value is not None:
            target = value
        return WaitCondition(
            kind=kind, target=LocatorChain.parse(target) if target is not None else None
        )
    return WaitCondition(kind=kind, value=None if value is None else str(value))


def _parse_assertion(raw: Any) -> Any:
    if isinstance(raw, Assertion):
        return raw, None
    if not isinstance(raw, dict):
        raise ValueError(f"assertion must be a mapping, got {raw!r}")

    kind_value, value = _split_kind(raw, AssertionKind)
    kind = AssertionKind(kind_value)
    target = raw.get("target")
    if kind in (AssertionKind.VISIBLE, AssertionKind.ABSENT):
        if target is None and value is not None:
            target = value
        value = None
    chain = LocatorChain.parse(target) if target is not None else None
    return Assertion(kind=kind, value=None if value is None else str(value)), chain


def _validate_step(step: Step) -> Optional[str]:
    """Describe what the step is missing for its action, if anything."""
    action = step.action

    if action == ActionKind.NAVIGATE and not (step.url or step.value):
        return "needs a 'url'"
    if action in (ActionKind.CLICK, ActionKind.TYPE) and step.target is None:
        return "needs a 'target'"
    if action == ActionKind.TYPE and step.value is None:
        return "needs a 'value' to type"
    if action == ActionKind.PRESS and not step.value:
        return "needs a key combination in 'value'"
    if step.opens_page and action != ActionKind.CLICK:
        return "can only use 'opens_page' with a click"

    if action == ActionKind.WAIT_FOR:
        if step.condition is None:
            return "needs a 'condition'"
        if step.condition.kind in _ELEMENT_CONDITIONS:
            if step.condition.target is None and step.target is None:
                return "needs a target for its element condition"
        elif step.condition.value is None:
            return "needs a value for its condition"

    if action == ActionKind.ASSERT:
        if step.assertion is None:
            return "needs an 'assertion'"
        if step.assertion.kind in _ELEMENT_ASSERTIONS and step.target is None:
            return "needs a target for its assertion"
        if step.assertion.kind not in (AssertionKind.VISIBLE, AssertionKind.ABSENT):
            if step.assertion.value is None:
                return "needs a value for its assertion"

    return None
