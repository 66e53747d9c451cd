"""Scenario files: steps and endpoint probes authored as YAML or JSON."""

from .loader import Scenario, list_scenarios, load_scenario, parse_scenario

__all__ = ["Scenario", "list_scenarios", "load_scenario", "parse_scenario"]
