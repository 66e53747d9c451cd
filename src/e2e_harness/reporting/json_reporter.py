"""JSON report generator for harness runs.

report.json is the canonical, machine-readable result that CI gates on.
"""

import json
import logging

from ..models.harness_models import RunReport

logger = logging.getLogger(__name__)


class JsonReporter:
    """
    Generate the JSON form of a RunReport.

    PATTERN: Structured JSON output for programmatic access
    CRITICAL: Identical input gives identical output apart from timestamps
    """

    def __init__(self, pretty: bool = True):
        """
        Initialize JSON reporter.

        Args:
            pretty: Whether to pretty-print JSON output
        """
        self.pretty = pretty

    def generate_report(self, report: RunReport) -> str:
        """
        Serialize a run report.

        Args:
            report: Run report to serialize

        Returns:
            JSON string
        """
        payload = report.to_dict()
        if self.pretty:
            json_str = json.dumps(payload, indent=2, ensure_ascii=False, default=str)
        else:
            json_str = json.dumps(payload, ensure_ascii=False, default=str)

        logger.debug(f"JSON report generated ({len(json_str)} bytes)")
        return json_str + "\n"
