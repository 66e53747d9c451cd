"""Run reports (JSON and HTML) and run-directory retention."""

from .html_reporter import HtmlReporter
from .json_reporter import JsonReporter
from .report_writer import RunReportWriter
from .retention import PruneResult, prune_runs

__all__ = [
    "HtmlReporter",
    "JsonReporter",
    "RunReportWriter",
    "PruneResult",
    "prune_runs",
]
