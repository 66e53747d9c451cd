"""Persist run reports into the run directory."""

import logging
from pathlib import Path
from typing import Dict, Optional, Sequence

from ..exceptions import ReportWriteError
from ..models.harness_models import RunReport
from .html_reporter import HtmlReporter
from .json_reporter import JsonReporter

logger = logging.getLogger(__name__)

REPORT_FILENAMES = {
    "json": "report.json",
    "html": "report.html",
}


class RunReportWriter:
    """Write report.json and report.html for a finished run.

    A format that cannot be written is logged and added to the report's
    warnings; the other formats are still written and no step outcome
    changes.
    """

    def __init__(
        self,
        json_reporter: Optional[JsonReporter] = None,
        html_reporter: Optional[HtmlReporter] = None,
    ):
        self.reporters = {
            "json": json_reporter or JsonReporter(),
            "html": html_reporter or HtmlReporter(),
        }

    def write(
        self, report: RunReport, formats: Sequence[str] = ("json", "html")
    ) -> Dict[str, Path]:
        """Write the requested formats into ``report.output_dir``.

        Args:
            report: Finished run report
            formats: Any of "json" and "html"

        Returns:
            Paths of the files actually written, keyed by format
        """
        written: Dict[str, Path] = {}

        # JSON goes last so the canonical record lists earlier write failures
        for fmt in sorted(formats, key=lambda f: f == "json"):
            try:
                written[fmt] = self.write_format(report, fmt)
            except ReportWriteError as e:
                logger.error(str(e))
                report.warnings.append(str(e))
        return written

    def write_format(self, report: RunReport, fmt: str) -> Path:
        """Write a single format.

        Raises:
            ReportWriteError: If the format is unknown or the file cannot be written
        """
        if fmt not in self.reporters:
            raise ReportWriteError(fmt, f"unknown report format '{fmt}'")

        path = Path(report.output_dir) / REPORT_FILENAMES[fmt]
        content = self.reporters[fmt].generate_report(report)
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ReportWriteError(str(path), str(e)) from e

        logger.info(f"Wrote {path}")
        return path
