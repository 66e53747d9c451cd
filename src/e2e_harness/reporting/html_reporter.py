"""HTML report generator for harness runs.

The HTML report is for human review: a summary dashboard, the step list,
and screenshots inlined as base64 so the file can be shared on its own.
"""

import base64
import html
import logging
from pathlib import Path
from typing import Optional

from ..models.harness_models import RunReport, ScreenshotRecord, StepStatus

logger = logging.getLogger(__name__)

_STATUS_ICONS = {
    StepStatus.PASSED: "&#10003;",
    StepStatus.FAILED: "&#10007;",
    StepStatus.SKIPPED: "&#8211;",
}


def _e(value: object) -> str:
    return html.escape("" if value is None else str(value), quote=True)


class HtmlReporter:
    """
    Generate an HTML dashboard for a RunReport.

    PATTERN: Template-based HTML generation
    CRITICAL: Every piece of recorded text is HTML-escaped
    GOTCHA: Missing screenshot files render as a caption without an image
    """

    def __init__(self, inline_images: bool = True):
        """
        Initialize HTML reporter.

        Args:
            inline_images: Embed screenshots as base64 data URIs
        """
        self.inline_images = inline_images

    def generate_report(self, report: RunReport) -> str:
        """
        Generate HTML report from a run.

        Args:
            report: Run report to render

        Returns:
            HTML string
        """
        document = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Run Report - {_e(report.run_id)}</title>
    {self._generate_styles()}
</head>
<body>
    <div class="container">
        {self._generate_header(report)}
        {self._generate_summary_dashboard(report)}
        {self._generate_steps_section(report)}
        {self._generate_screenshots_section(report)}
        {self._generate_endpoints_section(report)}
        {self._generate_warnings_section(report)}
        {self._generate_diagnostics_section(report)}
        {self._generate_footer(report)}
    </div>
</body>
</html>
"""
        logger.debug(f"HTML report generated ({len(document)} bytes)")
        return document

    def _generate_styles(self) -> str:
        return """<style>
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, sans-serif;
            line-height: 1.6;
            color: #333;
            background-color: #f5f5f5;
        }
        .container { max-width: 1200px; margin: 0 auto; padding: 20px; }
        .header {
            background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
            color: white;
            padding: 30px;
            border-radius: 10px;
            margin-bottom: 30px;
        }
        .header h1 { font-size: 2em; margin-bottom: 10px; }
        .header .meta { opacity: 0.9; font-size: 0.9em; }
        .dashboard {
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(200px, 1fr));
            gap: 20px;
            margin-bottom: 30px;
        }
        .metric-card {
            background: white;
            padding: 25px;
            border-radius: 10px;
            box-shadow: 0 2px 4px rgba(0, 0, 0, 0.1);
        }
        .metric-card h3 { color: #666; font-size: 0.9em; text-transform: uppercase; }
        .metric-value { font-size: 2.5em; font-weight: bold; }
        .metric-value.passed { color: #10b981; }
        .metric-value.failed { color: #ef4444; }
        .metric-value.skipped { color: #9ca3af; }
        .section {
            background: white;
            padding: 25px;
            border-radius: 10px;
            margin-bottom: 20px;
            box-shadow: 0 2px 4px rgba(0, 0, 0, 0.1);
        }
        .section h2 {
            margin-bottom: 20px;
            padding-bottom: 10px;
            border-bottom: 2px solid #667eea;
        }
        table { width: 100%; border-collapse: collapse; }
        th, td { padding: 8px 10px; text-align: left; border-bottom: 1px solid #e5e7eb; }
        tr.passed td.status { color: #10b981; }
        tr.failed td.status { color: #ef4444; }
        tr.skipped td.status { color: #9ca3af; }
        .error { color: #b91c1c; font-family: monospace; font-size: 0.9em; }
        .badge {
            display: inline-block;
            padding: 4px 12px;
            border-radius: 12px;
            font-size: 0.8em;
            font-weight: bold;
            text-transform: uppercase;
            color: white;
        }
        .badge.completed { background: #10b981; }
        .badge.aborted { background: #ef4444; }
        .screenshots {
            display: grid;
            grid-template-columns: repeat(auto-fill, minmax(280px, 1fr));
            gap: 20px;
        }
        .screenshot { border: 1px solid #e5e7eb; border-radius: 8px; overflow: hidden; }
        .screenshot img { width: 100%; display: block; }
        .screenshot-info { padding: 10px; font-size: 0.9em; }
        .issue-list { list-style: none; }
        .issue-item {
            padding: 10px 15px;
            margin: 8px 0;
            border-left: 4px solid #f59e0b;
            background: #fffbeb;
            border-radius: 5px;
            font-size: 0.9em;
        }
        .footer { text-align: center; color: #666; padding: 20px; font-size: 0.9em; }
    </style>"""

    def _generate_header(self, report: RunReport) -> str:
        status = report.status.value
        scenario = report.scenario or report.run_id
        return f"""<div class="header">
            <h1>{_e(scenario)}</h1>
            <div class="meta">
                <span class="badge {_e(status)}">{_e(status)}</span>
                Run {_e(report.run_id)} &middot;
                started {_e(report.started_at.strftime("%Y-%m-%d %H:%M:%S"))} &middot;
                finished {_e(report.finished_at.strftime("%Y-%m-%d %H:%M:%S"))}
            </div>
            {f'<p class="error">{_e(report.error)}</p>' if report.error else ""}
        </div>"""

    def _generate_summary_dashboard(self, report: RunReport) -> str:
        summary = report.summary
        pass_rate = (summary.passed / summary.total * 100) if summary.total else 0.0
        return f"""<div class="dashboard">
            <div class="metric-card"><h3>Pass Rate</h3>
                <div class="metric-value">{pass_rate:.0f}%</div></div>
            <div class="metric-card"><h3>Passed</h3>
                <div class="metric-value passed">{summary.passed}</div></div>
            <div class="metric-card"><h3>Failed</h3>
                <div class="metric-value failed">{summary.failed}</div></div>
            <div class="metric-card"><h3>Skipped</h3>
                <div class="metric-value skipped">{summary.skipped}</div></div>
            <div class="metric-card"><h3>Screenshots</h3>
                <div class="metric-value">{len(report.screenshots)}</div></div>
        </div>"""

    def _generate_steps_section(self, report: RunReport) -> str:
        rows = []
        for index, step in enumerate(report.steps, start=1):
            status = step.status.value
            error = ""
            if step.error:
                error = f'<div class="error">{_e(step.error_type)}: {_e(step.error)}</div>'
            for warning in step.warnings:
                error += f'<div class="error">{_e(warning)}</div>'
            rows.append(
                f"""<tr class="{_e(status)}">
                <td>{index}</td>
                <td class="status">{_STATUS_ICONS.get(step.status, "")} {_e(status)}</td>
                <td>{_e(step.name)}{error}</td>
                <td>{_e(step.action.value)}</td>
                <td>{_e(step.page)}</td>
                <td>{_e(step.screenshot or "")}</td>
            </tr>"""
            )
        return f"""<div class="section">
            <h2>Steps ({len(report.steps)})</h2>
            <table>
                <tr><th>#</th><th>Status</th><th>Step</th><th>Action</th><th>Page</th><th>Screenshot</th></tr>
                {"".join(rows)}
            </table>
        </div>"""

    def _generate_screenshots_section(self, report: RunReport) -> str:
        if not report.screenshots:
            return ""
        cards = "".join(
            self._generate_screenshot_card(report.output_dir, shot) for shot in report.screenshots
        )
        return f"""<div class="section">
            <h2>Screenshots ({len(report.screenshots)})</h2>
            <div class="screenshots">{cards}</div>
        </div>"""

    def _generate_screenshot_card(self, output_dir: Path, shot: ScreenshotRecord) -> str:
        image = ""
        source = self._image_source(output_dir / shot.filename)
        if source:
            image = f'<img src="{source}" alt="{_e(shot.description)}" loading="lazy">'
        return f"""<div class="screenshot">
                {image}
                <div class="screenshot-info">
                    <strong>#{shot.sequence:02d}</strong> {_e(shot.description)}<br>
                    <a href="{_e(shot.filename)}">{_e(shot.filename)}</a> &middot; {_e(shot.page)}
                </div>
            </div>"""

    def _image_source(self, path: Path) -> Optional[str]:
        if not self.inline_images:
            return _e(path.name)
        try:
            encoded = base64.b64encode(path.read_bytes()).decode("ascii")
        except OSError as e:
            logger.debug(f"Cannot inline {path}: {e}")
            return None
        return f"data:image/png;base64,{encoded}"

    def _generate_endpoints_section(self, report: RunReport) -> str:
        if not report.endpoints:
            return ""
        rows = "".join(
            f"""<tr class="{"passed" if r.passed else "failed"}">
                <td class="status">{"&#10003;" if r.passed else "&#10007;"}</td>
                <td>{_e(r.name)}</td><td>{_e(r.method)} {_e(r.url)}</td>
                <td>{_e(r.status)}</td><td class="error">{_e(r.error or "")}</td>
            </tr>"""
            for r in report.endpoints
        )
        return f"""<div class="section">
            <h2>Endpoints ({len(report.endpoints)})</h2>
            <table>
                <tr><th></th><th>Check</th><th>Request</th><th>Status</th><th>Error</th></tr>
                {rows}
            </table>
        </div>"""

    def _generate_warnings_section(self, report: RunReport) -> str:
        if not report.warnings:
            return ""
        items = "".join(f'<li class="issue-item">{_e(w)}</li>' for w in report.warnings)
        return f"""<div class="section">
            <h2>Warnings ({len(report.warnings)})</h2>
            <ul class="issue-list">{items}</ul>
        </div>"""

    def _generate_diagnostics_section(self, report: RunReport) -> str:
        if not report.diagnostics:
            return ""
        items = "".join(
            f'<li class="issue-item">[{_e(d.page)}] {_e(d.kind)}: {_e(d.message)}</li>'
            for d in report.diagnostics
        )
        return f"""<div class="section">
            <h2>Browser Diagnostics ({len(report.diagnostics)})</h2>
            <ul class="issue-list">{items}</ul>
        </div>"""

    def _generate_footer(self, report: RunReport) -> str:
        return f"""<div class="footer">
            <p>Generated by e2e-harness</p>
            <p>{_e(report.output_dir)}</p>
        </div>"""
