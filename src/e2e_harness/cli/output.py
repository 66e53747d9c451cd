"""Rich console output for harness runs."""

import logging
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..browser.auth_state import AuthStateStatus
from ..models.harness_models import RunReport, StepResult, StepStatus
from ..reporting.retention import PruneResult

logger = logging.getLogger(__name__)

_MARKERS = {
    StepStatus.PASSED: "[green]✓[/green]",
    StepStatus.FAILED: "[red]✗[/red]",
    StepStatus.SKIPPED: "[dim]–[/dim]",
}


class RunConsole:
    """
    Progress and summary rendering for the CLI.

    Handles per-step markers, the run summary table and auth/cleanup output.
    """

    def __init__(self, console: Optional[Console] = None):
        """
        Initialize the run console.

        Args:
            console: Rich console (creates new if not provided)
        """
        self.console = console or Console()

    def step_finished(self, index: int, total: int, result: StepResult) -> None:
        """Print one line per finished step; usable as the runner's on_result."""
        marker = _MARKERS.get(result.status, "?")
        line = f"{marker} [{index + 1}/{total}] {escape(result.name)}"
        if result.error:
            line += f" [dim]({result.error_type}: {escape(result.error)})[/dim]"
        self.console.print(line, markup=True, highlight=False)
        for warning in result.warnings:
            self.console.print(f"    [yellow]{escape(warning)}[/yellow]", highlight=False)

    def run_started(self, scenario: str, base_url: str) -> None:
        self.console.print(f"[bold]Running[/bold] {escape(scenario)} against {escape(base_url)}")

    def summary(self, report: RunReport) -> None:
        """Render the summary table and where the artifacts went."""
        table = Table(title=f"Run {report.run_id}", show_header=True)
        table.add_column("Status")
        table.add_column("Passed", justify="right")
        table.add_column("Failed", justify="right")
        table.add_column("Skipped", justify="right")
        table.add_column("Screenshots", justify="right")
        table.add_column("Endpoint failures", justify="right")

        status_style = "green" if report.succeeded else "red"
        table.add_row(
            f"[{status_style}]{report.status.value}[/{status_style}]",
            str(report.summary.passed),
            str(report.summary.failed),
            str(report.summary.skipped),
            str(len(report.screenshots)),
            str(report.endpoint_failures),
        )
        self.console.print(table)

        if report.error:
            self.console.print(f"[red]Error: {escape(report.error)}[/red]")
        for warning in report.warnings:
            self.console.print(f"[yellow]Warning: {escape(warning)}[/yellow]", highlight=False)
        self.console.print(f"[dim]Artifacts: {report.output_dir}[/dim]")

    def auth_status(self, path: str, status: AuthStateStatus) -> None:
        if status.valid:
            self.console.print(
                f"[green]✓ Auth state valid[/green] ({path}, {status.origin}, "
                f"{status.minutes_left} minutes left)"
            )
        else:
            reason = escape(status.reason or "unknown")
            self.console.print(f"[red]✗ Auth state unusable[/red] ({path}): {reason}")

    def prune_result(self, result: PruneResult) -> None:
        verb = "Would delete" if result.dry_run else "Deleted"
        for path in result.deleted:
            self.console.print(f"[dim]{verb} {path}[/dim]")
        freed_mb = result.bytes_freed / (1024 * 1024)
        self.console.print(
            f"{verb} {len(result.deleted)} run(s), kept {result.kept}, "
            f"freed {freed_mb:.1f} MB"
        )

    def error(self, message: str) -> None:
        self.console.print(f"[red]Error: {escape(message)}[/red]")
