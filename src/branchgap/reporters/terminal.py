"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from pathlib import Path, PurePath
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from branchgap.adapters.coverage.base import BRANCH_COVERAGE_THRESHOLD
from branchgap.llm.prompts.gap_analysis import MAX_FILES_PER_REQUEST

if TYPE_CHECKING:
    from branchgap.adapters.coverage.base import CoverageReport, UncoveredFile
    from branchgap.models.analysis import GapAnalysis

console = Console()


_SECONDS_PER_MINUTE = 60.0

# Display limits for truncation
_MAX_FILES_DISPLAY = 10
_MAX_SAMPLE_LINES_DISPLAY = 5
_MAX_TOP_GAPS_DISPLAY = 3

_PRIORITY_COLORS = {
    "CRITICAL": "bold red",
    "HIGH": "red",
    "MEDIUM": "yellow",
    "LOW": "dim",
}


def _format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string."""
    if seconds >= _SECONDS_PER_MINUTE:
        return f"{seconds / _SECONDS_PER_MINUTE:.1f}m"
    return f"{seconds:.1f}s"


def _coverage_color(percentage: float) -> str:
    """Get a color based on coverage percentage."""
    if percentage >= BRANCH_COVERAGE_THRESHOLD:
        return "green"
    if percentage >= 50.0:  # noqa: PLR2004
        return "yellow"
    return "red"


class CLIReporter:
    """Rich terminal output for coverage reports and gap analyses."""

    def __init__(self, output: Console | None = None) -> None:
        self.console = output or console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    # ── Pipeline progress display ──────────────────────────────────────

    def print_pipeline_header(self, name: str) -> None:
        """Print a styled banner for a pipeline run."""
        self.console.print()
        self.console.print(
            Panel(
                f"[bold white]{name}[/bold white]",
                border_style="cyan",
                padding=(0, 2),
            )
        )

    def print_step_done(self, description: str, duration_s: float) -> None:
        """Print step completion with elapsed time."""
        time_str = _format_duration(duration_s)
        self.console.print(f"  [green]✓[/green] {description} [dim]({time_str})[/dim]")

    # ── Coverage display ───────────────────────────────────────────────

    def print_coverage_report(self, report: CoverageReport) -> None:
        """Print project totals and the worst-covered files."""
        table = Table(title=f"Coverage Report: {report.repository_name}", title_style="bold cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")

        line_color = _coverage_color(report.coverage_percentage)
        branch_color = _coverage_color(report.branch_coverage_percentage)
        table.add_row(
            "Line coverage", f"[{line_color}]{report.coverage_percentage:.2f}%[/{line_color}]"
        )
        table.add_row(
            "Branch coverage",
            f"[{branch_color}]{report.branch_coverage_percentage:.2f}%[/{branch_color}]",
        )
        table.add_row("Total lines", str(report.total_lines))
        table.add_row("Covered lines", str(report.covered_lines))
        table.add_row("Uncovered lines", str(report.uncovered_line_count))
        table.add_row("Total files", str(report.total_files))
        table.add_row(
            f"Files below {BRANCH_COVERAGE_THRESHOLD:.0f}% branch coverage",
            str(len(report.uncovered_files)),
        )
        self.console.print(table)

        if not report.uncovered_files:
            self.print_success(
                f"Every file has branch coverage >= {BRANCH_COVERAGE_THRESHOLD:.0f}%"
            )
            return

        files_table = Table(
            title=f"Files with low branch coverage (<{BRANCH_COVERAGE_THRESHOLD:.0f}%)",
            title_style="bold yellow",
        )
        files_table.add_column("#", justify="right", style="dim")
        files_table.add_column("File", style="cyan")
        files_table.add_column("Branches", justify="right")
        files_table.add_column("Uncovered lines")

        for idx, file in enumerate(report.uncovered_files[:_MAX_FILES_DISPLAY], start=1):
            files_table.add_row(
                str(idx),
                self._strip_workdir(file.file_path),
                self._format_branch_fraction(file),
                self._format_sample_lines(file),
            )
        self.console.print(files_table)

        if len(report.uncovered_files) > _MAX_FILES_DISPLAY:
            remaining = len(report.uncovered_files) - _MAX_FILES_DISPLAY
            self.console.print(f"  ... and {remaining} more")

    def print_selected_files(self, report: CoverageReport) -> None:
        """Print the files that will be sent for analysis."""
        selected = report.uncovered_files[:MAX_FILES_PER_REQUEST]
        self.console.print()
        self.console.print(
            f"[bold cyan]Sending {len(selected)} of {len(report.uncovered_files)} "
            "file(s) for LLM analysis[/bold cyan]"
        )
        for idx, file in enumerate(selected, start=1):
            test_status = (
                "[green]test file found[/green]" if file.test_code else "[red]no test file[/red]"
            )
            self.console.print(
                f"  {idx}. {self._strip_workdir(file.file_path)} "
                f"[dim]{self._format_branch_fraction(file)}[/dim]  {test_status}"
            )

    # ── Analysis display ───────────────────────────────────────────────

    def print_analysis(self, analysis: GapAnalysis) -> None:
        """Print the headline numbers, the top prioritised gaps and recommendations."""
        self.console.print()
        lines = [
            f"Gaps identified: [bold]{len(analysis.gaps)}[/bold]",
            f"Prioritised gaps: [bold]{len(analysis.prioritized_gaps)}[/bold]",
            f"Suggestions: [bold]{len(analysis.suggestions)}[/bold]",
        ]
        if analysis.execution_time is not None:
            lines.append(f"Execution time: {_format_duration(analysis.execution_time / 1000)}")
        if analysis.llm_model:
            lines.append(f"Model: {analysis.llm_model}")
        self.console.print(
            Panel(
                "\n".join(lines),
                title=f"[bold]Results: {analysis.repository_name}[/bold]",
                border_style="cyan",
            )
        )

        if analysis.summary:
            self.console.print(f"\n{escape(analysis.summary)}")

        if analysis.prioritized_gaps:
            self.console.print("\n[bold cyan]Top prioritised gaps:[/bold cyan]")
            for idx, item in enumerate(analysis.prioritized_gaps[:_MAX_TOP_GAPS_DISPLAY], 1):
                color = _PRIORITY_COLORS.get(item.priority.value, "white")
                location = PurePath(item.gap.file).name if item.gap.file else ""
                self.console.print(
                    f"  {idx}. [{color}]\\[{item.priority.value}][/{color}] {escape(location)}"
                )
                if item.reasoning:
                    self.console.print(f"     [dim]Reason:[/dim] {escape(item.reasoning)}")
                for test in item.suggested_tests:
                    self.console.print(f"     - {escape(test)}")

        self.print_recommendations(analysis.suggestions)

    def print_recommendations(self, recommendations: list[str]) -> None:
        """Print recommendations list."""
        if not recommendations:
            return

        self.console.print("\n[bold cyan]Recommendations:[/bold cyan]")
        for i, rec in enumerate(recommendations, 1):
            self.console.print(f"  {i}. {escape(rec)}")

    def print_batch_summary(self, succeeded: int, attempted: int) -> None:
        """Print the success/attempted ratio of a batch run."""
        if succeeded == attempted:
            self.print_success(f"{succeeded}/{attempted} repositories analysed successfully")
        else:
            self.print_warning(f"{succeeded}/{attempted} repositories analysed successfully")

    # ── Helpers ────────────────────────────────────────────────────────

    def _format_branch_fraction(self, file: UncoveredFile) -> str:
        pct = f"{file.branch_coverage:.1f}%" if file.branch_coverage is not None else "N/A"
        return f"{pct} ({file.covered_branches}/{file.total_branches})"

    def _format_sample_lines(self, file: UncoveredFile) -> str:
        if not file.uncovered_lines:
            return "-"
        sample = ", ".join(str(n) for n in file.uncovered_lines[:_MAX_SAMPLE_LINES_DISPLAY])
        if len(file.uncovered_lines) > _MAX_SAMPLE_LINES_DISPLAY:
            sample += "..."
        return sample

    def _strip_workdir(self, file_path: str) -> str:
        """Strip the current working directory from file path for cleaner display."""
        try:
            return str(Path(file_path).relative_to(Path.cwd()))
        except ValueError:
            return file_path


reporter = CLIReporter()
