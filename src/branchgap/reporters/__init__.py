"""Console and on-disk reporters."""

from branchgap.reporters.json_reporter import ReportStore
from branchgap.reporters.terminal import CLIReporter, reporter

__all__ = ["CLIReporter", "ReportStore", "reporter"]
