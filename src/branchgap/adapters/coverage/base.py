"""Base classes and data models for coverage adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

BRANCH_COVERAGE_THRESHOLD = 90.0
"""Files whose branch coverage is strictly below this percentage are reported."""


# ── Errors ───────────────────────────────────────────────────────


class CoverageError(Exception):
    """Base exception for coverage collection and parsing failures."""


class InvalidProjectError(CoverageError):
    """Raised when the target directory is not a project the adapter understands."""


class ArtifactMissingError(CoverageError):
    """Raised when the test run finished but no coverage artifact was written."""


class MalformedArtifactError(CoverageError):
    """Raised when a coverage artifact does not have the expected shape."""


# ── Data models ──────────────────────────────────────────────────


@dataclass(frozen=True)
class BranchCoverage:
    """Aggregate branch counts for a set of branch groups."""

    total: int
    covered: int
    percentage: float


@dataclass
class UncoveredBranch:
    """Marker for a branch group with at least one alternative never taken."""

    line: int
    covered: bool = False


@dataclass
class DetailedBranch:
    """An uncovered branch group enriched with its source location."""

    line: int
    """Source line of the conditional construct."""

    type: str
    """Construct type as reported by the instrumenter (``if``, ``switch``, ``cond-expr``...)."""

    uncovered_branches: list[int]
    """Indices of the alternatives that were never taken."""

    total_branches: int
    """Number of alternatives in the group."""


@dataclass
class UncoveredFile:
    """A source file whose branch coverage is below the threshold."""

    file_path: str
    uncovered_lines: list[int] = field(default_factory=list)
    uncovered_branches: list[UncoveredBranch] = field(default_factory=list)
    branch_coverage: float | None = None
    total_branches: int = 0
    covered_branches: int = 0
    detailed_branches: list[DetailedBranch] = field(default_factory=list)
    source_code: str | None = None
    """Full source text, attached by the snippet extractor."""

    test_code: str | None = None
    """Text of the best-matching test file, attached by the snippet extractor."""


@dataclass
class CoverageReport:
    """Project-wide coverage summary plus the files that need attention."""

    repository_name: str
    total_lines: int = 0
    covered_lines: int = 0
    coverage_percentage: float = 0.0
    branch_coverage_percentage: float = 100.0
    total_files: int = 0
    uncovered_files: list[UncoveredFile] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    installation_time_ms: float | None = None
    """Time spent installing dependencies, when the adapter ran the install."""

    test_time_ms: float | None = None
    """Time spent running the test suite, when the adapter ran it."""

    @property
    def uncovered_line_count(self) -> int:
        return self.total_lines - self.covered_lines


# ── Branch arithmetic ────────────────────────────────────────────


def calculate_branch_coverage(branches: Mapping[str, Sequence[int]]) -> BranchCoverage:
    """Sum branch alternatives across all groups.

    A mapping with no alternatives at all is reported as 100% covered:
    there is nothing left to miss.
    """
    total = 0
    covered = 0
    for counts in branches.values():
        total += len(counts)
        covered += sum(1 for count in counts if count > 0)

    if total == 0:
        return BranchCoverage(total=0, covered=0, percentage=100.0)
    return BranchCoverage(total=total, covered=covered, percentage=covered / total * 100)


def coverage_sort_key(file: UncoveredFile) -> float:
    """Sort key placing the worst-covered files first."""
    return 100.0 if file.branch_coverage is None else file.branch_coverage


# ── Adapter interface ────────────────────────────────────────────


class CoverageAdapter(ABC):
    """Abstract base class for coverage tool adapters.

    A concrete adapter knows how to install a project's dependencies, run its
    test suite with coverage instrumentation, and turn the resulting artifact
    into a ``CoverageReport``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Coverage tool identifier (e.g. 'istanbul')."""

    @abstractmethod
    def detect(self, project_path: Path) -> bool:
        """Return True if this adapter can collect coverage in *project_path*."""

    @abstractmethod
    async def run_coverage(self, project_path: Path) -> CoverageReport:
        """Install, test, and parse the coverage artifact for *project_path*.

        Raises:
            InvalidProjectError: The directory is not a supported project.
            ArtifactMissingError: No coverage artifact exists after the test run.
            MalformedArtifactError: The artifact could not be interpreted.
        """

    @abstractmethod
    def parse_coverage_data(self, raw: Any, project_name: str) -> CoverageReport:
        """Build a ``CoverageReport`` from an already-loaded raw artifact."""
