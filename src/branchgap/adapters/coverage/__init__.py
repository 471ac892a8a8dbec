"""Coverage adapters and the unified coverage report model."""

from branchgap.adapters.coverage.base import (
    BRANCH_COVERAGE_THRESHOLD,
    ArtifactMissingError,
    BranchCoverage,
    CoverageAdapter,
    CoverageError,
    CoverageReport,
    DetailedBranch,
    InvalidProjectError,
    MalformedArtifactError,
    UncoveredBranch,
    UncoveredFile,
    calculate_branch_coverage,
)
from branchgap.adapters.coverage.istanbul import IstanbulAdapter, parse_coverage_data

__all__ = [
    "BRANCH_COVERAGE_THRESHOLD",
    "ArtifactMissingError",
    "BranchCoverage",
    "CoverageAdapter",
    "CoverageError",
    "CoverageReport",
    "DetailedBranch",
    "InvalidProjectError",
    "IstanbulAdapter",
    "MalformedArtifactError",
    "UncoveredBranch",
    "UncoveredFile",
    "calculate_branch_coverage",
    "parse_coverage_data",
]
