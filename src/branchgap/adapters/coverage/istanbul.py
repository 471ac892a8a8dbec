"""Istanbul coverage adapter for JavaScript/TypeScript projects.

Istanbul is the coverage engine behind Jest and nyc. This adapter installs
a project's npm dependencies, runs ``npm test`` with the JSON coverage
reporter, and condenses ``coverage-final.json`` into a ``CoverageReport``
that lists the files with weak branch coverage.
"""

from __future__ import annotations

import json
import logging
import time
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any

from branchgap.adapters.coverage.base import (
    BRANCH_COVERAGE_THRESHOLD,
    ArtifactMissingError,
    CoverageAdapter,
    CoverageReport,
    DetailedBranch,
    InvalidProjectError,
    MalformedArtifactError,
    UncoveredBranch,
    UncoveredFile,
    calculate_branch_coverage,
    coverage_sort_key,
)
from branchgap.utils.subprocess_runner import SubprocessError, run_subprocess

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

# Coverage file locations (Istanbul standard paths)
_COVERAGE_PATHS = [
    "coverage/coverage-final.json",
    ".nyc_output/coverage-final.json",
]

_INSTALL_CMD = ["npm", "install"]
_INSTALL_FALLBACK_CMD = ["npm", "install", "--legacy-peer-deps"]
_TEST_CMD = ["npm", "test", "--", "--coverage", "--coverageReporters=json"]
_NYC_REPORT_CMD = ["npx", "nyc", "report", "--reporter=json"]


# ── Adapter ──────────────────────────────────────────────────────


class IstanbulAdapter(CoverageAdapter):
    """Istanbul coverage adapter for npm projects.

    Runs the project's own ``npm test`` script with coverage enabled, so it
    works for Jest directly and for nyc-wrapped runners via ``nyc report``.
    """

    def __init__(
        self,
        *,
        install_timeout: float | None = None,
        test_timeout: float | None = None,
    ) -> None:
        self._install_timeout = install_timeout
        self._test_timeout = test_timeout

    # ── Identity ─────────────────────────────────────────────────

    @property
    def name(self) -> str:
        return "istanbul"

    # ── Detection ────────────────────────────────────────────────

    def detect(self, project_path: Path) -> bool:
        """Return True if *project_path* has a ``package.json``."""
        return (project_path / "package.json").is_file()

    # ── Coverage execution ───────────────────────────────────────

    async def run_coverage(self, project_path: Path) -> CoverageReport:
        """Install dependencies, run the tests, and parse the coverage artifact.

        Non-zero exits from npm are logged and tolerated: a failing test
        suite still writes coverage, so only a missing artifact is fatal.
        """
        logger.info("Running coverage in %s", project_path)

        if not self.detect(project_path):
            raise InvalidProjectError(
                f"{project_path} has no package.json; it is not a valid Node.js project"
            )

        installation_ms = await self._install_dependencies(project_path)
        test_ms = await self._run_tests(project_path)

        if (project_path / ".nyc_output").exists():
            logger.info("Detected nyc output, generating JSON report")
            await self._run_tolerant(_NYC_REPORT_CMD, project_path, self._test_timeout)

        artifact = self._find_coverage_file(project_path)
        report = self.parse_coverage_file(artifact, project_name=project_path.name)
        report.installation_time_ms = installation_ms
        report.test_time_ms = test_ms
        return report

    async def _install_dependencies(self, project_path: Path) -> float:
        logger.info("Installing dependencies")
        t0 = time.monotonic()
        ok = await self._run_tolerant(_INSTALL_CMD, project_path, self._install_timeout)
        if not ok:
            logger.warning("npm install failed, retrying with --legacy-peer-deps")
            await self._run_tolerant(_INSTALL_FALLBACK_CMD, project_path, self._install_timeout)
        elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info("Installation finished in %.2fs", elapsed_ms / 1000)
        return elapsed_ms

    async def _run_tests(self, project_path: Path) -> float:
        logger.info("Running tests with coverage")
        t0 = time.monotonic()
        ok = await self._run_tolerant(_TEST_CMD, project_path, self._test_timeout)
        if not ok:
            logger.warning("Tests failed, continuing with coverage analysis")
        elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info("Tests finished in %.2fs", elapsed_ms / 1000)
        return elapsed_ms

    async def _run_tolerant(
        self, command: list[str], project_path: Path, timeout: float | None
    ) -> bool:
        """Run *command*, returning False instead of raising when it fails."""
        try:
            result = await run_subprocess(command, cwd=project_path, timeout=timeout)
        except SubprocessError as exc:
            logger.warning("%s", exc)
            return False
        if not result.success:
            logger.warning(
                "'%s' exited with code %d: %s",
                " ".join(command),
                result.returncode,
                result.output_tail,
            )
        return result.success

    def _find_coverage_file(self, project_path: Path) -> Path:
        for coverage_path in _COVERAGE_PATHS:
            full_path = project_path / coverage_path
            if full_path.is_file():
                return full_path

        raise ArtifactMissingError(
            f"Tests ran but no coverage report was produced in {project_path}. "
            "Check that the project has Jest (or nyc) configured."
        )

    # ── Coverage parsing ─────────────────────────────────────────

    def parse_coverage_file(self, coverage_file: Path, *, project_name: str) -> CoverageReport:
        """Load an Istanbul ``coverage-final.json`` and parse it."""
        try:
            raw = json.loads(coverage_file.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedArtifactError(f"Cannot decode {coverage_file}: {exc}") from exc
        except OSError as exc:
            raise ArtifactMissingError(f"Cannot read {coverage_file}: {exc}") from exc
        return self.parse_coverage_data(raw, project_name)

    def parse_coverage_data(self, raw: Any, project_name: str) -> CoverageReport:
        return parse_coverage_data(raw, project_name)


# ── Parsing ──────────────────────────────────────────────────────


def parse_coverage_data(raw: Any, project_name: str) -> CoverageReport:
    """Condense an Istanbul coverage mapping into a ``CoverageReport``.

    Istanbul format (only the keys used here)::

        {
          "/path/to/file.js": {
            "s": {"0": 1, "1": 0},            // statement hit counts
            "b": {"0": [1, 0]},               // hit counts per branch alternative
            "branchMap": {"0": {"line": 4, "type": "if", ...}}
          }
        }

    Every file contributes to the project totals. Files whose branch
    coverage is below ``BRANCH_COVERAGE_THRESHOLD`` are listed in
    ``uncovered_files``, worst first.

    Raises:
        MalformedArtifactError: *raw* is not a mapping of that shape.
    """
    if not isinstance(raw, dict):
        raise MalformedArtifactError(
            f"Coverage artifact must be an object keyed by file path, got {type(raw).__name__}"
        )

    total_lines = 0
    covered_lines = 0
    total_branches = 0
    covered_branches = 0
    low_coverage: list[UncoveredFile] = []

    for file_path, file_data in raw.items():
        if not isinstance(file_data, dict):
            raise MalformedArtifactError(f"Coverage entry for {file_path} is not an object")

        statements = _statement_counts(file_path, file_data)
        branches = _branch_counts(file_path, file_data)

        total_lines += len(statements)
        covered_lines += sum(1 for count in statements.values() if count > 0)

        branch_cov = calculate_branch_coverage(branches)
        total_branches += branch_cov.total
        covered_branches += branch_cov.covered

        if branch_cov.percentage < BRANCH_COVERAGE_THRESHOLD:
            branch_map = file_data.get("branchMap") or {}
            if not isinstance(branch_map, dict):
                raise MalformedArtifactError(f"branchMap for {file_path} is not an object")

            low_coverage.append(
                UncoveredFile(
                    file_path=file_path,
                    uncovered_lines=_uncovered_lines(file_path, statements),
                    uncovered_branches=_uncovered_branch_markers(branches, branch_map),
                    branch_coverage=branch_cov.percentage,
                    total_branches=branch_cov.total,
                    covered_branches=branch_cov.covered,
                    detailed_branches=_detailed_branches(branches, branch_map),
                )
            )

    low_coverage.sort(key=coverage_sort_key)

    return CoverageReport(
        repository_name=project_name,
        total_lines=total_lines,
        covered_lines=covered_lines,
        coverage_percentage=_percentage(covered_lines, total_lines, empty=0.0),
        branch_coverage_percentage=_percentage(covered_branches, total_branches, empty=100.0),
        total_files=len(raw),
        uncovered_files=low_coverage,
    )


def _percentage(part: int, whole: int, *, empty: float) -> float:
    """*part* of *whole* as a percentage, rounded to two decimals with halves going up."""
    if whole <= 0:
        return empty
    exact = Decimal(part) * 100 / Decimal(whole)
    return float(exact.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _statement_counts(file_path: str, data: dict[str, Any]) -> dict[str, int]:
    statements = data.get("s") or {}
    if not isinstance(statements, dict):
        raise MalformedArtifactError(f"Statement counts for {file_path} are not an object")
    for stmt_id, count in statements.items():
        if not _is_count(count):
            raise MalformedArtifactError(
                f"Statement {stmt_id} in {file_path} has a non-numeric count: {count!r}"
            )
    return statements


def _branch_counts(file_path: str, data: dict[str, Any]) -> dict[str, list[int]]:
    branches = data.get("b") or {}
    if not isinstance(branches, dict):
        raise MalformedArtifactError(f"Branch counts for {file_path} are not an object")
    for branch_id, counts in branches.items():
        if not isinstance(counts, list) or not all(_is_count(c) for c in counts):
            raise MalformedArtifactError(
                f"Branch group {branch_id} in {file_path} is not a list of counts"
            )
    return branches


def _is_count(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _uncovered_lines(file_path: str, statements: dict[str, int]) -> list[int]:
    lines = []
    for stmt_id, count in statements.items():
        if count != 0:
            continue
        try:
            lines.append(int(stmt_id))
        except ValueError as exc:
            raise MalformedArtifactError(
                f"Statement id {stmt_id!r} in {file_path} is not an integer"
            ) from exc
    return lines


def _branch_line(info: Any, default: int = 0) -> int:
    """Source line of a ``branchMap`` entry, from ``line`` or ``loc.start.line``."""
    if isinstance(info, dict):
        line = info.get("line")
        if isinstance(line, int):
            return line
        loc = info.get("loc")
        start = loc.get("start") if isinstance(loc, dict) else None
        if isinstance(start, dict) and isinstance(start.get("line"), int):
            return start["line"]
    return default


def _uncovered_branch_markers(
    branches: dict[str, list[int]], branch_map: dict[str, Any]
) -> list[UncoveredBranch]:
    # Groups without metadata fall back to their numeric id.
    return [
        UncoveredBranch(
            line=_branch_line(
                branch_map.get(group_id), int(group_id) if str(group_id).isdigit() else 0
            )
        )
        for group_id, counts in branches.items()
        if any(count == 0 for count in counts)
    ]


def _detailed_branches(
    branches: dict[str, list[int]], branch_map: dict[str, Any]
) -> list[DetailedBranch]:
    """Describe each branch group that has at least one alternative never taken.

    Groups without ``branchMap`` metadata are skipped; instrumenters omit
    metadata for synthetic branches.
    """
    detailed = []
    for group_id, counts in branches.items():
        missing = [idx for idx, count in enumerate(counts) if count == 0]
        if not missing:
            continue
        info = branch_map.get(group_id)
        if not isinstance(info, dict):
            continue
        detailed.append(
            DetailedBranch(
                line=_branch_line(info),
                type=str(info.get("type") or "unknown"),
                uncovered_branches=missing,
                total_branches=len(counts),
            )
        )
    return detailed
