"""Analysis pipeline: fetch, measure, enrich, analyse, persist.

One ``AnalysisPipeline`` drives a project through the stages strictly in
order. Batch mode runs projects one after another with a fixed delay in
between, skipping any project whose run fails.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from branchgap.adapters.coverage.istanbul import IstanbulAdapter
from branchgap.analyzers.snippets import extract_code_snippets
from branchgap.llm.prompts.gap_analysis import GapAnalysisPrompt
from branchgap.llm.response import fully_covered_analysis, parse_analysis_response
from branchgap.models.analysis import ExecutionTimeDetails, GapAnalysis
from branchgap.reporters.json_reporter import ReportStore
from branchgap.utils.git import GitHubAPI, clone_repository
from branchgap.utils.log_capture import LogCapture

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from branchgap.adapters.coverage.base import CoverageAdapter, CoverageReport
    from branchgap.config import BranchgapConfig
    from branchgap.llm.engine import LLMEngine
    from branchgap.llm.response import LLMAnalysis
    from branchgap.reporters.terminal import CLIReporter
    from branchgap.utils.log_capture import NullLogCapture

    CloneFn = Callable[[str, str, Path], Awaitable[Path]]
    FetchFn = Callable[[], Awaitable[Path]]

logger = logging.getLogger(__name__)


class RunStage(Enum):
    """Stages of one project run. ``FAILED`` is reachable from any other stage."""

    FETCHING = "fetching"
    MEASURING = "measuring"
    ENRICHING = "enriching"
    ANALYZING = "analyzing"
    PERSISTED = "persisted"
    FAILED = "failed"


@dataclass
class RunState:
    """Progress of a single project run."""

    project_name: str
    stage: RunStage = RunStage.FETCHING
    timings: ExecutionTimeDetails = field(default_factory=ExecutionTimeDetails)
    report_paths: tuple[Path, Path] | None = None
    """``(json_path, log_path)`` once persisted."""

    def advance(self, stage: RunStage) -> None:
        logger.debug("%s: %s -> %s", self.project_name, self.stage.value, stage.value)
        self.stage = stage


@dataclass
class BatchResult:
    """Outcome of a batch run."""

    analyses: list[GapAnalysis] = field(default_factory=list)
    """Successful analyses, in discovery order."""

    attempted: int = 0
    """Number of repositories the batch tried to analyse."""

    @property
    def succeeded(self) -> int:
        return len(self.analyses)


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000


class AnalysisPipeline:
    """Runs the coverage-gap analysis for remote repositories and local projects.

    Every collaborator is injectable so the pipeline can be exercised without
    the network, npm or a real LLM.
    """

    def __init__(  # noqa: PLR0913
        self,
        config: BranchgapConfig,
        *,
        engine: LLMEngine,
        coverage_adapter: CoverageAdapter | None = None,
        store: ReportStore | None = None,
        github: GitHubAPI | None = None,
        clone: CloneFn = clone_repository,
        capture_factory: Callable[[], LogCapture | NullLogCapture] = LogCapture,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        reporter: CLIReporter | None = None,
    ) -> None:
        self._config = config
        self._engine = engine
        self._adapter = coverage_adapter or IstanbulAdapter(
            install_timeout=config.pipeline.install_timeout,
            test_timeout=config.pipeline.test_timeout,
        )
        self._store = store or ReportStore(config.paths.reports)
        self._github = github
        self._clone = clone
        self._capture_factory = capture_factory
        self._sleep = sleep
        self._reporter = reporter
        self._prompt = GapAnalysisPrompt()
        self.last_run: RunState | None = None

    # ── Entry points ───────────────────────────────────────────────────

    async def analyze_repository(self, owner: str, name: str) -> GapAnalysis:
        """Clone ``owner/name`` and analyse it.

        Raises:
            FetchError, CoverageError, LLMError, ResponseParseError: The run
                failed; nothing is persisted.
        """
        dest_dir = self._config.paths.repositories

        async def fetch() -> Path:
            logger.info("Cloning %s/%s", owner, name)
            return await self._clone(owner, name, dest_dir)

        return await self._run(name, fetch)

    async def analyze_local(self, project_path: Path) -> GapAnalysis:
        """Analyse a project already present on disk."""
        resolved = project_path.resolve()

        async def fetch() -> Path:
            return resolved

        return await self._run(resolved.name, fetch, local=True)

    async def analyze_many(
        self, language: str, min_stars: int = 100, max_repos: int = 3
    ) -> BatchResult:
        """Search for repositories and analyse each of them in turn.

        A failing repository is logged and skipped. Search failures propagate.
        """
        github = self._github or GitHubAPI(self._config.github.token or None)
        repositories = await asyncio.to_thread(
            github.search_repositories, language, min_stars, max_repos
        )

        result = BatchResult(attempted=len(repositories))
        delay = self._config.pipeline.inter_repo_delay
        for idx, repo in enumerate(repositories):
            if idx > 0 and delay > 0:
                await self._sleep(delay)
            try:
                result.analyses.append(await self.analyze_repository(repo.owner, repo.name))
            except Exception as exc:
                logger.error("Skipping %s: %s", repo.full_name, exc)

        logger.info(
            "Batch complete: %d/%d repositories analysed", result.succeeded, result.attempted
        )
        return result

    # ── Stages ─────────────────────────────────────────────────────────

    async def _run(self, project_name: str, fetch: FetchFn, *, local: bool = False) -> GapAnalysis:
        state = RunState(project_name=project_name)
        self.last_run = state
        if self._reporter:
            self._reporter.print_pipeline_header(f"branchgap: {project_name}")

        with self._capture_factory() as capture:
            logger.info("Starting analysis: %s", project_name)
            try:
                t0 = time.monotonic()
                project_path = await fetch()
                if not local:
                    state.timings.clone_time = _elapsed_ms(t0)
                    self._step_done(capture, "Repository cloned", state.timings.clone_time)

                state.advance(RunStage.MEASURING)
                report = await self._measure(project_path, state, capture)

                state.advance(RunStage.ENRICHING)
                t0 = time.monotonic()
                report = replace(
                    report,
                    uncovered_files=extract_code_snippets(project_path, report.uncovered_files),
                )
                state.timings.code_extraction_time = _elapsed_ms(t0)
                self._step_done(
                    capture, "Code snippets extracted", state.timings.code_extraction_time
                )

                state.advance(RunStage.ANALYZING)
                t0 = time.monotonic()
                llm_analysis = await self._analyze(report)
                state.timings.llm_analysis_time = _elapsed_ms(t0)
                self._step_done(capture, "LLM analysis finished", state.timings.llm_analysis_time)

                analysis = self._build_analysis(project_name, report, llm_analysis, state)
                logger.info("Analysis complete: %s", project_name)
                state.report_paths = self._store.save_analysis(analysis, capture.transcript)
                state.advance(RunStage.PERSISTED)
            except Exception:
                logger.exception("Analysis of %s failed during %s", project_name, state.stage.value)
                state.advance(RunStage.FAILED)
                raise

        return analysis

    async def _measure(
        self, project_path: Path, state: RunState, capture: LogCapture | NullLogCapture
    ) -> CoverageReport:
        logger.info("Running coverage analysis")
        report = await self._adapter.run_coverage(project_path)
        state.timings.installation_time = report.installation_time_ms or 0.0
        state.timings.test_time = report.test_time_ms or 0.0
        self._step_done(
            capture,
            "Coverage measured",
            (state.timings.installation_time + state.timings.test_time),
        )
        if self._reporter:
            self._reporter.print_coverage_report(report)
        return report

    async def _analyze(self, report: CoverageReport) -> LLMAnalysis:
        if not report.uncovered_files:
            logger.info("No coverage gaps found, skipping the LLM call")
            return fully_covered_analysis()

        if self._reporter:
            self._reporter.print_selected_files(report)
        rendered = self._prompt.render(report)
        logger.info("Analysing gaps with %s", self._engine.model_name)
        text = await self._engine.complete(rendered.system_message, rendered.user_message)
        logger.debug("LLM response received (%d characters)", len(text))
        return parse_analysis_response(text)

    def _build_analysis(
        self,
        project_name: str,
        report: CoverageReport,
        llm_analysis: LLMAnalysis,
        state: RunState,
    ) -> GapAnalysis:
        return GapAnalysis(
            repository_name=project_name,
            gaps=list(llm_analysis.identified_gaps),
            prioritized_gaps=list(llm_analysis.prioritization),
            suggestions=list(llm_analysis.recommendations),
            summary=llm_analysis.analysis,
            execution_time_details=replace(state.timings),
            initial_branch_coverage=report.branch_coverage_percentage,
            initial_line_coverage=report.coverage_percentage,
            total_files=report.total_files,
            files_with_low_branch_coverage=len(report.uncovered_files),
            llm_model=self._engine.model_name,
        )

    def _step_done(
        self, capture: LogCapture | NullLogCapture, description: str, duration_ms: float
    ) -> None:
        capture.add(f"[step] {description} ({duration_ms / 1000:.1f}s)")
        if self._reporter:
            self._reporter.print_step_done(description, duration_ms / 1000)
