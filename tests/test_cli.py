"""Tests for the branchgap CLI commands."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner
from rich.logging import RichHandler

from branchgap import __version__
from branchgap.adapters.coverage.base import ArtifactMissingError, InvalidProjectError
from branchgap.cli import cli
from branchgap.config import BranchgapConfig, ConfigError
from branchgap.llm.engine import LLMError
from branchgap.models import Gap, GapAnalysis, PrioritizedGap, Priority
from branchgap.pipeline import BatchResult
from branchgap.utils.git import FetchError, GitHubAPIError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Iterator[None]:
    """The CLI reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in [h for h in root.handlers if isinstance(h, RichHandler)]:
        root.removeHandler(handler)
    root.setLevel(level)


def _analysis(name: str = "widgets") -> GapAnalysis:
    gap = Gap(file="src/math.js", lines=[3], description="else branch")
    return GapAnalysis(
        repository_name=name,
        gaps=[gap],
        prioritized_gaps=[
            PrioritizedGap(
                gap=gap,
                priority=Priority.CRITICAL,
                reasoning="Division by zero",
                suggested_tests=["divide(1, 0) throws"],
            )
        ],
        suggestions=["Cover the error path"],
        llm_model="gpt-5",
    )


def _invoke(args: list[str], pipeline: MagicMock, **patches: Any) -> Any:
    runner = CliRunner()
    with (
        patch("branchgap.cli.load_config", patches.get("load_config", MagicMock())),
        patch("branchgap.cli.create_engine", MagicMock()),
        patch("branchgap.cli.AnalysisPipeline", return_value=pipeline),
    ):
        return runner.invoke(cli, args)


# ── Group ────────────────────────────────────────────────────────


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_lists_commands() -> None:
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("repo", "multiple", "local"):
        assert command in result.output


# ── Commands ─────────────────────────────────────────────────────


def test_repo_command_prints_analysis() -> None:
    pipeline = MagicMock()
    pipeline.analyze_repository = AsyncMock(return_value=_analysis())

    result = _invoke(["repo", "acme", "widgets"], pipeline)

    assert result.exit_code == 0, result.output
    pipeline.analyze_repository.assert_awaited_once_with("acme", "widgets")
    assert "Results: widgets" in result.output
    assert "CRITICAL" in result.output
    assert "divide(1, 0) throws" in result.output


def test_local_command(tmp_path: Path) -> None:
    pipeline = MagicMock()
    pipeline.analyze_local = AsyncMock(return_value=_analysis("project"))

    result = _invoke(["local", str(tmp_path)], pipeline)

    assert result.exit_code == 0, result.output
    assert pipeline.analyze_local.await_args.args[0] == tmp_path.resolve()


def test_local_command_rejects_missing_path(tmp_path: Path) -> None:
    result = _invoke(["local", str(tmp_path / "missing")], MagicMock())

    assert result.exit_code == 2


def test_multiple_command_reports_ratio() -> None:
    pipeline = MagicMock()
    pipeline.analyze_many = AsyncMock(
        return_value=BatchResult(analyses=[_analysis("one"), _analysis("three")], attempted=3)
    )

    result = _invoke(
        ["multiple", "JavaScript", "--min-stars", "500", "--max-repos", "3"], pipeline
    )

    assert result.exit_code == 0, result.output
    pipeline.analyze_many.assert_awaited_once_with("JavaScript", 500, 3)
    assert "2/3 repositories" in result.output
    assert "Results: one" in result.output
    assert "Results: three" in result.output


# ── Error mapping ────────────────────────────────────────────────


def test_config_error_exits_non_zero() -> None:
    load_config = MagicMock(side_effect=ConfigError("OPENAI_API_KEY is required"))

    result = _invoke(["repo", "acme", "widgets"], MagicMock(), load_config=load_config)

    assert result.exit_code == 1
    assert "Configuration error" in result.output


@pytest.mark.parametrize(
    ("error", "message"),
    [
        (InvalidProjectError("no package.json"), "Not a valid Node.js project"),
        (ArtifactMissingError("nothing written"), "No coverage report was produced"),
        (LLMError("invalid key"), "LLM service failed"),
        (FetchError("clone failed"), "Could not fetch the repository"),
        (GitHubAPIError("rate limited"), "Repository search failed"),
        (PermissionError("reports dir is read-only"), "File system error"),
    ],
)
def test_fatal_errors_have_distinct_messages(error: Exception, message: str) -> None:
    pipeline = MagicMock()
    pipeline.analyze_repository = AsyncMock(side_effect=error)

    result = _invoke(["repo", "acme", "widgets"], pipeline)

    assert result.exit_code == 1
    assert message in result.output


def test_pipeline_receives_loaded_config() -> None:
    config = BranchgapConfig()
    pipeline = MagicMock()
    pipeline.analyze_repository = AsyncMock(return_value=_analysis())

    runner = CliRunner()
    with (
        patch("branchgap.cli.load_config", return_value=config),
        patch("branchgap.cli.create_engine") as create_engine,
        patch("branchgap.cli.AnalysisPipeline", return_value=pipeline) as pipeline_cls,
    ):
        result = runner.invoke(cli, ["--log-level", "debug", "repo", "acme", "widgets"])

    assert result.exit_code == 0, result.output
    create_engine.assert_called_once_with(config.llm)
    assert pipeline_cls.call_args.args[0] is config
