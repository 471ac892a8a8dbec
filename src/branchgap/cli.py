"""branchgap CLI: top-level command group."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console
from rich.logging import RichHandler

from branchgap import __version__
from branchgap.adapters.coverage.base import (
    ArtifactMissingError,
    InvalidProjectError,
    MalformedArtifactError,
)
from branchgap.config import ConfigError, load_config
from branchgap.llm.engine import LLMError
from branchgap.llm.factory import create_engine
from branchgap.llm.response import ResponseParseError
from branchgap.pipeline import AnalysisPipeline
from branchgap.reporters.terminal import reporter
from branchgap.utils.git import FetchError, GitHubAPIError

if TYPE_CHECKING:
    from collections.abc import Coroutine

logger = logging.getLogger(__name__)

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]
_NOISY_LOGGERS = ("LiteLLM", "httpx", "urllib3")


def _configure_logging(level: str) -> None:
    """Send log records to stderr through rich."""
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    # The handler filters, not the logger: per-run capture lowers logger levels.
    handler.setLevel(level)
    logging.basicConfig(
        level=level, format="%(message)s", datefmt="[%X]", handlers=[handler], force=True
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _build_pipeline() -> AnalysisPipeline:
    try:
        config = load_config(Path.cwd())
    except ConfigError as e:
        reporter.print_error(f"Configuration error: {e}")
        raise click.Abort from e

    try:
        engine = create_engine(config.llm)
    except LLMError as e:
        reporter.print_error(f"Configuration error: {e}")
        raise click.Abort from e

    return AnalysisPipeline(config, engine=engine, reporter=reporter)


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run *coro*, turning fatal pipeline errors into a message and exit code 1."""
    try:
        return asyncio.run(coro)
    except InvalidProjectError as e:
        reporter.print_error(f"Not a valid Node.js project (no package.json found): {e}")
        raise click.Abort from e
    except ArtifactMissingError as e:
        reporter.print_error(
            "No coverage report was produced. Check that the project's Jest (or nyc) "
            f"configuration collects coverage: {e}"
        )
        raise click.Abort from e
    except MalformedArtifactError as e:
        reporter.print_error(f"The coverage report could not be parsed: {e}")
        raise click.Abort from e
    except GitHubAPIError as e:
        reporter.print_error(f"Repository search failed: {e}")
        raise click.Abort from e
    except FetchError as e:
        reporter.print_error(f"Could not fetch the repository: {e}")
        raise click.Abort from e
    except ResponseParseError as e:
        reporter.print_error(f"LLM service failed: the response was not valid JSON ({e})")
        raise click.Abort from e
    except LLMError as e:
        reporter.print_error(f"LLM service failed: {e}")
        raise click.Abort from e
    except OSError as e:
        reporter.print_error(f"File system error: {e}")
        raise click.Abort from e


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default="INFO",
    envvar="LOG_LEVEL",
    show_default=True,
    help="Verbosity of log output.",
)
@click.version_option(version=__version__, prog_name="branchgap")
def cli(log_level: str) -> None:
    """branchgap: find and prioritise untested branches with an LLM."""
    _configure_logging(log_level.upper())


@cli.command("repo")
@click.argument("owner")
@click.argument("repo")
def repo_command(owner: str, repo: str) -> None:
    """Clone and analyse a single GitHub repository.

    Example:
      branchgap repo facebook react
    """
    pipeline = _build_pipeline()
    reporter.print_header(f"Analysing {owner}/{repo}")
    analysis = _run(pipeline.analyze_repository(owner, repo))
    reporter.print_analysis(analysis)


@cli.command("multiple")
@click.argument("language")
@click.option("--min-stars", default=100, show_default=True, type=click.IntRange(min=0))
@click.option("--max-repos", default=3, show_default=True, type=click.IntRange(min=1))
def multiple_command(language: str, min_stars: int, max_repos: int) -> None:
    """Search for LANGUAGE repositories and analyse up to --max-repos of them.

    Example:
      branchgap multiple JavaScript --min-stars 100 --max-repos 3
    """
    pipeline = _build_pipeline()
    reporter.print_header(
        f"Searching {language} repositories with at least {min_stars} stars"
    )
    result = _run(pipeline.analyze_many(language, min_stars, max_repos))
    reporter.print_batch_summary(result.succeeded, result.attempted)
    for analysis in result.analyses:
        reporter.print_analysis(analysis)


@cli.command("local")
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
)
def local_command(path: str) -> None:
    """Analyse a project already present on disk.

    Example:
      branchgap local ./my-project
    """
    pipeline = _build_pipeline()
    reporter.print_header(f"Analysing local project {path}")
    analysis = _run(pipeline.analyze_local(Path(path)))
    reporter.print_analysis(analysis)
