"""Attach source text and matching test files to under-covered files.

The LLM needs to see both the code with the missed branches and whatever
tests already exercise it. Test files are located by naming convention
only; import analysis is not attempted.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from branchgap.adapters.coverage.base import UncoveredFile

logger = logging.getLogger(__name__)


class ReadError(Exception):
    """Raised when a source or test file cannot be read."""


def candidate_test_paths(source_path: Path) -> list[Path]:
    """Return conventional test locations for *source_path*, most specific first.

    For ``src/math.js`` these are ``src/__test__/math.test.js``,
    ``src/__tests__/math.test.js``, ``src/math.test.js``,
    ``src/math.spec.js`` and finally ``src/test.js``.
    """
    stem = source_path.stem
    ext = source_path.suffix or ".js"
    directory = source_path.parent
    return [
        directory / "__test__" / f"{stem}.test{ext}",
        directory / "__tests__" / f"{stem}.test{ext}",
        directory / f"{stem}.test{ext}",
        directory / f"{stem}.spec{ext}",
        directory / f"test{ext}",
    ]


def find_test_file(source_path: Path) -> Path | None:
    """Return the first existing conventional test file for *source_path*."""
    for candidate in candidate_test_paths(source_path):
        if candidate.is_file() and candidate != source_path:
            return candidate
    return None


def resolve_source_path(project_root: Path, file_path: str) -> Path:
    """Absolute coverage paths are used as-is; relative ones are joined to the root."""
    path = Path(file_path)
    return path if path.is_absolute() else project_root / path


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ReadError(f"Cannot read {path}: {exc}") from exc


def _read_test_code(source_path: Path) -> str | None:
    test_path = find_test_file(source_path)
    if test_path is None:
        return None
    try:
        return _read_text(test_path)
    except ReadError as exc:
        logger.warning("%s", exc)
        return None


def extract_code_snippets(
    project_root: Path, uncovered_files: list[UncoveredFile]
) -> list[UncoveredFile]:
    """Return copies of *uncovered_files* with source and test text attached.

    Order is preserved. A file whose source cannot be read is passed through
    unchanged so one unreadable file never stops the rest.
    """
    enriched: list[UncoveredFile] = []
    for file in uncovered_files:
        source_path = resolve_source_path(project_root, file.file_path)
        try:
            source_code = _read_text(source_path)
        except ReadError:
            logger.warning("Could not read source file: %s", file.file_path)
            enriched.append(file)
            continue

        test_code = _read_test_code(source_path)
        if test_code is None:
            logger.debug("No test file found for %s", file.file_path)
        enriched.append(replace(file, source_code=source_code, test_code=test_code))

    return enriched
