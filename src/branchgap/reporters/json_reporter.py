"""JSON report store: persists each ``GapAnalysis`` and its run transcript.

Files are named ``<project>_<model>_<timestamp>`` so runs of the same
project against different models never collide.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from branchgap.models.analysis import GapAnalysis

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_name(value: str) -> str:
    """Replace characters that are unsafe in file names with ``_``."""
    return _UNSAFE_CHARS_RE.sub("_", value) or "unknown"


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 timestamp with ``:`` and ``.`` replaced so it fits in a file name."""
    iso = moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return iso.replace(":", "-").replace(".", "-")


class ReportStore:
    """Write and read analysis reports under a single directory."""

    def __init__(self, reports_dir: Path) -> None:
        self.reports_dir = reports_dir

    def report_stem(self, analysis: GapAnalysis) -> str:
        """Deterministic file stem for *analysis*."""
        return "_".join(
            (
                sanitize_name(analysis.repository_name),
                sanitize_name(analysis.llm_model or "none"),
                format_timestamp(analysis.analysis_date),
            )
        )

    def write_json(self, path: Path, data: dict[str, Any]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(data, indent=2, ensure_ascii=False, default=str),
            encoding="utf-8",
        )
        return path

    def write_text(self, path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def save_analysis(self, analysis: GapAnalysis, transcript: str = "") -> tuple[Path, Path]:
        """Persist *analysis* as JSON and *transcript* as plain text.

        Returns:
            The ``(json_path, log_path)`` pair that was written.
        """
        stem = self.report_stem(analysis)
        json_path = self.write_json(self.reports_dir / f"{stem}.json", analysis.to_dict())
        log_path = self.write_text(self.reports_dir / f"{stem}.log", transcript)
        logger.info("Results saved: %s", json_path)
        logger.info("Logs saved: %s", log_path)
        return json_path, log_path

    def load_analysis(self, path: Path) -> GapAnalysis:
        """Read a report written by ``save_analysis``."""
        return GapAnalysis.from_dict(json.loads(path.read_text(encoding="utf-8")))
