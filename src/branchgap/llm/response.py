"""Turn the LLM's free-form reply into structured gap findings."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from branchgap.models.analysis import Gap, PrioritizedGap, Priority

logger = logging.getLogger(__name__)

_JSON_FENCE_RE = re.compile(r"```json\s*\n?([\s\S]*?)\n?```")

_PREVIEW_CHARS = 500

FULLY_COVERED_SUMMARY = (
    "Every file meets the branch coverage threshold. There are no coverage gaps to analyse."
)
FULLY_COVERED_RECOMMENDATIONS = [
    "Keep coverage high by running the test suite with coverage on every change.",
    "Consider mutation testing to validate the quality of the existing tests.",
]


class ResponseParseError(ValueError):
    """Raised when the LLM reply does not contain a JSON object."""

    def __init__(self, message: str, preview: str) -> None:
        super().__init__(message)
        self.preview = preview


@dataclass
class LLMAnalysis:
    """Normalised content of one LLM reply."""

    analysis: str = ""
    identified_gaps: list[Gap] = field(default_factory=list)
    prioritization: list[PrioritizedGap] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


def fully_covered_analysis() -> LLMAnalysis:
    """Canned reply used when no file is below the threshold; no LLM call is made."""
    return LLMAnalysis(
        analysis=FULLY_COVERED_SUMMARY,
        recommendations=list(FULLY_COVERED_RECOMMENDATIONS),
    )


def extract_json_text(text: str) -> str:
    """Return the body of a fenced ``json`` block, or *text* stripped when unfenced."""
    match = _JSON_FENCE_RE.search(text)
    if match:
        logger.debug("JSON found inside a markdown block, extracting")
        return match.group(1).strip()
    return text.strip()


def parse_analysis_response(text: str) -> LLMAnalysis:
    """Parse the LLM reply into an ``LLMAnalysis``.

    Missing top-level fields default to empty values; only a reply that is
    not a JSON object at all is an error.

    Raises:
        ResponseParseError: The reply is empty or not a JSON object.
    """
    body = extract_json_text(text or "")
    preview = body[:_PREVIEW_CHARS]
    if not body:
        raise ResponseParseError("Empty response from LLM", preview="")

    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse JSON response: %s (preview: %s)", exc, preview)
        raise ResponseParseError(f"Failed to parse JSON response: {exc}", preview) from exc

    if not isinstance(parsed, dict):
        raise ResponseParseError(
            f"Expected a JSON object, got {type(parsed).__name__}", preview=preview
        )

    return LLMAnalysis(
        analysis=str(parsed.get("analysis") or ""),
        identified_gaps=[_parse_gap(item) for item in _as_list(parsed.get("identifiedGaps"))],
        prioritization=[
            _parse_prioritized_gap(item) for item in _as_list(parsed.get("prioritization"))
        ],
        recommendations=[str(r) for r in _as_list(parsed.get("recommendations"))],
    )


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _parse_lines(value: Any) -> list[int]:
    lines = []
    for item in _as_list(value):
        try:
            lines.append(int(item))
        except (TypeError, ValueError):
            continue
    return lines


def _parse_gap(item: Any) -> Gap:
    if not isinstance(item, dict):
        return Gap(description=str(item))
    return Gap(
        file=str(item.get("file") or ""),
        lines=_parse_lines(item.get("lines")),
        description=str(item.get("description") or ""),
        code_snippet=str(item.get("codeSnippet") or ""),
    )


def _parse_prioritized_gap(item: Any) -> PrioritizedGap:
    if not isinstance(item, dict):
        return PrioritizedGap(gap=Gap(), priority=Priority.MEDIUM, reasoning=str(item))
    # The gap may be nested or flattened into the entry itself.
    gap_source = item.get("gap") if isinstance(item.get("gap"), dict) else item
    return PrioritizedGap(
        gap=_parse_gap(gap_source),
        priority=Priority.parse(item.get("priority")),
        reasoning=str(item.get("reasoning") or ""),
        suggested_tests=[str(t) for t in _as_list(item.get("suggestedTests"))],
    )
