"""Tests for the gap analysis models (models/analysis.py)."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from branchgap.models import ExecutionTimeDetails, Gap, GapAnalysis, PrioritizedGap, Priority


def _analysis() -> GapAnalysis:
    gap = Gap(file="src/math.js", lines=[4, 9], description="else branch", code_snippet="if (x)")
    return GapAnalysis(
        repository_name="demo",
        gaps=[gap],
        prioritized_gaps=[
            PrioritizedGap(
                gap=gap,
                priority=Priority.HIGH,
                reasoning="validation",
                suggested_tests=["x = 0 returns 0"],
            )
        ],
        suggestions=["Test the else branch"],
        summary="One important gap",
        analysis_date=datetime(2025, 3, 1, 12, 30, 15, 123000, tzinfo=UTC),
        execution_time_details=ExecutionTimeDetails(
            clone_time=1200.5,
            installation_time=30000.0,
            test_time=15000.25,
            code_extraction_time=12.0,
            llm_analysis_time=8000.0,
        ),
        initial_branch_coverage=72.5,
        initial_line_coverage=88.1,
        total_files=40,
        files_with_low_branch_coverage=6,
        llm_model="gpt-5",
    )


# ── Priority ─────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("CRITICAL", Priority.CRITICAL),
        ("high", Priority.HIGH),
        (" low ", Priority.LOW),
        ("urgent", Priority.MEDIUM),
        (None, Priority.MEDIUM),
        (3, Priority.MEDIUM),
    ],
)
def test_priority_parse(value: object, expected: Priority) -> None:
    assert Priority.parse(value) is expected


# ── Execution time ───────────────────────────────────────────────


def test_execution_time_is_sum_of_stages() -> None:
    analysis = _analysis()

    assert analysis.execution_time == pytest.approx(54212.75)


def test_execution_time_absent_without_details() -> None:
    assert GapAnalysis(repository_name="x").execution_time is None


# ── Serialisation ────────────────────────────────────────────────


def test_round_trip_through_json_is_lossless() -> None:
    original = _analysis()

    restored = GapAnalysis.from_dict(json.loads(json.dumps(original.to_dict())))

    assert restored == original


def test_round_trip_of_minimal_analysis() -> None:
    original = GapAnalysis(repository_name="bare")

    assert GapAnalysis.from_dict(original.to_dict()) == original


def test_to_dict_uses_snake_case_keys() -> None:
    data = _analysis().to_dict()

    assert data["prioritized_gaps"][0]["priority"] == "HIGH"
    assert data["prioritized_gaps"][0]["suggested_tests"] == ["x = 0 returns 0"]
    assert data["gaps"][0]["code_snippet"] == "if (x)"
    assert data["execution_time"] == pytest.approx(54212.75)
    assert data["analysis_date"] == "2025-03-01T12:30:15.123000+00:00"
