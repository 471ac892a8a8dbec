"""Gap analysis result models and their JSON-compatible representation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class Priority(Enum):
    """Risk tier assigned to an uncovered branch."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @classmethod
    def parse(cls, value: object, default: Priority | None = None) -> Priority:
        """Parse a case-insensitive priority name, falling back to *default* (MEDIUM)."""
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return default or cls.MEDIUM


@dataclass
class Gap:
    """A specific uncovered branch finding."""

    file: str = ""
    lines: list[int] = field(default_factory=list)
    description: str = ""
    code_snippet: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "lines": list(self.lines),
            "description": self.description,
            "code_snippet": self.code_snippet,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Gap:
        return cls(
            file=str(data.get("file", "")),
            lines=[int(line) for line in data.get("lines", [])],
            description=str(data.get("description", "")),
            code_snippet=str(data.get("code_snippet", "")),
        )


@dataclass
class PrioritizedGap:
    """A gap annotated with a risk tier and concrete test suggestions."""

    gap: Gap
    priority: Priority
    reasoning: str = ""
    suggested_tests: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "gap": self.gap.to_dict(),
            "priority": self.priority.value,
            "reasoning": self.reasoning,
            "suggested_tests": list(self.suggested_tests),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PrioritizedGap:
        return cls(
            gap=Gap.from_dict(data.get("gap") or {}),
            priority=Priority.parse(data.get("priority")),
            reasoning=str(data.get("reasoning", "")),
            suggested_tests=[str(t) for t in data.get("suggested_tests", [])],
        )


@dataclass
class ExecutionTimeDetails:
    """Per-stage durations of one repository run, in milliseconds."""

    clone_time: float = 0.0
    installation_time: float = 0.0
    test_time: float = 0.0
    code_extraction_time: float = 0.0
    llm_analysis_time: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.clone_time
            + self.installation_time
            + self.test_time
            + self.code_extraction_time
            + self.llm_analysis_time
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "clone_time": self.clone_time,
            "installation_time": self.installation_time,
            "test_time": self.test_time,
            "code_extraction_time": self.code_extraction_time,
            "llm_analysis_time": self.llm_analysis_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExecutionTimeDetails:
        return cls(
            clone_time=float(data.get("clone_time", 0.0)),
            installation_time=float(data.get("installation_time", 0.0)),
            test_time=float(data.get("test_time", 0.0)),
            code_extraction_time=float(data.get("code_extraction_time", 0.0)),
            llm_analysis_time=float(data.get("llm_analysis_time", 0.0)),
        )


@dataclass(frozen=True)
class GapAnalysis:
    """Final result for one project. Built once by the pipeline, never updated."""

    repository_name: str
    gaps: list[Gap] = field(default_factory=list)
    prioritized_gaps: list[PrioritizedGap] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    summary: str = ""
    """Free-text overview returned by the LLM."""

    analysis_date: datetime = field(default_factory=lambda: datetime.now(UTC))
    execution_time_details: ExecutionTimeDetails | None = None
    initial_branch_coverage: float | None = None
    initial_line_coverage: float | None = None
    total_files: int | None = None
    files_with_low_branch_coverage: int | None = None
    llm_model: str = ""

    @property
    def execution_time(self) -> float | None:
        """Total run time in milliseconds, the sum of the stage timings."""
        if self.execution_time_details is None:
            return None
        return self.execution_time_details.total

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable representation."""
        details = self.execution_time_details
        return {
            "repository_name": self.repository_name,
            "gaps": [gap.to_dict() for gap in self.gaps],
            "prioritized_gaps": [gap.to_dict() for gap in self.prioritized_gaps],
            "suggestions": list(self.suggestions),
            "summary": self.summary,
            "analysis_date": self.analysis_date.isoformat(),
            "execution_time": self.execution_time,
            "execution_time_details": details.to_dict() if details else None,
            "initial_branch_coverage": self.initial_branch_coverage,
            "initial_line_coverage": self.initial_line_coverage,
            "total_files": self.total_files,
            "files_with_low_branch_coverage": self.files_with_low_branch_coverage,
            "llm_model": self.llm_model,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GapAnalysis:
        """Rebuild a ``GapAnalysis`` from ``to_dict`` output."""
        details = data.get("execution_time_details")
        return cls(
            repository_name=str(data["repository_name"]),
            gaps=[Gap.from_dict(g) for g in data.get("gaps", [])],
            prioritized_gaps=[
                PrioritizedGap.from_dict(p) for p in data.get("prioritized_gaps", [])
            ],
            suggestions=[str(s) for s in data.get("suggestions", [])],
            summary=str(data.get("summary", "")),
            analysis_date=datetime.fromisoformat(data["analysis_date"]),
            execution_time_details=ExecutionTimeDetails.from_dict(details) if details else None,
            initial_branch_coverage=data.get("initial_branch_coverage"),
            initial_line_coverage=data.get("initial_line_coverage"),
            total_files=data.get("total_files"),
            files_with_low_branch_coverage=data.get("files_with_low_branch_coverage"),
            llm_model=str(data.get("llm_model", "")),
        )
