"""Data models for branchgap results."""

from branchgap.models.analysis import (
    ExecutionTimeDetails,
    Gap,
    GapAnalysis,
    PrioritizedGap,
    Priority,
)

__all__ = ["ExecutionTimeDetails", "Gap", "GapAnalysis", "PrioritizedGap", "Priority"]
