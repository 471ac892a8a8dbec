"""Prompt templates."""

from branchgap.llm.prompts.base import PromptSection, RenderedPrompt
from branchgap.llm.prompts.gap_analysis import MAX_FILES_PER_REQUEST, GapAnalysisPrompt

__all__ = ["MAX_FILES_PER_REQUEST", "GapAnalysisPrompt", "PromptSection", "RenderedPrompt"]
