"""LLM integration layer for branchgap."""

from branchgap.llm.builtin import AnthropicEngine, BuiltinLLM, OpenAIEngine
from branchgap.llm.engine import LLMEngine, LLMError, LLMResponse
from branchgap.llm.factory import create_engine

__all__ = [
    "AnthropicEngine",
    "BuiltinLLM",
    "LLMEngine",
    "LLMError",
    "LLMResponse",
    "OpenAIEngine",
    "create_engine",
]
