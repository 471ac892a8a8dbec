"""Factory for creating an ``LLMEngine`` from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from branchgap.llm.builtin import AnthropicEngine, BuiltinLLM, OpenAIEngine
from branchgap.llm.engine import LLMEngine, LLMError

if TYPE_CHECKING:
    from branchgap.config import LLMConfig

_ENGINES: dict[str, type[BuiltinLLM]] = {
    "openai": OpenAIEngine,
    "anthropic": AnthropicEngine,
}


def create_engine(config: LLMConfig) -> LLMEngine:
    """Instantiate the engine for ``config.provider``.

    Raises:
        LLMError: If the provider is unknown or has no model configured.
    """
    engine_cls = _ENGINES.get(config.provider)
    if engine_cls is None:
        raise LLMError(f"Unsupported LLM provider: {config.provider!r}")

    if not config.model:
        raise LLMError(f"No model configured for provider {config.provider!r}")

    kwargs: dict[str, object] = {
        "api_key": config.api_key or None,
        "base_url": config.base_url or None,
        "temperature": config.temperature,
    }
    if config.max_tokens is not None:
        kwargs["max_tokens"] = config.max_tokens

    return engine_cls(config.model, **kwargs)  # type: ignore[arg-type]
