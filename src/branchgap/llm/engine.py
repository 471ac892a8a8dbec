"""LLMEngine: abstract interface for remote analysis providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class LLMResponse:
    """Text returned by a provider, with the usage it reported."""

    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    finish_reason: str | None = None
    """``"length"`` means the reply hit the token ceiling and is likely cut off."""

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def truncated(self) -> bool:
        return self.finish_reason == "length"


@dataclass
class LLMMessage:
    role: str
    """``system`` for the fixed instruction, ``user`` for the coverage request."""

    content: str


@dataclass
class GenerationRequest:
    """Parameters for an LLM generation call."""

    messages: list[LLMMessage]
    """Conversation messages to send to the model."""

    temperature: float | None = None
    """Sampling temperature; ``None`` leaves the provider default."""

    max_tokens: int | None = None
    """Maximum tokens to generate; ``None`` uses the engine default."""


class LLMEngine(ABC):
    """Abstract interface for LLM generation.

    The pipeline depends only on this interface; concrete providers are
    chosen once at startup by ``branchgap.llm.factory.create_engine``.
    """

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> LLMResponse:
        """Send a generation request and return the response.

        Raises:
            LLMError: On any LLM-related failure (network, auth, rate limit, etc.).
        """

    async def complete(self, system: str, user: str) -> str:
        """Send a system instruction plus one user message and return the text."""
        response = await self.generate(
            GenerationRequest(
                messages=[
                    LLMMessage(role="system", content=system),
                    LLMMessage(role="user", content=user),
                ]
            )
        )
        return response.text

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier for this engine."""


class LLMError(Exception):
    """Base exception for LLM-related errors."""


class LLMAuthError(LLMError):
    """Raised when authentication fails (invalid or missing API key)."""


class LLMRateLimitError(LLMError):
    """Raised when the provider rate limit is hit."""


class LLMConnectionError(LLMError):
    """Raised when the provider cannot be reached."""
