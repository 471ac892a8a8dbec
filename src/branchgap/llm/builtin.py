"""LiteLLM-backed engines for the OpenAI and Anthropic providers."""

from __future__ import annotations

import logging
from typing import Any

import litellm
from litellm.exceptions import (
    APIConnectionError as LiteLLMConnectionError,
)
from litellm.exceptions import (
    AuthenticationError as LiteLLMAuthError,
)
from litellm.exceptions import (
    RateLimitError as LiteLLMRateLimitError,
)

from branchgap.llm.engine import (
    GenerationRequest,
    LLMAuthError,
    LLMConnectionError,
    LLMEngine,
    LLMError,
    LLMRateLimitError,
    LLMResponse,
)

logger = logging.getLogger(__name__)

# Suppress litellm's noisy default logging
litellm.suppress_debug_info = True

JSON_ONLY_REMINDER = (
    "\n\nIMPORTANT: Respond ONLY with valid JSON, with no text before or after the JSON object."
)


class BuiltinLLM(LLMEngine):
    """Single-shot LiteLLM completion call.

    Failed calls are not retried: the error is mapped onto the ``LLMError``
    family and the caller decides what to do with the repository.
    """

    provider = ""
    """LiteLLM provider prefix (``openai``, ``anthropic``)."""

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._base_url = base_url
        self._temperature = temperature
        self._max_tokens = max_tokens

    # ── Public API ────────────────────────────────────────────────

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def litellm_model(self) -> str:
        """Model string with the provider prefix LiteLLM routes on."""
        if "/" in self._model or not self.provider:
            return self._model
        return f"{self.provider}/{self._model}"

    async def generate(self, request: GenerationRequest) -> LLMResponse:
        messages = [{"role": m.role, "content": m.content} for m in request.messages]
        kwargs: dict[str, Any] = {
            "model": self.litellm_model,
            "messages": messages,
        }
        max_tokens = request.max_tokens or self._max_tokens
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        temperature = request.temperature if request.temperature is not None else self._temperature
        if temperature is not None:
            kwargs["temperature"] = temperature
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._base_url:
            kwargs["api_base"] = self._base_url

        self._customize(kwargs)

        logger.info("Calling %s (%s)", self.provider or "LLM", self._model)
        raw = await self._call(kwargs)
        response = self._parse_response(raw, self._model)
        logger.info(
            "Response received from %s (%d characters, %d tokens)",
            self.provider or "LLM",
            len(response.text),
            response.total_tokens,
        )
        if response.truncated:
            logger.warning(
                "Response from %s stopped at the token limit; JSON may be incomplete",
                self._model,
            )
        return response

    # ── Internal helpers ──────────────────────────────────────────

    def _customize(self, kwargs: dict[str, Any]) -> None:
        """Adjust completion kwargs for the provider. Subclasses override."""

    async def _call(self, kwargs: dict[str, Any]) -> Any:
        try:
            return await litellm.acompletion(**kwargs)
        except LiteLLMAuthError as exc:
            raise LLMAuthError(str(exc)) from exc
        except LiteLLMRateLimitError as exc:
            raise LLMRateLimitError(str(exc)) from exc
        except LiteLLMConnectionError as exc:
            raise LLMConnectionError(str(exc)) from exc
        except Exception as exc:
            raise LLMError(f"{type(exc).__name__}: {exc}") from exc

    @staticmethod
    def _parse_response(raw: Any, model: str) -> LLMResponse:
        """Extract an ``LLMResponse`` from a LiteLLM completion result."""
        if not raw.choices:
            raise LLMError("LLM response contains no choices")
        choice = raw.choices[0]
        usage = getattr(raw, "usage", None)

        return LLMResponse(
            text=choice.message.content or "",
            model=raw.model or model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            finish_reason=getattr(choice, "finish_reason", None),
        )


class OpenAIEngine(BuiltinLLM):
    """OpenAI chat completions in JSON output mode."""

    provider = "openai"

    def _customize(self, kwargs: dict[str, Any]) -> None:
        kwargs["response_format"] = {"type": "json_object"}


class AnthropicEngine(BuiltinLLM):
    """Anthropic messages API; JSON is requested in the prompt instead of a response format."""

    provider = "anthropic"

    def __init__(self, model: str, **kwargs: Any) -> None:
        kwargs.setdefault("max_tokens", 8192)
        super().__init__(model, **kwargs)

    def _customize(self, kwargs: dict[str, Any]) -> None:
        messages = kwargs["messages"]
        for message in reversed(messages):
            if message["role"] == "user":
                message["content"] = message["content"] + JSON_ONLY_REMINDER
                break
