"""Tests for the LiteLLM engines (llm/builtin.py) and the engine factory (llm/factory.py)."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from litellm.exceptions import (
    APIConnectionError as LiteLLMConnectionError,
)
from litellm.exceptions import (
    AuthenticationError as LiteLLMAuthError,
)
from litellm.exceptions import (
    RateLimitError as LiteLLMRateLimitError,
)

from branchgap.config import LLMConfig
from branchgap.llm.builtin import JSON_ONLY_REMINDER, AnthropicEngine, OpenAIEngine
from branchgap.llm.engine import (
    GenerationRequest,
    LLMAuthError,
    LLMConnectionError,
    LLMError,
    LLMMessage,
    LLMRateLimitError,
    LLMResponse,
)
from branchgap.llm.factory import create_engine

# ── Helpers ──────────────────────────────────────────────────────


def _mock_completion(
    text: str = '{"analysis": "ok"}', model: str = "gpt-5", prompt_t: int = 10, comp_t: int = 5
) -> SimpleNamespace:
    """Build a fake LiteLLM completion response."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        model=model,
        usage=SimpleNamespace(prompt_tokens=prompt_t, completion_tokens=comp_t),
    )


# ── OpenAI engine ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_openai_complete_sends_system_and_user() -> None:
    engine = OpenAIEngine("gpt-5", api_key="sk-test")

    with patch("branchgap.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.return_value = _mock_completion()
        result = await engine.complete("You are a tester", "Analyse this")

    assert result == '{"analysis": "ok"}'
    mock_ac.assert_awaited_once()
    kwargs = mock_ac.call_args.kwargs
    assert kwargs["model"] == "openai/gpt-5"
    assert kwargs["api_key"] == "sk-test"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"] == [
        {"role": "system", "content": "You are a tester"},
        {"role": "user", "content": "Analyse this"},
    ]
    assert "temperature" not in kwargs
    assert "max_tokens" not in kwargs


@pytest.mark.asyncio
async def test_generate_returns_token_usage() -> None:
    engine = OpenAIEngine("gpt-5")

    with patch("branchgap.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.return_value = _mock_completion(text="result", prompt_t=20, comp_t=10)
        response = await engine.generate(
            GenerationRequest(messages=[LLMMessage(role="user", content="hi")], temperature=0.2)
        )

    assert isinstance(response, LLMResponse)
    assert response.total_tokens == 30
    assert not response.truncated
    assert mock_ac.call_args.kwargs["temperature"] == 0.2


@pytest.mark.asyncio
async def test_reply_cut_at_token_limit_is_flagged() -> None:
    engine = OpenAIEngine("gpt-5")
    raw = _mock_completion(text='{"analysis": "parti')
    raw.choices[0].finish_reason = "length"

    with patch("branchgap.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.return_value = raw
        response = await engine.generate(
            GenerationRequest(messages=[LLMMessage(role="user", content="hi")])
        )

    assert response.finish_reason == "length"
    assert response.truncated


def test_model_with_provider_prefix_is_kept() -> None:
    engine = OpenAIEngine("azure/my-deployment")

    assert engine.litellm_model == "azure/my-deployment"
    assert engine.model_name == "azure/my-deployment"


@pytest.mark.asyncio
async def test_openai_configured_token_cap_is_sent() -> None:
    engine = create_engine(
        LLMConfig(provider="openai", openai_api_key="sk", openai_model="gpt-5", max_tokens=16000)
    )

    with patch("branchgap.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.return_value = _mock_completion()
        await engine.complete("s", "u")

    assert mock_ac.call_args.kwargs["max_tokens"] == 16000


# ── Anthropic engine ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_anthropic_appends_json_reminder_and_raises_ceiling() -> None:
    engine = AnthropicEngine("claude-sonnet-4-5-20250929", api_key="sk-ant")

    with patch("branchgap.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.return_value = _mock_completion()
        await engine.complete("system", "user request")

    kwargs = mock_ac.call_args.kwargs
    assert kwargs["model"] == "anthropic/claude-sonnet-4-5-20250929"
    assert kwargs["max_tokens"] == 8192
    assert kwargs["messages"][-1]["content"] == "user request" + JSON_ONLY_REMINDER
    assert "response_format" not in kwargs


# ── Error mapping (no retries) ───────────────────────────────────


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("raised", "expected"),
    [
        (
            LiteLLMAuthError(message="invalid key", llm_provider="openai", model="gpt-5"),
            LLMAuthError,
        ),
        (
            LiteLLMRateLimitError(message="slow down", llm_provider="openai", model="gpt-5"),
            LLMRateLimitError,
        ),
        (
            LiteLLMConnectionError(message="offline", llm_provider="openai", model="gpt-5"),
            LLMConnectionError,
        ),
        (RuntimeError("unexpected"), LLMError),
    ],
)
async def test_litellm_errors_are_mapped_without_retry(
    raised: Exception, expected: type[LLMError]
) -> None:
    engine = OpenAIEngine("gpt-5", api_key="sk-test")

    with patch("branchgap.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.side_effect = raised
        with pytest.raises(expected):
            await engine.complete("s", "u")

    assert mock_ac.await_count == 1


@pytest.mark.asyncio
async def test_empty_choices_raise() -> None:
    engine = OpenAIEngine("gpt-5")

    with patch("branchgap.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.return_value = SimpleNamespace(choices=[], model="gpt-5", usage=None)
        with pytest.raises(LLMError, match="no choices"):
            await engine.complete("s", "u")


# ── Factory ──────────────────────────────────────────────────────


def test_factory_selects_openai() -> None:
    engine = create_engine(LLMConfig(provider="openai", openai_api_key="sk", openai_model="gpt-5"))

    assert isinstance(engine, OpenAIEngine)
    assert engine.model_name == "gpt-5"


def test_factory_selects_anthropic() -> None:
    engine = create_engine(
        LLMConfig(provider="anthropic", anthropic_api_key="sk-ant", anthropic_model="claude-x")
    )

    assert isinstance(engine, AnthropicEngine)
    assert engine.model_name == "claude-x"


def test_factory_rejects_unknown_provider() -> None:
    with pytest.raises(LLMError, match="Unsupported LLM provider"):
        create_engine(LLMConfig(provider="gemini"))


def test_factory_rejects_empty_model() -> None:
    with pytest.raises(LLMError, match="No model configured"):
        create_engine(LLMConfig(provider="openai", openai_model=""))
