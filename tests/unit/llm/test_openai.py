"""
Tests for the OpenAI-compatible provider.

Covers OpenAI and OpenRouter usage with mocked API calls.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from data_agent.llm.models import LLMMessage, LLMRequest
from data_agent.llm.openai import OpenAIProvider
from data_agent.models.errors import CompletionError


@pytest.fixture
def provider():
    """Create OpenRouter-backed provider instance."""
    return OpenAIProvider(
        api_key="sk-or-test-key-1234567890abcdefghij",
        model="tngtech/deepseek-r1t-chimera:free",
        base_url="https://openrouter.ai/api/v1",
        provider_name="openrouter",
        temperature=0.0,
        max_tokens=1000,
        timeout=30,
    )


def _completion(content: str | None, finish_reason: str = "stop"):
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = content
    mock_response.choices[0].finish_reason = finish_reason
    mock_response.model = "tngtech/deepseek-r1t-chimera:free"
    mock_response.usage.prompt_tokens = 10
    mock_response.usage.completion_tokens = 5
    mock_response.usage.total_tokens = 15
    mock_response.id = "gen-123"
    return mock_response


def _request() -> httpx.Request:
    return httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")


class TestOpenAIProviderInit:
    """Test provider initialization."""

    def test_initialization(self, provider):
        assert provider.model == "tngtech/deepseek-r1t-chimera:free"
        assert provider.provider_name == "openrouter"
        assert provider.base_url == "https://openrouter.ai/api/v1"
        assert provider.max_tokens == 1000
        assert provider.timeout == 30

    def test_client_uses_base_url(self, provider):
        assert str(provider.client.base_url).startswith("https://openrouter.ai/api/v1")
        assert provider.client.max_retries == 0


class TestGenerate:
    """Test generate method."""

    @pytest.mark.asyncio
    async def test_successful_generation(self, provider):
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_completion('{"sql": "SELECT 1"}'),
        ):
            response = await provider.generate(
                LLMRequest(messages=[LLMMessage(role="user", content="Hello!")])
            )

        assert response.content == '{"sql": "SELECT 1"}'
        assert response.provider == "openrouter"
        assert response.usage.total_tokens == 15
        assert response.finish_reason == "stop"
        assert response.metadata == {"id": "gen-123"}

    @pytest.mark.asyncio
    async def test_applies_defaults(self, provider):
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_completion("ok"),
        ) as mock_create:
            await provider.generate(
                LLMRequest(messages=[LLMMessage(role="user", content="Hi")])
            )

        kwargs = mock_create.call_args.kwargs
        assert kwargs["model"] == "tngtech/deepseek-r1t-chimera:free"
        assert kwargs["temperature"] == 0.0
        assert kwargs["max_tokens"] == 1000
        assert kwargs["messages"] == [{"role": "user", "content": "Hi"}]

    @pytest.mark.asyncio
    async def test_unknown_finish_reason_maps_to_stop(self, provider):
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_completion("ok", finish_reason="tool_calls"),
        ):
            response = await provider.generate(
                LLMRequest(messages=[LLMMessage(role="user", content="Hi")])
            )

        assert response.finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_rate_limit_is_flagged(self, provider):
        error = openai.RateLimitError(
            "Rate limit exceeded",
            response=httpx.Response(429, request=_request()),
            body=None,
        )
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            side_effect=error,
        ):
            with pytest.raises(CompletionError) as exc_info:
                await provider.generate(
                    LLMRequest(messages=[LLMMessage(role="user", content="Hi")])
                )

        assert exc_info.value.rate_limited is True
        assert exc_info.value.stage == "completion_client"

    @pytest.mark.asyncio
    async def test_timeout_raises_completion_error(self, provider):
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            side_effect=openai.APITimeoutError(request=_request()),
        ):
            with pytest.raises(CompletionError, match="timed out") as exc_info:
                await provider.generate(
                    LLMRequest(messages=[LLMMessage(role="user", content="Hi")])
                )

        assert exc_info.value.rate_limited is False

    @pytest.mark.asyncio
    async def test_api_error_raises_completion_error(self, provider):
        error = openai.APIStatusError(
            "Bad gateway",
            response=httpx.Response(502, request=_request()),
            body=None,
        )
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            side_effect=error,
        ):
            with pytest.raises(CompletionError, match="API error"):
                await provider.generate(
                    LLMRequest(messages=[LLMMessage(role="user", content="Hi")])
                )

    @pytest.mark.asyncio
    async def test_no_choices_raises(self, provider):
        response = _completion("unused")
        response.choices = []
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=response,
        ):
            with pytest.raises(CompletionError, match="no choices"):
                await provider.generate(
                    LLMRequest(messages=[LLMMessage(role="user", content="Hi")])
                )


class TestComplete:
    """Test the prompt-level helper used by the pipeline."""

    @pytest.mark.asyncio
    async def test_complete_sends_system_then_user(self, provider):
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_completion("SELECT 1"),
        ) as mock_create:
            text = await provider.complete("question", system="be precise")

        assert text == "SELECT 1"
        assert mock_create.call_args.kwargs["messages"] == [
            {"role": "system", "content": "be precise"},
            {"role": "user", "content": "question"},
        ]

    @pytest.mark.asyncio
    async def test_empty_completion_raises(self, provider):
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_completion(None),
        ):
            with pytest.raises(CompletionError, match="empty completion"):
                await provider.complete("question")
