"""Tests for LLMProviderFactory."""

import pytest

from data_agent.config import LLMSettings
from data_agent.llm.factory import LLMProviderFactory
from data_agent.llm.local import LocalProvider
from data_agent.llm.openai import OpenAIProvider


class TestLLMProviderFactory:
    def test_default_provider_is_openrouter(self):
        provider = LLMProviderFactory.create_default_provider(LLMSettings())

        assert isinstance(provider, OpenAIProvider)
        assert provider.provider_name == "openrouter"
        assert provider.base_url == "https://openrouter.ai/api/v1"
        assert provider.model == "tngtech/deepseek-r1t-chimera:free"

    def test_openai_provider_has_no_base_url(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "openai")
        monkeypatch.setenv("LLM_MODEL", "gpt-4o-mini")

        provider = LLMProviderFactory.create_default_provider(LLMSettings())

        assert isinstance(provider, OpenAIProvider)
        assert provider.provider_name == "openai"
        assert provider.base_url is None

    def test_local_provider(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "local")
        monkeypatch.setenv("LLM_API_KEY", "")

        provider = LLMProviderFactory.create_default_provider(LLMSettings())

        assert isinstance(provider, LocalProvider)
        assert provider.base_url == "http://localhost:11434"

    def test_settings_passed_through(self, monkeypatch):
        monkeypatch.setenv("LLM_TEMPERATURE", "0.3")
        monkeypatch.setenv("LLM_MAX_TOKENS", "512")
        monkeypatch.setenv("LLM_TIMEOUT", "12")

        provider = LLMProviderFactory.create_default_provider(LLMSettings())

        assert provider.temperature == 0.3
        assert provider.max_tokens == 512
        assert provider.timeout == 12

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider type"):
            LLMProviderFactory.create_provider("anthropic", LLMSettings())
