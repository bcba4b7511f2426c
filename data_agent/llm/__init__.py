"""
LLM Provider Module

Completion backends used by the question pipeline.

Usage:
    from data_agent.config import get_settings
    from data_agent.llm import LLMProviderFactory

    provider = LLMProviderFactory.create_default_provider(get_settings().llm)
    text = await provider.complete("Return SELECT 1 as JSON")
"""

from data_agent.llm.base import BaseLLMProvider
from data_agent.llm.factory import LLMProviderFactory
from data_agent.llm.local import LocalProvider
from data_agent.llm.models import LLMMessage, LLMRequest, LLMResponse, LLMUsage
from data_agent.llm.openai import OpenAIProvider

__all__ = [
    "BaseLLMProvider",
    "LLMProviderFactory",
    "OpenAIProvider",
    "LocalProvider",
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMUsage",
]
