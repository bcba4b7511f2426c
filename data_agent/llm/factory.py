"""
LLM Provider Factory

Creates the completion backend selected by LLMSettings.
"""

import logging

from data_agent.config import LLMSettings
from data_agent.llm.base import BaseLLMProvider
from data_agent.llm.local import LocalProvider
from data_agent.llm.openai import OpenAIProvider

logger = logging.getLogger(__name__)


class LLMProviderFactory:
    """Factory for creating LLM provider instances."""

    PROVIDERS = {
        "openai": OpenAIProvider,
        "openrouter": OpenAIProvider,
        "local": LocalProvider,
    }

    @staticmethod
    def create_provider(provider_type: str, config: LLMSettings) -> BaseLLMProvider:
        """
        Create an LLM provider instance.

        Raises:
            ValueError: If provider type is unknown
        """
        if provider_type not in LLMProviderFactory.PROVIDERS:
            raise ValueError(
                f"Unknown provider type: {provider_type}. "
                f"Available providers: {list(LLMProviderFactory.PROVIDERS.keys())}"
            )

        logger.info(
            f"Creating {provider_type} provider",
            extra={"provider": provider_type, "model": config.model},
        )

        if provider_type == "local":
            return LocalProvider(
                base_url=config.resolved_base_url,
                model=config.model,
                api_key=config.api_key,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                timeout=config.timeout,
            )

        return OpenAIProvider(
            api_key=config.api_key,
            model=config.model,
            base_url=config.resolved_base_url,
            provider_name=provider_type,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )

    @staticmethod
    def create_default_provider(config: LLMSettings) -> BaseLLMProvider:
        """Create the provider named by ``config.provider``."""
        return LLMProviderFactory.create_provider(config.provider, config)
