"""
Base LLM Provider

Abstract base class for completion backends. The pipeline only ever calls
``complete``; providers implement ``generate`` for their specific API and
translate every transport failure into ``CompletionError``.
"""

import logging
from abc import ABC, abstractmethod

from data_agent.llm.models import LLMMessage, LLMRequest, LLMResponse
from data_agent.models.errors import CompletionError

logger = logging.getLogger(__name__)


class BaseLLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Attributes:
        provider_name: Unique identifier for this provider
        model: Default model identifier
        temperature: Default sampling temperature
        max_tokens: Default maximum tokens to generate
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        provider_name: str,
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 1000,
        timeout: int = 30,
    ):
        self.provider_name = provider_name
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

        logger.info(
            f"Initialized {provider_name} provider",
            extra={
                "provider": provider_name,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Raises:
            CompletionError: On API errors, rate limits (HTTP 429) or timeouts
        """
        pass  # pragma: no cover - abstract method

    async def complete(self, prompt: str, system: str | None = None) -> str:
        """
        Send a prompt and return the raw completion text.

        Args:
            prompt: User prompt
            system: Optional system prompt placed before the user prompt

        Raises:
            CompletionError: If the provider call fails
        """
        messages = []
        if system:
            messages.append(LLMMessage(role="system", content=system))
        messages.append(LLMMessage(role="user", content=prompt))

        response = await self.generate(LLMRequest(messages=messages))
        if not response.content.strip():
            raise CompletionError(
                f"{self.provider_name} returned an empty completion",
                context={"model": response.model, "finish_reason": response.finish_reason},
            )
        return response.content

    async def close(self) -> None:
        """Release HTTP resources held by the provider."""
        return None

    def _apply_defaults(self, request: LLMRequest) -> LLMRequest:
        if request.temperature is None:
            request.temperature = self.temperature
        if request.max_tokens is None:
            request.max_tokens = self.max_tokens
        return request

    def _log_request(self, request: LLMRequest) -> None:
        logger.debug(
            f"{self.provider_name} request",
            extra={
                "provider": self.provider_name,
                "message_count": len(request.messages),
                "temperature": request.temperature,
                "max_tokens": request.max_tokens,
            },
        )

    def _log_response(self, response: LLMResponse) -> None:
        logger.debug(
            f"{self.provider_name} response",
            extra={
                "provider": self.provider_name,
                "model": response.model,
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
                "finish_reason": response.finish_reason,
            },
        )
