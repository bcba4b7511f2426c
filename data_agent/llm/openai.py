"""
OpenAI-compatible LLM Provider

BaseLLMProvider implementation on the official openai SDK. Serves both the
OpenAI API and OpenRouter, which exposes the same chat-completions contract
under a different base URL.
"""

import logging

import openai
from openai import AsyncOpenAI

from data_agent.llm.base import BaseLLMProvider
from data_agent.llm.models import LLMRequest, LLMResponse, LLMUsage
from data_agent.models.errors import CompletionError

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """
    Chat-completions provider for OpenAI and OpenRouter.

    Rate limits, timeouts and API errors surface as ``CompletionError`` so the
    pipeline can fall back instead of failing the request.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        provider_name: str = "openai",
        temperature: float = 0.0,
        max_tokens: int = 1000,
        timeout: int = 30,
    ):
        """
        Initialize provider.

        Args:
            api_key: API key (OpenAI or OpenRouter)
            model: Default model to use
            base_url: Alternative endpoint, e.g. https://openrouter.ai/api/v1
            provider_name: Name reported in logs and responses
            temperature: Default temperature
            max_tokens: Default max tokens
            timeout: Request timeout
        """
        super().__init__(
            provider_name=provider_name,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        self.base_url = base_url
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=float(timeout),
            max_retries=0,
        )

        logger.info(
            f"{provider_name} provider initialized with model: {model}",
            extra={"model": model, "base_url": base_url},
        )

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate completion via the chat-completions endpoint.

        Raises:
            CompletionError: On rate limit, timeout, or any API error
        """
        request = self._apply_defaults(request)
        self._log_request(request)

        messages = [{"role": msg.role, "content": msg.content} for msg in request.messages]

        try:
            response = await self.client.chat.completions.create(
                model=request.model or self.model,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )
        except openai.RateLimitError as e:
            logger.warning(f"{self.provider_name} rate limit hit: {e}")
            raise CompletionError(
                f"{self.provider_name} rate limit exceeded",
                rate_limited=True,
                context={"model": request.model or self.model},
            ) from e
        except openai.APITimeoutError as e:
            logger.error(f"{self.provider_name} API timeout: {e}")
            raise CompletionError(
                f"{self.provider_name} request timed out after {self.timeout}s",
                context={"model": request.model or self.model},
            ) from e
        except openai.APIError as e:
            logger.error(f"{self.provider_name} API error: {e}")
            raise CompletionError(
                f"{self.provider_name} API error: {e}",
                context={"model": request.model or self.model},
            ) from e

        if not response.choices:
            raise CompletionError(
                f"{self.provider_name} returned no choices",
                context={"model": request.model or self.model},
            )

        choice = response.choices[0]
        usage = response.usage
        llm_response = LLMResponse(
            content=choice.message.content or "",
            model=response.model or request.model or self.model,
            usage=LLMUsage(
                prompt_tokens=usage.prompt_tokens if usage else 0,
                completion_tokens=usage.completion_tokens if usage else 0,
                total_tokens=usage.total_tokens if usage else 0,
            ),
            finish_reason=self._map_finish_reason(choice.finish_reason),
            provider=self.provider_name,
            metadata={"id": response.id},
        )

        self._log_response(llm_response)
        return llm_response

    async def close(self) -> None:
        await self.client.close()

    def _map_finish_reason(self, reason: str | None) -> str:
        if reason in ("stop", "length", "content_filter"):
            return reason
        return "stop"
