"""
Local LLM Provider

BaseLLMProvider implementation for local model servers (Ollama, vLLM,
llama.cpp) that expose an OpenAI-compatible /v1/chat/completions endpoint.
"""

import logging

import httpx

from data_agent.llm.base import BaseLLMProvider
from data_agent.llm.models import LLMRequest, LLMResponse, LLMUsage
from data_agent.models.errors import CompletionError

logger = logging.getLogger(__name__)


class LocalProvider(BaseLLMProvider):
    """Local LLM provider speaking the OpenAI-compatible HTTP contract."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.1:8b",
        api_key: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 1000,
        timeout: int = 30,
    ):
        super().__init__(
            provider_name="local",
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        self.base_url = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.client = httpx.AsyncClient(timeout=float(timeout), headers=headers)

        logger.info(
            f"Local provider initialized: {base_url} with model: {model}",
            extra={"base_url": base_url, "model": model},
        )

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate completion using the local server.

        Raises:
            CompletionError: On HTTP 429, other HTTP errors, or timeouts
        """
        request = self._apply_defaults(request)
        self._log_request(request)

        payload = {
            "model": request.model or self.model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }

        try:
            response = await self.client.post(
                f"{self.base_url}/v1/chat/completions",
                json=payload,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Local model request timed out: {e}")
            raise CompletionError(
                f"Local model request timed out after {self.timeout}s"
            ) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(f"Local model returned HTTP {status}")
            raise CompletionError(
                f"Local model returned HTTP {status}",
                rate_limited=status == 429,
                context={"status_code": status},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Local model request failed: {e}")
            raise CompletionError(f"Local model request failed: {e}") from e

        choices = data.get("choices") or [{}]
        usage = data.get("usage") or {}
        llm_response = LLMResponse(
            content=choices[0].get("message", {}).get("content") or "",
            model=data.get("model", self.model),
            usage=LLMUsage(
                prompt_tokens=usage.get("prompt_tokens", 0),
                completion_tokens=usage.get("completion_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            ),
            provider="local",
            metadata={"base_url": self.base_url},
        )

        self._log_response(llm_response)
        return llm_response

    async def close(self) -> None:
        await self.client.aclose()
