"""
LLM Request and Response Models

Provider-agnostic models for chat-completion calls.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class LLMMessage(BaseModel):
    """Single message in an LLM conversation."""

    role: Literal["system", "user", "assistant"] = Field(
        ...,
        description="Message role"
    )
    content: str = Field(
        ...,
        description="Message content",
        min_length=1
    )


class LLMRequest(BaseModel):
    """Request to an LLM provider."""

    messages: List[LLMMessage] = Field(
        ...,
        description="Conversation messages",
        min_length=1
    )
    temperature: Optional[float] = Field(
        None,
        ge=0.0,
        le=2.0,
        description="Sampling temperature (overrides default)"
    )
    max_tokens: Optional[int] = Field(
        None,
        gt=0,
        description="Maximum tokens to generate (overrides default)"
    )
    model: Optional[str] = Field(
        None,
        description="Specific model to use (overrides default)"
    )


class LLMUsage(BaseModel):
    """Token usage information."""

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class LLMResponse(BaseModel):
    """Response from an LLM provider."""

    content: str = Field(
        ...,
        description="Generated text content"
    )
    model: str = Field(
        ...,
        description="Model that generated the response"
    )
    usage: LLMUsage = Field(
        default_factory=LLMUsage,
        description="Token usage information"
    )
    finish_reason: Literal["stop", "length", "content_filter", "error"] = Field(
        default="stop",
        description="Reason the generation stopped"
    )
    provider: str = Field(
        ...,
        description="Provider that handled the request (openai, openrouter, local)"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional provider-specific response data"
    )
