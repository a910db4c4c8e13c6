"""Pydantic models for chat completion requests and responses."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class ProviderRouting(BaseModel):
    """OpenRouter provider routing preferences."""

    quantizations: list[str] | None = None  # Quality filtering, e.g. ["fp8"]
    ignore: list[str] | None = None  # Providers to skip
    sort: Literal["price", "throughput", "latency"] | None = None
    order: list[str] | None = None  # Prioritized provider ids
    require_parameters: bool | None = None
    data_collection: Literal["allow", "deny"] | None = None
    allow_fallbacks: bool | None = None


class ChatMessage(BaseModel):
    """A single message sent to or returned by the model."""

    role: str
    content: str | list[dict[str, Any]] | None = None
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[dict[str, Any]] | None = None


class ChatCompletionRequest(BaseModel):
    """Chat completion arguments as supplied by a caller."""

    model: str | None = None
    messages: list[ChatMessage] = Field(default_factory=list)
    temperature: float = 1.0
    max_tokens: int | None = None
    provider: ProviderRouting | None = None


class TokenUsage(BaseModel):
    """Token usage reported upstream."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatChoice(BaseModel):
    finish_reason: str | None = None
    message: ChatMessage


class ChatCompletionResponse(BaseModel):
    """Normalized chat completion result."""

    id: str
    object: str = "chat.completion"
    created: int
    model: str
    choices: list[ChatChoice] = Field(default_factory=list)
    usage: TokenUsage = Field(default_factory=TokenUsage)

    @property
    def content(self) -> str:
        """Text of the first choice, empty when there is none."""
        if not self.choices:
            return ""
        content = self.choices[0].message.content
        return content if isinstance(content, str) else ""
