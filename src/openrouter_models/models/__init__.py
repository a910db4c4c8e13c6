"""Pydantic models for the model catalog, search and chat completion."""

from openrouter_models.models.chat import (
    ChatChoice,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    ProviderRouting,
    TokenUsage,
)
from openrouter_models.models.registry import (
    CatalogSnapshot,
    ModelCapabilities,
    ModelDescriptor,
    ModelPricing,
    RateLimitState,
)
from openrouter_models.models.search import CapabilityFilter, SearchFilters, SearchResult

__all__ = [
    # Catalog models
    "CatalogSnapshot",
    "ModelCapabilities",
    "ModelDescriptor",
    "ModelPricing",
    "RateLimitState",
    # Search models
    "CapabilityFilter",
    "SearchFilters",
    "SearchResult",
    # Chat models
    "ChatChoice",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatMessage",
    "ProviderRouting",
    "TokenUsage",
]
