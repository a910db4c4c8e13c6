"""OpenRouter model registry client and shared model cache."""

from openrouter_models.chat import ChatClient
from openrouter_models.errors import (
    ChatCompletionError,
    ExhaustedRetriesError,
    FetchError,
    MalformedEntryError,
    RateLimitedError,
    RefreshAbandonedError,
    TransportError,
    UpstreamServerError,
)
from openrouter_models.model_cache import ModelCache, get_model_cache
from openrouter_models.registry_client import RegistryClient
from openrouter_models.search import ModelSearch

__version__ = "0.1.0"

__all__ = [
    "ChatClient",
    "ChatCompletionError",
    "ExhaustedRetriesError",
    "FetchError",
    "MalformedEntryError",
    "ModelCache",
    "ModelSearch",
    "RateLimitedError",
    "RefreshAbandonedError",
    "RegistryClient",
    "TransportError",
    "UpstreamServerError",
    "get_model_cache",
]
