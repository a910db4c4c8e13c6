"""Chat completion through OpenRouter."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from openrouter_models.errors import ChatCompletionError
from openrouter_models.logging import get_logger
from openrouter_models.models.chat import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    ProviderRouting,
    TokenUsage,
)
from openrouter_models.registry_client import DEFAULT_BASE_URL, build_headers

if TYPE_CHECKING:
    from openrouter_models.settings import Settings

logger = get_logger(__name__)


def default_routing(settings: Settings) -> ProviderRouting:
    """Provider routing defaults configured in settings."""
    return ProviderRouting(
        quantizations=settings.provider_quantizations,
        ignore=settings.provider_ignore,
        sort=settings.provider_sort,
        order=settings.provider_order,
        require_parameters=settings.provider_require_parameters,
        data_collection=settings.provider_data_collection,
        allow_fallbacks=settings.provider_allow_fallbacks,
    )


def merge_routing(
    requested: ProviderRouting | None, defaults: ProviderRouting
) -> dict[str, Any]:
    """Merge per-request routing over defaults.

    A field set on the request wins over the default. Empty lists are
    dropped; booleans are kept whenever they are set, including False.
    """
    requested = requested or ProviderRouting()
    merged: dict[str, Any] = {}
    for field in ProviderRouting.model_fields:
        value = getattr(requested, field)
        if value is None:
            value = getattr(defaults, field)
        if value is None:
            continue
        if isinstance(value, list) and not value:
            continue
        merged[field] = value
    return merged


def build_payload(request: ChatCompletionRequest, settings: Settings) -> dict[str, Any]:
    """Build the /chat/completions request body.

    Raises:
        ChatCompletionError: If no model is given or configured, or there
            are no messages.
    """
    model = request.model or settings.default_model
    if not model:
        raise ChatCompletionError(
            "No model specified and no default model configured. "
            "Specify a model or set OPENROUTER_DEFAULT_MODEL."
        )
    if not request.messages:
        raise ChatCompletionError("Messages array cannot be empty. At least one message is required.")

    payload: dict[str, Any] = {
        "model": model,
        "messages": [m.model_dump(exclude_none=True) for m in request.messages],
        "temperature": request.temperature,
    }

    max_tokens = request.max_tokens if request.max_tokens is not None else settings.max_tokens
    if max_tokens is not None:
        payload["max_tokens"] = max_tokens

    routing = merge_routing(request.provider, default_routing(settings))
    if routing:
        payload["provider"] = routing

    return payload


class ChatClient:
    """Sends chat completions to OpenRouter using configured defaults."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.base_url = (settings.base_url or DEFAULT_BASE_URL).rstrip("/")
        self._headers = build_headers(settings.api_key, settings.http_referer, settings.app_title)
        self._http_client = http_client

    async def complete(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """Run a chat completion.

        Raises:
            ChatCompletionError: If the request is invalid or the API call fails.
        """
        payload = build_payload(request, self.settings)
        url = f"{self.base_url}/chat/completions"

        logger.info(
            "Sending chat completion",
            model=payload["model"],
            message_count=len(payload["messages"]),
            routing=bool(payload.get("provider")),
        )

        try:
            response = await self._post(url, payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ChatCompletionError(
                f"OpenRouter API error: HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise ChatCompletionError(f"OpenRouter API error: {e}") from e
        except ValueError as e:
            raise ChatCompletionError("OpenRouter API error: response is not JSON") from e

        return self._to_response(data, payload["model"])

    async def _post(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(url, json=payload, headers=self._headers)
        async with httpx.AsyncClient(timeout=self.settings.request_timeout) as client:
            return await client.post(url, json=payload, headers=self._headers)

    def _to_response(self, data: Any, model: str) -> ChatCompletionResponse:
        if not isinstance(data, dict):
            raise ChatCompletionError("OpenRouter API error: unexpected response body")
        if "error" in data and not data.get("choices"):
            error = data["error"] if isinstance(data["error"], dict) else {}
            raise ChatCompletionError(
                f"OpenRouter API error: {error.get('message', 'unknown error')}",
                status_code=error.get("code") if isinstance(error.get("code"), int) else None,
            )

        try:
            choices = []
            for raw_choice in data.get("choices") or []:
                message = raw_choice.get("message") or {}
                choices.append(
                    {
                        "finish_reason": raw_choice.get("finish_reason"),
                        "message": ChatMessage(
                            role=message.get("role", "assistant"),
                            content=message.get("content") or "",
                            tool_calls=message.get("tool_calls"),
                        ),
                    }
                )
            usage = TokenUsage.model_validate(data.get("usage") or {})
            return ChatCompletionResponse(
                id=data.get("id") or f"gen-{int(time.time() * 1000)}",
                created=data.get("created") or int(time.time()),
                model=data.get("model") or model,
                choices=choices,
                usage=usage,
            )
        except (AttributeError, ValidationError) as e:
            raise ChatCompletionError("OpenRouter API error: malformed completion") from e
