"""Application settings using pydantic-settings."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

CommaList = Annotated[list[str] | None, NoDecode]


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    Every field can be overridden with an OPENROUTER_ prefixed variable,
    e.g. OPENROUTER_API_KEY or OPENROUTER_CACHE_TTL. List fields accept
    comma-separated values.
    """

    model_config = SettingsConfigDict(
        env_prefix="OPENROUTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Upstream registry
    api_key: SecretStr | None = None
    base_url: str = "https://openrouter.ai/api/v1"
    http_referer: str = "https://github.com/openrouter-models/openrouter-models"
    app_title: str = "OpenRouter Models"
    request_timeout: float = 30.0

    # Cache freshness (seconds)
    cache_ttl: float = Field(default=3600.0, gt=0)

    # Retry policy
    backoff_base_delay: float = Field(default=1.0, ge=0)
    backoff_max_delay: float = Field(default=30.0, ge=0)
    max_attempts: int = Field(default=5, ge=1)
    max_retry_after: float = 300.0  # Longer reset signals fail fast

    # Chat completion defaults
    default_model: str | None = None
    max_tokens: int | None = None
    provider_quantizations: CommaList = None
    provider_ignore: CommaList = None
    provider_sort: Literal["price", "throughput", "latency"] | None = None
    provider_order: CommaList = None
    provider_require_parameters: bool | None = None
    provider_data_collection: Literal["allow", "deny"] | None = None
    provider_allow_fallbacks: bool | None = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator(
        "provider_quantizations", "provider_ignore", "provider_order", mode="before"
    )
    @classmethod
    def _split_comma_list(cls, value: object) -> object:
        """Split comma-separated strings, dropping blanks."""
        if isinstance(value, str):
            items = [item.strip() for item in value.split(",")]
            return [item for item in items if item] or None
        return value

    @property
    def has_api_key(self) -> bool:
        """Check if an API key is configured."""
        return self.api_key is not None and bool(self.api_key.get_secret_value())


# Global settings instance
settings = Settings()
