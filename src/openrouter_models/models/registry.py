"""Pydantic models for the OpenRouter model catalog."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from openrouter_models.errors import MalformedEntryError

# supported_parameters entries that imply structured JSON output
JSON_MODE_PARAMETERS = ("response_format", "structured_outputs")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class ModelPricing(BaseModel):
    """Pricing for a model, kept as the decimal strings upstream returns."""

    model_config = ConfigDict(frozen=True)

    prompt: str = "0"
    completion: str = "0"

    @field_validator("prompt", "completion", mode="before")
    @classmethod
    def _as_decimal_string(cls, value: Any) -> str:
        if value is None or value == "":
            return "0"
        return str(value)

    @property
    def prompt_price(self) -> float:
        return _to_float(self.prompt)

    @property
    def completion_price(self) -> float:
        return _to_float(self.completion)


class ModelCapabilities(BaseModel):
    """Capability flags. Anything upstream does not report is False."""

    model_config = ConfigDict(frozen=True)

    functions: bool = False
    tools: bool = False
    vision: bool = False
    json_mode: bool = False

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> ModelCapabilities:
        """Build capabilities from a raw catalog entry.

        An explicit ``capabilities`` object wins. Otherwise flags are derived
        from ``supported_parameters`` and the architecture modality.
        """
        explicit = raw.get("capabilities")
        if isinstance(explicit, dict):
            return cls(
                functions=bool(explicit.get("functions")),
                tools=bool(explicit.get("tools")),
                vision=bool(explicit.get("vision")),
                json_mode=bool(explicit.get("json_mode")),
            )

        supported_params = raw.get("supported_parameters", []) or []
        has_tools = "tools" in supported_params

        architecture = raw.get("architecture")
        if not isinstance(architecture, dict):
            architecture = {}
        modality = str(architecture.get("modality") or "")
        input_modalities = architecture.get("input_modalities", []) or []

        return cls(
            functions=has_tools or "functions" in supported_params,
            tools=has_tools,
            vision="image" in modality.lower() or "image" in input_modalities,
            json_mode=any(p in supported_params for p in JSON_MODE_PARAMETERS),
        )


class ModelDescriptor(BaseModel):
    """One entry of the catalog."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)  # e.g. "anthropic/claude-sonnet-4"
    name: str
    description: str | None = None
    context_length: int = 0
    pricing: ModelPricing = Field(default_factory=ModelPricing)
    capabilities: ModelCapabilities = Field(default_factory=ModelCapabilities)

    @property
    def provider(self) -> str:
        """Provider prefix of the id (text before the first '/')."""
        return self.id.split("/", 1)[0]

    @classmethod
    def from_api(cls, raw: Any) -> ModelDescriptor:
        """Parse a raw catalog entry.

        Raises:
            MalformedEntryError: If the entry is not an object or has no id.
        """
        if not isinstance(raw, dict):
            raise MalformedEntryError(f"entry is not an object: {type(raw).__name__}")

        model_id = raw.get("id")
        if not isinstance(model_id, str) or not model_id:
            raise MalformedEntryError("entry has no id")

        pricing_data = raw.get("pricing")
        if not isinstance(pricing_data, dict):
            pricing_data = {}
        try:
            context_length = int(raw.get("context_length") or 0)
        except (TypeError, ValueError) as e:
            raise MalformedEntryError(f"{model_id}: invalid context_length") from e

        try:
            return cls(
                id=model_id,
                name=raw.get("name") or model_id,
                description=raw.get("description") or None,
                context_length=context_length,
                pricing=ModelPricing(
                    prompt=pricing_data.get("prompt"),
                    completion=pricing_data.get("completion"),
                ),
                capabilities=ModelCapabilities.from_api(raw),
            )
        except ValidationError as e:
            raise MalformedEntryError(f"{model_id}: {e.error_count()} invalid fields") from e


class CatalogSnapshot(BaseModel):
    """The catalog as returned by one fetch, in upstream order."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[ModelDescriptor, ...] = ()
    fetched_at: datetime = Field(default_factory=utcnow)

    def get(self, model_id: str) -> ModelDescriptor | None:
        """Find an entry by exact id."""
        for entry in self.entries:
            if entry.id == model_id:
                return entry
        return None

    @property
    def providers(self) -> list[str]:
        """Unique sorted provider prefixes."""
        return sorted({entry.provider for entry in self.entries})

    def __len__(self) -> int:
        return len(self.entries)


class RateLimitState(BaseModel):
    """Rate-limit knowledge from the most recent upstream response."""

    remaining: int | None = None  # None means unknown
    reset_at: datetime | None = None

    def wait_seconds(self, now: datetime) -> float:
        """Seconds to hold off before the next request, 0 when unconstrained."""
        if self.remaining is None or self.remaining > 0 or self.reset_at is None:
            return 0.0
        return max(0.0, (self.reset_at - now).total_seconds())


def _to_float(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        return 0.0
