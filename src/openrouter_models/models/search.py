"""Pydantic models for catalog search."""

from __future__ import annotations

from pydantic import BaseModel, Field

from openrouter_models.models.registry import ModelDescriptor


class CapabilityFilter(BaseModel):
    """Capabilities a model must have. Unset or False means no constraint."""

    functions: bool = False
    tools: bool = False
    vision: bool = False
    json_mode: bool = False

    def required(self) -> list[str]:
        return [name for name, wanted in self.model_dump().items() if wanted]


class SearchFilters(BaseModel):
    """Filters applied to the catalog, all optional."""

    query: str | None = None  # Substring of id, name or description
    provider: str | None = None  # Provider prefix, e.g. "anthropic"
    min_context_length: int | None = None
    max_context_length: int | None = None
    max_prompt_price: float | None = None
    max_completion_price: float | None = None
    capabilities: CapabilityFilter | None = None
    limit: int = Field(default=10, ge=1)


class SearchResult(BaseModel):
    """Models matching a search, with catalog totals."""

    models: list[ModelDescriptor] = Field(default_factory=list)
    total_models: int = 0
    filtered_count: int = 0
    filters: SearchFilters = Field(default_factory=SearchFilters)
