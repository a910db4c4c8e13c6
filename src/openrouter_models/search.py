"""Catalog search on top of the model cache."""

from __future__ import annotations

from collections.abc import Iterable

from openrouter_models.errors import FetchError
from openrouter_models.logging import get_logger
from openrouter_models.model_cache import ModelCache
from openrouter_models.models.registry import ModelDescriptor
from openrouter_models.models.search import SearchFilters, SearchResult

logger = get_logger(__name__)


def matches(model: ModelDescriptor, filters: SearchFilters) -> bool:
    """Check a single model against every filter."""
    if filters.query:
        term = filters.query.lower()
        haystacks = (model.id, model.name, model.description or "")
        if not any(term in text.lower() for text in haystacks):
            return False

    if filters.provider and model.provider.lower() != filters.provider.lower():
        return False

    if filters.min_context_length is not None and model.context_length < filters.min_context_length:
        return False
    if filters.max_context_length is not None and model.context_length > filters.max_context_length:
        return False

    if filters.max_prompt_price is not None and model.pricing.prompt_price > filters.max_prompt_price:
        return False
    if (
        filters.max_completion_price is not None
        and model.pricing.completion_price > filters.max_completion_price
    ):
        return False

    if filters.capabilities is not None:
        for capability in filters.capabilities.required():
            if not getattr(model.capabilities, capability):
                return False

    return True


def filter_models(
    models: Iterable[ModelDescriptor], filters: SearchFilters
) -> list[ModelDescriptor]:
    """Apply filters, keeping catalog order, and truncate to the limit."""
    result: list[ModelDescriptor] = []
    for model in models:
        if matches(model, filters):
            result.append(model)
            if len(result) >= filters.limit:
                break
    return result


class ModelSearch:
    """Searches the cached catalog, fetching it on a cache miss."""

    def __init__(self, cache: ModelCache) -> None:
        self.cache = cache

    async def search(self, filters: SearchFilters) -> SearchResult:
        """Search the catalog.

        Raises:
            FetchError: If the cache is cold and the catalog fetch fails.
        """
        snapshot = self.cache.get_cached_models()
        if snapshot is None:
            logger.debug("Catalog not cached, fetching for search")
            try:
                snapshot = await self.cache.client.fetch_models()
            except FetchError as e:
                logger.warning("Failed to fetch models for search", reason=e.reason)
                raise
            self.cache.set_cached_models(snapshot)

        models = filter_models(snapshot.entries, filters)
        logger.debug(
            "Searched models",
            total=len(snapshot.entries),
            matched=len(models),
        )
        return SearchResult(
            models=models,
            total_models=len(snapshot.entries),
            filtered_count=len(models),
            filters=filters,
        )
