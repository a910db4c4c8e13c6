"""Tests for catalog search."""

from __future__ import annotations

import pytest

from openrouter_models.errors import ExhaustedRetriesError, FetchError, UpstreamServerError
from openrouter_models.model_cache import ModelCache
from openrouter_models.models.registry import CatalogSnapshot, ModelDescriptor
from openrouter_models.models.search import CapabilityFilter, SearchFilters
from openrouter_models.search import ModelSearch, filter_models

from .conftest import FakeClock, FakeRegistryClient, raw_model


def ids(models: list[ModelDescriptor]) -> list[str]:
    return [m.id for m in models]


class TestFilterModels:
    """Tests for the filter predicates."""

    def test_no_filters_returns_catalog_up_to_limit(self, snapshot: CatalogSnapshot) -> None:
        assert ids(filter_models(snapshot.entries, SearchFilters())) == ids(list(snapshot.entries))

    def test_query_matches_id_name_and_description(self, snapshot: CatalogSnapshot) -> None:
        assert ids(filter_models(snapshot.entries, SearchFilters(query="GPT"))) == ["openai/gpt-4o"]
        assert ids(filter_models(snapshot.entries, SearchFilters(query="llama 3 70b"))) == [
            "meta-llama/llama-3-70b-instruct"
        ]
        assert ids(filter_models(snapshot.entries, SearchFilters(query="the anthropic/"))) == [
            "anthropic/claude-sonnet-4"
        ]

    def test_provider_is_case_normalized(self, snapshot: CatalogSnapshot) -> None:
        result = filter_models(snapshot.entries, SearchFilters(provider="Anthropic"))
        assert ids(result) == ["anthropic/claude-sonnet-4"]

    def test_provider_matches_prefix_only(self) -> None:
        entries = [ModelDescriptor.from_api(raw_model("openai-compat/gpt-4o"))]
        assert filter_models(entries, SearchFilters(provider="openai")) == []

    def test_context_bounds_are_inclusive(self, snapshot: CatalogSnapshot) -> None:
        result = filter_models(
            snapshot.entries,
            SearchFilters(min_context_length=64000, max_context_length=64000),
        )
        assert ids(result) == ["openai/gpt-4o"]

    def test_price_ceilings(self, snapshot: CatalogSnapshot) -> None:
        result = filter_models(
            snapshot.entries,
            SearchFilters(max_prompt_price=0.000001, max_completion_price=0.000001),
        )
        assert ids(result) == ["meta-llama/llama-3-70b-instruct"]

    def test_required_capabilities(self, snapshot: CatalogSnapshot) -> None:
        result = filter_models(
            snapshot.entries,
            SearchFilters(capabilities=CapabilityFilter(tools=True, vision=True)),
        )
        assert ids(result) == ["anthropic/claude-sonnet-4", "openai/gpt-4o"]

    def test_false_capability_is_no_constraint(self, snapshot: CatalogSnapshot) -> None:
        result = filter_models(
            snapshot.entries, SearchFilters(capabilities=CapabilityFilter(tools=False))
        )
        assert len(result) == 3

    def test_limit_keeps_catalog_order(self, snapshot: CatalogSnapshot) -> None:
        result = filter_models(snapshot.entries, SearchFilters(limit=2))
        assert ids(result) == ["anthropic/claude-sonnet-4", "openai/gpt-4o"]

    def test_limit_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            SearchFilters(limit=0)


class TestModelSearch:
    """Tests for searching through the cache."""

    async def test_cold_cache_fetches_and_installs(
        self, snapshot: CatalogSnapshot, clock: FakeClock
    ) -> None:
        client = FakeRegistryClient(snapshot)
        cache = ModelCache(client, clock=clock)  # type: ignore[arg-type]

        result = await ModelSearch(cache).search(SearchFilters(provider="openai"))

        assert ids(result.models) == ["openai/gpt-4o"]
        assert result.total_models == 3
        assert result.filtered_count == 1
        assert client.calls == 1
        assert cache.get_cached_models() is snapshot

    async def test_warm_cache_is_used(self, snapshot: CatalogSnapshot, clock: FakeClock) -> None:
        client = FakeRegistryClient(snapshot)
        cache = ModelCache(client, clock=clock)  # type: ignore[arg-type]
        cache.set_cached_models(snapshot)

        result = await ModelSearch(cache).search(SearchFilters(query="claude"))

        assert ids(result.models) == ["anthropic/claude-sonnet-4"]
        assert client.calls == 0

    async def test_fetch_failure_is_raised(
        self, snapshot: CatalogSnapshot, clock: FakeClock
    ) -> None:
        client = FakeRegistryClient(snapshot)
        client.error = ExhaustedRetriesError(5, UpstreamServerError("HTTP error: 503"))
        cache = ModelCache(client, clock=clock)  # type: ignore[arg-type]

        with pytest.raises(FetchError):
            await ModelSearch(cache).search(SearchFilters())

        assert cache.get_cached_models() is None
