"""Shared test fixtures for openrouter-models."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import httpx
import pytest

if TYPE_CHECKING:
    from openrouter_models.models.registry import CatalogSnapshot
    from openrouter_models.registry_client import RegistryClient
    from openrouter_models.settings import Settings

START = datetime(2026, 1, 1, tzinfo=UTC)

Handler = Callable[[httpx.Request], httpx.Response]


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingSleep:
    """Sleep replacement that records delays and advances the clock."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.clock.advance(delay)
        await asyncio.sleep(0)


class FakeRegistryClient:
    """Stands in for RegistryClient in cache tests."""

    def __init__(self, snapshot: CatalogSnapshot, delay: float = 0.0) -> None:
        self.snapshot = snapshot
        self.delay = delay
        self.calls = 0
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def fetch_models(self) -> CatalogSnapshot:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.snapshot


def raw_model(model_id: str, **overrides: Any) -> dict[str, Any]:
    """A catalog entry shaped like the OpenRouter /models response."""
    raw: dict[str, Any] = {
        "id": model_id,
        "name": model_id.split("/")[-1].replace("-", " ").title(),
        "description": f"The {model_id} model",
        "context_length": 128000,
        "pricing": {"prompt": "0.000003", "completion": "0.000015"},
        "supported_parameters": ["tools", "temperature", "response_format"],
        "architecture": {"modality": "text+image->text"},
    }
    raw.update(overrides)
    return raw


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def catalog_payload() -> dict[str, Any]:
    """A small /models response body."""
    return {
        "data": [
            raw_model("anthropic/claude-sonnet-4"),
            raw_model("openai/gpt-4o", context_length=64000),
            raw_model(
                "meta-llama/llama-3-70b-instruct",
                pricing={"prompt": "0.0000005", "completion": "0.0000008"},
                supported_parameters=["temperature"],
                architecture={"modality": "text->text"},
            ),
        ]
    }


@pytest.fixture
def snapshot(catalog_payload: dict[str, Any], clock: FakeClock) -> CatalogSnapshot:
    from openrouter_models.models.registry import CatalogSnapshot, ModelDescriptor

    return CatalogSnapshot(
        entries=[ModelDescriptor.from_api(raw) for raw in catalog_payload["data"]],
        fetched_at=clock(),
    )


@pytest.fixture
def make_client(
    clock: FakeClock, recording_sleep: RecordingSleep
) -> Callable[..., RegistryClient]:
    """Build a RegistryClient whose HTTP traffic goes to ``handler``."""
    from openrouter_models.registry_client import RegistryClient

    def factory(handler: Handler, **kwargs: Any) -> RegistryClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        kwargs.setdefault("api_key", "sk-or-test")
        return RegistryClient(
            http_client=http_client,
            sleep=recording_sleep,
            clock=clock,
            **kwargs,
        )

    return factory


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment."""
    from openrouter_models.settings import Settings

    class TestSettings(Settings):
        model_config = {"env_prefix": "TEST_OPENROUTER_", "extra": "ignore"}

    return TestSettings(
        _env_file=None,
        api_key="sk-or-test",
        base_url="https://openrouter.test/api/v1",
        default_model="anthropic/claude-sonnet-4",
    )
