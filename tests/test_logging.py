"""Tests for logging helpers."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog

from openrouter_models.logging import bind_context, clear_context, get_logger


@pytest.fixture(autouse=True)
def empty_context() -> Iterator[None]:
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


class TestLogContext:
    def test_bind_adds_to_context(self) -> None:
        bind_context(command="list", model_id="openai/gpt-4o")
        assert structlog.contextvars.get_contextvars() == {
            "command": "list",
            "model_id": "openai/gpt-4o",
        }

    def test_clear_removes_everything(self) -> None:
        bind_context(command="list")
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_bound_values_are_merged_into_events(self) -> None:
        bind_context(command="show")
        event = structlog.contextvars.merge_contextvars(
            get_logger("test"), "info", {"event": "Looking up model"}
        )
        assert event == {"command": "show", "event": "Looking up model"}
