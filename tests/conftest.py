"""Shared fixtures for the AimCoach test suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from pydantic import BaseModel

from aimcoach.ai.llm_client import GenerativeModel
from aimcoach.core.constants import ActivitySourceName
from aimcoach.core.schemas import ActivityRecord
from aimcoach.infra.sources import (
    InMemoryActivitySource,
    InMemoryCheckpointStore,
    InMemoryPlaylistStore,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
USER = "player-1"


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")


# ---------------------------------------------------------------------------
# Model fake
# ---------------------------------------------------------------------------


class FakeModel(GenerativeModel):
    """
    GenerativeModel double.

    `responses` maps a schema class to a dict (validated into the schema) or
    a ready instance. Setting `error` makes every call raise it.
    """

    def __init__(self, reply: str = "Keep your crosshair at head level."):
        self.responses: dict[type[BaseModel], Any] = {}
        self.reply = reply
        self.error: Exception | None = None
        self.tool_calls: list[tuple[str, dict[str, Any]]] = []
        self.tool_results: list[str] = []
        self.complete_calls: list[dict[str, Any]] = []
        self.converse_calls: list[dict[str, Any]] = []

    async def complete(self, prompt, schema, *, system=None, tier=None):
        self.complete_calls.append(
            {"prompt": prompt, "schema": schema, "system": system, "tier": tier}
        )
        if self.error is not None:
            raise self.error
        response = self.responses[schema]
        return schema.model_validate(response) if isinstance(response, dict) else response

    async def converse(self, system, messages, tools=None, tool_handler=None, *, tier=None):
        self.converse_calls.append(
            {"system": system, "messages": list(messages), "tools": tools, "tier": tier}
        )
        if self.error is not None:
            raise self.error
        if tool_handler is not None:
            for name, tool_input in self.tool_calls:
                self.tool_results.append(await tool_handler(name, tool_input))
        return self.reply


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def clock():
    """Frozen clock returning NOW."""
    return lambda: NOW


@pytest.fixture()
def make_record():
    """Factory for ActivityRecords placed relative to NOW."""

    def _make(
        hours_ago: float = 1.0,
        scenario: str = "1wall 6targets",
        score: float = 100.0,
        accuracy: float = 0.7,
        source: ActivitySourceName = ActivitySourceName.KOVAAKS,
    ) -> ActivityRecord:
        return ActivityRecord(
            timestamp=NOW - timedelta(hours=hours_ago),
            scenario=scenario,
            score=score,
            accuracy=accuracy,
            source=source,
        )

    return _make


@pytest.fixture()
def fake_model():
    return FakeModel()


@pytest.fixture()
def activity():
    return InMemoryActivitySource()


@pytest.fixture()
def playlists():
    return InMemoryPlaylistStore()


@pytest.fixture()
def checkpoints():
    return InMemoryCheckpointStore()
