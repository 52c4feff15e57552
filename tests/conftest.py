"""Shared test fixtures for HomeFlow."""

from __future__ import annotations

from pathlib import Path

import pytest

from homeflow.config import Config
from homeflow.core.planner import ProjectPlanner
from homeflow.core.templates import TemplateLibrary, load_default_templates
from homeflow.events.bus import EventBus
from homeflow.storage.sqlite_store import SQLiteStore


@pytest.fixture
def tmp_db(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
async def store(tmp_db: Path) -> SQLiteStore:
    s = SQLiteStore(tmp_db)
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(workspace_path=tmp_path)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def templates() -> TemplateLibrary:
    return load_default_templates()


@pytest.fixture
def planner(store: SQLiteStore, event_bus: EventBus, templates: TemplateLibrary) -> ProjectPlanner:
    return ProjectPlanner(store, event_bus, templates)


@pytest.fixture
def captured(event_bus: EventBus) -> list[dict]:
    """Every event emitted on the bus, in order."""
    events: list[dict] = []

    async def capture(event_type, data):
        events.append({"type": event_type, "data": data})

    event_bus.on_all(capture)
    return events
