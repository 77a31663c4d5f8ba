"""Shared fixtures for bandcalendar tests."""

import datetime
from typing import Any

import pytest

from bandcalendar.core.config_manager import EngineSettings
from bandcalendar.domain.event_cache import EventCache
from bandcalendar.domain.scheduler import EventScheduler
from bandcalendar.store.memory import InMemoryStore
from tests.factories import ANCHOR


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "fast: Tests that run in well under a second")
    config.addinivalue_line("markers", "critical_path: Core functionality tests")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(fake_clock: FakeClock) -> EventCache:
    return EventCache(ttl_seconds=300, clock=fake_clock)


@pytest.fixture
def settings(tmp_path: Any) -> EngineSettings:
    return EngineSettings(database_path=tmp_path / "test.db")


@pytest.fixture
def scheduler(store: InMemoryStore, settings: EngineSettings, cache: EventCache) -> EventScheduler:
    return EventScheduler(store, settings, cache=cache)


@pytest.fixture
def fixed_today(monkeypatch: pytest.MonkeyPatch) -> datetime.date:
    """Pin clock.today() to the anchor date."""
    monkeypatch.setenv("BANDCAL_TEST_DATE", ANCHOR.isoformat())
    return ANCHOR
