"""Shared fixtures for orchestration tests."""

import pytest

from core.infrastructure.adapters.persistence.in_memory_site_state import InMemorySiteStateStore
from core.infrastructure.adapters.persistence.in_memory_status_repository import (
    InMemoryStatusRepository,
)
from orchestration.broker import InMemoryJobBroker
from orchestration.resolver import DependencyResolver
from orchestration.workflow import RetryPolicy

USER_TOKEN = "user-123"
SITE_URL = "https://example.com"


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeEventBus:
    """Fake EventBus for testing."""

    def __init__(self) -> None:
        self.events: list[object] = []

    async def publish(self, event: object) -> None:
        self.events.append(event)

    def subscribe(self, event_name: str, handler: object) -> None:
        pass

    @property
    def names(self) -> list[str]:
        return [event.name for event in self.events]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def status_repository() -> InMemoryStatusRepository:
    return InMemoryStatusRepository()


@pytest.fixture
def site_state() -> InMemorySiteStateStore:
    return InMemorySiteStateStore()


@pytest.fixture
def managed_site(site_state) -> InMemorySiteStateStore:
    """Site that is managed and has Search Console connected."""
    site_state.add_website(USER_TOKEN, "example.com")
    site_state.add_connection(USER_TOKEN, SITE_URL, "google_search_console")
    return site_state


@pytest.fixture
def resolver(site_state) -> DependencyResolver:
    return DependencyResolver(site_state, site_state, site_state)


@pytest.fixture
def broker(clock) -> InMemoryJobBroker:
    return InMemoryJobBroker(retry_policy=RetryPolicy(max_attempts=3, backoff_seconds=0.0), clock=clock)


@pytest.fixture
def event_bus() -> FakeEventBus:
    return FakeEventBus()
