"""Pytest configuration and fixtures for integration tests."""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from api.dependencies import get_orchestrator
from api.main import app
from core.infrastructure.adapters.persistence.in_memory_site_state import InMemorySiteStateStore
from core.infrastructure.adapters.persistence.in_memory_status_repository import (
    InMemoryStatusRepository,
)
from core.infrastructure.database.config import create_session_factory
from core.infrastructure.database.models import Base
from orchestration import DependencyResolver, InMemoryJobBroker, WorkflowOrchestrator


# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session_factory(test_engine):
    """Session factory configured the same way as production."""
    yield create_session_factory(test_engine)


@pytest_asyncio.fixture
async def test_session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def api_site_state() -> InMemorySiteStateStore:
    site_state = InMemorySiteStateStore()
    site_state.add_website("user-123", "example.com")
    site_state.add_connection("user-123", "https://example.com", "google_search_console")
    return site_state


@pytest.fixture
def api_status_repository() -> InMemoryStatusRepository:
    return InMemoryStatusRepository()


@pytest.fixture
def api_orchestrator(api_status_repository, api_site_state) -> WorkflowOrchestrator:
    return WorkflowOrchestrator(
        status_repository=api_status_repository,
        resolver=DependencyResolver(api_site_state, api_site_state, api_site_state),
        broker=InMemoryJobBroker(),
    )


@pytest.fixture
def test_client(api_orchestrator) -> TestClient:
    """Create FastAPI test client backed by in-memory stores."""
    app.dependency_overrides[get_orchestrator] = lambda: api_orchestrator

    client = TestClient(app)
    yield client

    # Cleanup
    app.dependency_overrides.clear()
