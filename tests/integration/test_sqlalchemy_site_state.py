"""Integration tests for SQLAlchemySiteStateStore on SQLite."""

from datetime import datetime, timedelta, timezone

import pytest

from core.domain.enums import ActionStatus
from core.infrastructure.database.models import (
    IntegrationConnectionModel,
    PerformanceDataModel,
    WebsiteModel,
)
from core.infrastructure.database.repositories.sqlalchemy_site_state import SQLAlchemySiteStateStore
from core.infrastructure.database.repositories.sqlalchemy_status_repository import (
    SQLAlchemyStatusRepository,
)
from orchestration import DependencyResolver, InMemoryJobBroker, WorkflowOrchestrator
from orchestration.catalog import get_template

USER_TOKEN = "user-123"
SITE_URL = "https://example.com"


@pytest.mark.asyncio
async def test_is_managed_matches_domain_without_scheme(test_session_factory, test_session):
    test_session.add(WebsiteModel(user_token=USER_TOKEN, domain="www.example.com", is_managed=True))
    test_session.add(WebsiteModel(user_token="other", domain="other.com", is_managed=True))
    await test_session.commit()
    store = SQLAlchemySiteStateStore(test_session_factory)

    assert await store.is_managed(USER_TOKEN, SITE_URL) is True
    assert await store.is_managed(USER_TOKEN, "https://other.com") is False


@pytest.mark.asyncio
async def test_inactive_connection_does_not_count(test_session_factory, test_session):
    test_session.add(
        IntegrationConnectionModel(
            user_token=USER_TOKEN, site_url=SITE_URL, provider="google_search_console", is_active=False
        )
    )
    await test_session.commit()
    store = SQLAlchemySiteStateStore(test_session_factory)

    assert await store.has_active_connection(USER_TOKEN, SITE_URL, "google_search_console") is False


@pytest.mark.asyncio
async def test_has_rows_since(test_session_factory, test_session):
    now = datetime.now(timezone.utc)
    test_session.add(
        PerformanceDataModel(user_token=USER_TOKEN, site_url=SITE_URL, date_start=now - timedelta(days=10))
    )
    await test_session.commit()
    store = SQLAlchemySiteStateStore(test_session_factory)

    assert await store.has_rows_since(USER_TOKEN, now - timedelta(days=90)) is True
    assert await store.has_rows_since(USER_TOKEN, now - timedelta(days=5)) is False


@pytest.mark.asyncio
async def test_plan_and_execute_against_database(test_session_factory, test_session):
    test_session.add(WebsiteModel(user_token=USER_TOKEN, domain="example.com", is_managed=True))
    test_session.add(
        IntegrationConnectionModel(user_token=USER_TOKEN, site_url=SITE_URL, provider="google_search_console")
    )
    await test_session.commit()

    site_state = SQLAlchemySiteStateStore(test_session_factory)
    repository = SQLAlchemyStatusRepository(test_session_factory)
    orchestrator = WorkflowOrchestrator(
        repository,
        DependencyResolver(site_state, site_state, site_state),
        InMemoryJobBroker(),
    )

    plan = await orchestrator.create_execution_plan(
        "idea-1", get_template("new_site_seo_setup"), USER_TOKEN, SITE_URL
    )
    result = await orchestrator.execute_workflow_plan(plan, USER_TOKEN, SITE_URL)

    assert plan.blocked_actions == []
    assert len(result.action_ids) == 4
    for action_id in result.action_ids:
        assert (await repository.get_action(action_id)).status == ActionStatus.QUEUED
        assert len(await repository.list_runs(action_id)) == 1
