"""Tests for PlanExecutor.execute_workflow_plan."""

from dataclasses import replace

import pytest

from core.domain.enums import ActionStatus
from core.infrastructure.adapters.persistence.in_memory_status_repository import (
    InMemoryStatusRepository,
)
from orchestration.catalog import NEW_SITE_SEO_SETUP, get_template
from orchestration.dispatcher import ActionDispatcher
from orchestration.plan_executor import PlanExecutor
from orchestration.planner import ExecutionPlanner

USER_TOKEN = "user-123"
SITE_URL = "https://example.com"


class FlakyStatusRepository(InMemoryStatusRepository):
    """Fails to create actions of one type and to adopt ideas."""

    def __init__(self, failing_type: str) -> None:
        super().__init__()
        self.failing_type = failing_type

    async def create_action(self, action):
        if action.action_type == self.failing_type:
            raise RuntimeError("insert failed")
        return await super().create_action(action)

    async def mark_idea_adopted(self, idea_id, adopted_at):
        raise RuntimeError("update failed")


async def _plan_for(resolver, template):
    planner = ExecutionPlanner(resolver)
    return await planner.create_execution_plan("idea-1", template, USER_TOKEN, SITE_URL)


async def _plan(resolver, template_id):
    return await _plan_for(resolver, get_template(template_id))


@pytest.mark.asyncio
async def test_executes_every_ready_action(status_repository, broker, resolver, managed_site):
    plan = await _plan(resolver, "new_site_seo_setup")
    executor = PlanExecutor(status_repository, ActionDispatcher(status_repository, broker))

    result = await executor.execute_workflow_plan(plan, USER_TOKEN, SITE_URL)

    assert len(result.action_ids) == 4
    assert result.failed_actions == []
    assert result.message == (
        'Workflow "New Site SEO Setup" created with 4 actions. Estimated completion: 45 minutes.'
    )
    assert "idea-1" in status_repository.adopted_ideas

    for action_id in result.action_ids:
        action = await status_repository.get_action(action_id)
        assert action.status == ActionStatus.QUEUED
        assert action.idea_id == "idea-1"
        assert action.policy["workflow_order"] >= 1

    counts = await broker.get_counts("technical-seo")
    assert counts["waiting"] == 3
    assert (await broker.get_counts("agent-actions"))["waiting"] == 1


@pytest.mark.asyncio
async def test_blocked_actions_are_skipped(status_repository, broker, resolver):
    plan = await _plan(resolver, "new_site_seo_setup")
    executor = PlanExecutor(status_repository, ActionDispatcher(status_repository, broker))

    result = await executor.execute_workflow_plan(plan, USER_TOKEN, SITE_URL)

    types = sorted([(await status_repository.get_action(i)).action_type for i in result.action_ids])
    assert types == ["seoagent_installation", "technical_seo_crawl"]
    assert "Warnings: 2 actions are blocked due to missing dependencies" in result.message


@pytest.mark.asyncio
async def test_actions_get_priority_scores(status_repository, broker, resolver, managed_site):
    plan = await _plan(resolver, "new_site_seo_setup")
    executor = PlanExecutor(status_repository, ActionDispatcher(status_repository, broker))

    result = await executor.execute_workflow_plan(plan, USER_TOKEN, SITE_URL)

    first = await broker.reserve("technical-seo")
    crawl = await status_repository.get_action(result.action_ids[0])
    assert crawl.action_type == "technical_seo_crawl"
    assert crawl.priority_score == 95
    assert first.data["actionId"] == crawl.id


@pytest.mark.asyncio
async def test_single_failure_does_not_stop_the_rest(broker, resolver, managed_site):
    repository = FlakyStatusRepository(failing_type="seoagent_installation")
    plan = await _plan(resolver, "new_site_seo_setup")
    executor = PlanExecutor(repository, ActionDispatcher(repository, broker))

    result = await executor.execute_workflow_plan(plan, USER_TOKEN, SITE_URL)

    assert result.failed_actions == ["install_seoagent"]
    assert len(result.action_ids) == 3
    assert "created with 3 actions" in result.message


class FailingLookupRepository(InMemoryStatusRepository):
    """Idempotency lookups fail on the nth call."""

    def __init__(self, fail_on_call: int) -> None:
        super().__init__()
        self.fail_on_call = fail_on_call
        self.lookups = 0

    async def find_run_by_idempotency_key(self, key):
        self.lookups += 1
        if self.lookups == self.fail_on_call:
            raise RuntimeError("db connection reset")
        return await super().find_run_by_idempotency_key(key)


@pytest.mark.asyncio
async def test_lookup_error_during_dispatch_does_not_abort_plan(broker, resolver, managed_site):
    repository = FailingLookupRepository(fail_on_call=2)
    plan = await _plan(resolver, "new_site_seo_setup")
    executor = PlanExecutor(repository, ActionDispatcher(repository, broker))

    result = await executor.execute_workflow_plan(plan, USER_TOKEN, SITE_URL)

    assert result.failed_actions == ["install_seoagent"]
    assert len(result.action_ids) == 3
    for action_id in result.action_ids:
        assert (await repository.get_action(action_id)).status == ActionStatus.QUEUED
    assert "idea-1" in repository.adopted_ideas


@pytest.mark.asyncio
async def test_only_ready_actions_get_runs(status_repository, broker, resolver, site_state):
    site_state.add_website(USER_TOKEN, "example.com")
    template = replace(
        NEW_SITE_SEO_SETUP,
        id="three_step_setup",
        actions=NEW_SITE_SEO_SETUP.actions[:3],
    )
    plan = await _plan_for(resolver, template)
    executor = PlanExecutor(status_repository, ActionDispatcher(status_repository, broker))

    result = await executor.execute_workflow_plan(plan, USER_TOKEN, SITE_URL)

    assert [blocked.action_id for blocked in plan.blocked_actions] == ["generate_sitemap"]
    assert len(result.action_ids) == 2
    runs = [run for action_id in result.action_ids for run in await status_repository.list_runs(action_id)]
    assert len(runs) == 2
    assert len(status_repository._runs) == 2
