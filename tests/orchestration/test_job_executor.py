"""Tests for JobExecutor.process."""

import asyncio

import pytest

from core.domain.entities import ActionRecord
from core.domain.enums import ActionStatus, RunStatus
from core.domain.exceptions import HandlerFailure, TimeoutFailure
from orchestration.dispatcher import ActionDispatcher, QueueOptions
from orchestration.events import RUN_FAILED, RUN_STARTED, RUN_SUCCEEDED
from orchestration.handlers import HandlerRegistry, HandlerResult
from orchestration.job_executor import DRY_RUN_MESSAGE, JobExecutor

QUEUE = "technical-seo"


async def _queue_job(status_repository, broker, policy, action_type="technical_seo_fix"):
    action = await status_repository.create_action(
        ActionRecord(
            user_token="user-123",
            site_url="https://example.com",
            action_type=action_type,
            title="Fix issues",
            payload={"fix_types": ["meta_tags"]},
            policy=policy,
        )
    )
    dispatcher = ActionDispatcher(status_repository, broker)
    await dispatcher.queue_action(
        action.id,
        "user-123",
        action_type,
        {"fix_types": ["meta_tags"]},
        policy,
        QueueOptions(idempotency_key=f"key-{action.id}"),
    )
    job = await broker.reserve(QUEUE)
    return action, job


def _executor(status_repository, broker, handlers=None, event_bus=None):
    return JobExecutor(
        status_repository,
        broker,
        handlers or HandlerRegistry(),
        event_bus=event_bus,
        dry_run_delay_seconds=0,
    )


@pytest.mark.asyncio
async def test_dry_run_never_calls_handler(status_repository, broker, event_bus):
    called = []

    async def handler(ctx):
        called.append(ctx)

    handlers = HandlerRegistry()
    handlers.register("technical_seo_fix", handler)
    action, job = await _queue_job(status_repository, broker, {"environment": "DRY_RUN"})

    result = await _executor(status_repository, broker, handlers, event_bus).process(QUEUE, job)

    assert called == []
    assert result.success is True
    assert result.output == {"message": DRY_RUN_MESSAGE, "payload": {"fix_types": ["meta_tags"]}}
    assert result.stats["pages_processed"] == 0
    assert result.stats["patches_applied"] == 0

    run = await status_repository.get_run(result.run_id)
    assert run.status == RunStatus.SUCCEEDED
    assert run.started_at is not None
    assert run.completed_at is not None
    assert (await status_repository.get_action(action.id)).status == ActionStatus.NEEDS_VERIFICATION
    assert (await broker.get_job(QUEUE, job.id)).progress == 100
    assert event_bus.names == [RUN_STARTED, RUN_SUCCEEDED]


@pytest.mark.asyncio
async def test_handler_result_is_recorded(status_repository, broker):
    progress_seen = []

    async def handler(ctx):
        await ctx.report_progress(75)
        progress_seen.append((await broker.get_job(QUEUE, job.id)).progress)
        return {"pages_processed": 3, "patches_applied": 2, "summary": "fixed"}

    handlers = HandlerRegistry()
    handlers.register("technical_seo_fix", handler)
    action, job = await _queue_job(status_repository, broker, {"environment": "PRODUCTION"})

    result = await _executor(status_repository, broker, handlers).process(QUEUE, job)

    assert progress_seen == [75]
    assert result.stats["pages_processed"] == 3
    assert result.stats["patches_applied"] == 2
    assert result.output == {"summary": "fixed"}
    run = await status_repository.get_run(result.run_id)
    assert run.output_data == {"summary": "fixed"}
    assert run.duration_ms is not None


@pytest.mark.asyncio
async def test_limit_exceeded_is_reported_in_output(status_repository, broker):
    async def handler(ctx):
        return HandlerResult(pages_processed=20)

    handlers = HandlerRegistry()
    handlers.register("technical_seo_fix", handler)
    _, job = await _queue_job(status_repository, broker, {"environment": "STAGING", "max_pages": 20})

    result = await _executor(status_repository, broker, handlers).process(QUEUE, job)

    assert result.success is True
    assert "Page limit reached" in result.output["limit_exceeded"]


@pytest.mark.asyncio
async def test_missing_handler_fails_run_and_action(status_repository, broker, event_bus):
    action, job = await _queue_job(status_repository, broker, {"environment": "PRODUCTION"})

    with pytest.raises(HandlerFailure):
        await _executor(status_repository, broker, event_bus=event_bus).process(QUEUE, job)

    runs = await status_repository.list_runs(action.id)
    assert runs[0].status == RunStatus.FAILED
    assert "No handler registered" in runs[0].error_details
    stored = await status_repository.get_action(action.id)
    assert stored.status == ActionStatus.FAILED
    assert stored.failed_at is not None
    assert event_bus.names == [RUN_STARTED, RUN_FAILED]


@pytest.mark.asyncio
async def test_handler_exception_is_wrapped(status_repository, broker):
    async def handler(ctx):
        raise ValueError("cms rejected patch")

    handlers = HandlerRegistry()
    handlers.register("technical_seo_fix", handler)
    _, job = await _queue_job(status_repository, broker, {"environment": "PRODUCTION"})

    with pytest.raises(HandlerFailure) as exc_info:
        await _executor(status_repository, broker, handlers).process(QUEUE, job)

    assert exc_info.value.action_type == "technical_seo_fix"
    assert "cms rejected patch" in str(exc_info.value)


@pytest.mark.asyncio
async def test_handler_timeout(status_repository, broker):
    async def handler(ctx):
        await asyncio.sleep(1)

    handlers = HandlerRegistry()
    handlers.register("technical_seo_fix", handler)
    _, job = await _queue_job(status_repository, broker, {"environment": "PRODUCTION", "timeout_ms": 10})

    with pytest.raises(TimeoutFailure) as exc_info:
        await _executor(status_repository, broker, handlers).process(QUEUE, job)

    assert exc_info.value.timeout_ms == 10


@pytest.mark.asyncio
async def test_handler_raised_timeout_error_is_a_handler_failure(status_repository, broker):
    async def handler(ctx):
        raise TimeoutError("upstream CMS timed out")

    handlers = HandlerRegistry()
    handlers.register("technical_seo_fix", handler)
    action, job = await _queue_job(status_repository, broker, {"environment": "PRODUCTION"})

    with pytest.raises(HandlerFailure) as exc_info:
        await _executor(status_repository, broker, handlers).process(QUEUE, job)

    assert not isinstance(exc_info.value, TimeoutFailure)
    runs = await status_repository.list_runs(action.id)
    assert runs[0].status == RunStatus.FAILED
    assert "upstream CMS timed out" in runs[0].error_details


@pytest.mark.asyncio
async def test_handler_timeout_error_within_budget_is_not_a_timeout(status_repository, broker):
    async def handler(ctx):
        raise asyncio.TimeoutError("search console API timed out")

    handlers = HandlerRegistry()
    handlers.register("technical_seo_fix", handler)
    _, job = await _queue_job(status_repository, broker, {"environment": "PRODUCTION", "timeout_ms": 5000})

    with pytest.raises(HandlerFailure) as exc_info:
        await _executor(status_repository, broker, handlers).process(QUEUE, job)

    assert not isinstance(exc_info.value, TimeoutFailure)
    assert "search console API timed out" in exc_info.value.message


@pytest.mark.asyncio
async def test_retry_after_failure_reuses_same_run(status_repository, broker):
    attempts = []

    async def handler(ctx):
        attempts.append(ctx.run_id)
        if len(attempts) == 1:
            raise RuntimeError("temporary error")
        return None

    handlers = HandlerRegistry()
    handlers.register("technical_seo_fix", handler)
    action, job = await _queue_job(status_repository, broker, {"environment": "PRODUCTION"})
    executor = _executor(status_repository, broker, handlers)

    with pytest.raises(HandlerFailure):
        await executor.process(QUEUE, job)
    assert await broker.fail(QUEUE, job.id, "temporary error") is True

    retry = await broker.reserve(QUEUE)
    result = await executor.process(QUEUE, retry)

    assert result.success is True
    assert attempts[0] == attempts[1]
    runs = await status_repository.list_runs(action.id)
    assert len(runs) == 1
    assert runs[0].status == RunStatus.SUCCEEDED
    assert (await status_repository.get_action(action.id)).status == ActionStatus.NEEDS_VERIFICATION
