"""Tests for WorkerPool."""

import asyncio

import pytest

from core.domain.entities import ActionRecord
from core.domain.enums import ActionStatus
from core.domain.exceptions import ConfigurationFailure
from orchestration.broker import JobState
from orchestration.dispatcher import ActionDispatcher, QueueOptions
from orchestration.handlers import HandlerRegistry
from orchestration.job_executor import JobExecutor, WorkerPool
from orchestration.queues import QueueName


async def _queue_actions(status_repository, broker, count, action_type="content_generation", policy=None):
    dispatcher = ActionDispatcher(status_repository, broker)
    action_ids = []
    for index in range(count):
        action = await status_repository.create_action(
            ActionRecord(
                user_token="user-123",
                site_url="https://example.com",
                action_type=action_type,
                title=f"Action {index}",
            )
        )
        await dispatcher.queue_action(
            action.id,
            "user-123",
            action_type,
            {},
            policy or {"environment": "PRODUCTION"},
            QueueOptions(idempotency_key=f"key-{index}"),
        )
        action_ids.append(action.id)
    return action_ids


async def _wait_for(predicate, timeout=2.0):
    async def poll():
        while not await predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout=timeout)


@pytest.mark.asyncio
async def test_pool_respects_concurrency_limit(status_repository, broker):
    release = asyncio.Event()

    async def handler(ctx):
        await release.wait()
        return {}

    handlers = HandlerRegistry()
    handlers.register("content_generation", handler)
    executor = JobExecutor(status_repository, broker, handlers, dry_run_delay_seconds=0)
    pool = WorkerPool(QueueName.CONTENT_GENERATION, broker, executor, concurrency=3, poll_interval=0.01)
    await _queue_actions(status_repository, broker, 6)

    await pool.start()

    async def three_active():
        return (await broker.get_counts("content-generation"))["active"] == 3

    await _wait_for(three_active)
    await asyncio.sleep(0.05)
    assert pool.in_flight == 3

    release.set()

    async def all_done():
        return (await broker.get_counts("content-generation"))["completed"] == 6

    await _wait_for(all_done)
    await pool.stop()

    assert pool.max_in_flight == 3
    assert pool.running is False


@pytest.mark.asyncio
async def test_failed_job_is_retried_then_marked_failed(status_repository, broker):
    calls = []

    async def handler(ctx):
        calls.append(ctx.action_id)
        raise RuntimeError("always fails")

    handlers = HandlerRegistry()
    handlers.register("content_generation", handler)
    executor = JobExecutor(status_repository, broker, handlers, dry_run_delay_seconds=0)
    pool = WorkerPool(QueueName.CONTENT_GENERATION, broker, executor, concurrency=1, poll_interval=0.01)
    (action_id,) = await _queue_actions(status_repository, broker, 1)

    await pool.start()

    async def failed():
        return (await broker.get_counts("content-generation"))["failed"] == 1

    await _wait_for(failed)
    await pool.stop()

    assert len(calls) == 3
    job = await broker.get_job("content-generation", "key-0")
    assert job.state == JobState.FAILED
    assert "always fails" in job.failed_reason
    assert (await status_repository.get_action(action_id)).status == ActionStatus.FAILED


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_job(status_repository, broker):
    started = asyncio.Event()
    finished = []

    async def handler(ctx):
        started.set()
        await asyncio.sleep(0.05)
        finished.append(ctx.action_id)
        return {}

    handlers = HandlerRegistry()
    handlers.register("content_generation", handler)
    executor = JobExecutor(status_repository, broker, handlers, dry_run_delay_seconds=0)
    pool = WorkerPool(QueueName.CONTENT_GENERATION, broker, executor, concurrency=1, poll_interval=0.01)
    await _queue_actions(status_repository, broker, 1)

    await pool.start()
    await asyncio.wait_for(started.wait(), timeout=2.0)
    await pool.stop()

    assert len(finished) == 1
    assert (await broker.get_job("content-generation", "key-0")).state == JobState.COMPLETED


@pytest.mark.asyncio
async def test_missing_credentials_prevent_start(status_repository, broker):
    async def handler(ctx):
        return {}

    handlers = HandlerRegistry()
    handlers.register("content_generation", handler, required_credentials=["OPENAI_API_KEY"])
    executor = JobExecutor(status_repository, broker, handlers)
    pool = WorkerPool(
        QueueName.CONTENT_GENERATION,
        broker,
        executor,
        concurrency=1,
        credentials={"OPENAI_API_KEY": None},
    )

    with pytest.raises(ConfigurationFailure) as exc_info:
        await pool.start()

    assert "OPENAI_API_KEY" in str(exc_info.value)
    assert pool.running is False


@pytest.mark.asyncio
async def test_credentials_only_checked_for_handlers_on_the_queue(status_repository, broker):
    async def handler(ctx):
        return {}

    handlers = HandlerRegistry()
    handlers.register("content_generation", handler, required_credentials=["OPENAI_API_KEY"])
    executor = JobExecutor(status_repository, broker, handlers)
    pool = WorkerPool(QueueName.VERIFICATION, broker, executor, concurrency=1, poll_interval=0.01)

    await pool.start()
    assert pool.running is True
    await pool.stop()


def test_concurrency_must_be_positive(status_repository, broker):
    executor = JobExecutor(status_repository, broker, HandlerRegistry())
    with pytest.raises(ValueError):
        WorkerPool(QueueName.VERIFICATION, broker, executor, concurrency=0)
