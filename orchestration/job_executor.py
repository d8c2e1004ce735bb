"""Job execution - JobExecutor (one job) and WorkerPool (one queue)."""

import asyncio
import time
from typing import Any, Mapping, Optional

from core.domain.enums import ActionStatus, PolicyEnvironment, RunStatus
from core.domain.exceptions import ConfigurationFailure, HandlerFailure, TimeoutFailure
from core.domain.repositories import StatusRepository
from core.infrastructure.logging import get_logger
from core.utils.datetime import utc_now

from .broker import Job, JobBrokerProtocol
from .bus import EventBusProtocol
from .events import RUN_FAILED, RUN_STARTED, RUN_SUCCEEDED, Event
from .handlers import HandlerRegistry, HandlerResult, JobContext
from .models import JobData, JobResult
from .policy import enforce_runtime_limits
from .queues import ACTION_QUEUE_ROUTES, QueueName, route_action_type

DRY_RUN_MESSAGE = "Dry run completed successfully"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class JobExecutor:
    """
    Processes a single action job.

    Updates the run and action rows as the job progresses. Exceptions are
    re-raised after the failure is recorded so the broker can decide on
    redelivery.
    """

    def __init__(
        self,
        status_repository: StatusRepository,
        broker: JobBrokerProtocol,
        handlers: HandlerRegistry,
        event_bus: Optional[EventBusProtocol] = None,
        dry_run_delay_seconds: float = 1.0,
    ):
        self.status_repository = status_repository
        self.broker = broker
        self.handlers = handlers
        self.event_bus = event_bus
        self.dry_run_delay_seconds = dry_run_delay_seconds
        self.logger = get_logger("orchestration.job_executor")

    async def process(self, queue_name: str, job: Job) -> JobResult:
        """
        Execute one job.

        Args:
            queue_name: Queue the job was reserved from
            job: Reserved job

        Returns:
            JobResult with stats and output

        Raises:
            HandlerFailure: Handler missing, raised, or exceeded its timeout
        """
        data = JobData.from_dict(job.data)
        started = time.monotonic()

        try:
            await self.status_repository.update_run(data.run_id, RunStatus.RUNNING, started_at=utc_now())
            await self.status_repository.update_action_status(data.action_id, ActionStatus.RUNNING)
            await self._publish(RUN_STARTED, data, queue_name, {"attempt": job.attempts_made})
            await self._progress(queue_name, job.id, 25)

            if self._environment(data.policy) == PolicyEnvironment.DRY_RUN:
                await asyncio.sleep(self.dry_run_delay_seconds)
                await self._progress(queue_name, job.id, 100)
                stats = {
                    "execution_time_ms": _elapsed_ms(started),
                    "pages_processed": 0,
                    "patches_applied": 0,
                }
                output: dict[str, Any] = {"message": DRY_RUN_MESSAGE, "payload": data.payload}
            else:
                await self._progress(queue_name, job.id, 50)
                result = await self._invoke_handler(queue_name, job.id, data)
                await self._progress(queue_name, job.id, 100)
                stats = {
                    "execution_time_ms": _elapsed_ms(started),
                    "pages_processed": result.pages_processed,
                    "patches_applied": result.patches_applied,
                }
                output = dict(result.data)
                limits = enforce_runtime_limits(data.policy, stats)
                if not limits.within_limits:
                    self.logger.warning(f"Action {data.action_id} run {data.run_id}: {limits.reason}")
                    output["limit_exceeded"] = limits.reason

            await self.status_repository.update_run(
                data.run_id,
                RunStatus.SUCCEEDED,
                stats=stats,
                output_data=output,
                completed_at=utc_now(),
                duration_ms=stats["execution_time_ms"],
            )
            await self.status_repository.update_action_status(data.action_id, ActionStatus.NEEDS_VERIFICATION)
            await self._publish(RUN_SUCCEEDED, data, queue_name, {"stats": stats})

            return JobResult(success=True, run_id=data.run_id, stats=stats, output=output)

        except Exception as e:
            await self._record_failure(queue_name, data, str(e), _elapsed_ms(started))
            raise

    async def _invoke_handler(self, queue_name: str, job_id: str, data: JobData) -> HandlerResult:
        handler = self.handlers.get(data.action_type)
        if handler is None:
            raise HandlerFailure(data.action_type, "No handler registered for action type")

        async def report_progress(progress: int) -> None:
            await self._progress(queue_name, job_id, progress)

        ctx = JobContext(
            action_id=data.action_id,
            action_type=data.action_type,
            user_token=data.user_token,
            run_id=data.run_id,
            payload=data.payload,
            policy=data.policy,
            report_progress=report_progress,
        )

        async def run_handler() -> object:
            try:
                return await handler(ctx)
            except HandlerFailure:
                raise
            except Exception as e:
                raise HandlerFailure(data.action_type, str(e)) from e

        # Only the wait_for budget becomes a TimeoutFailure; a TimeoutError
        # raised by the handler itself is an ordinary HandlerFailure.
        timeout_ms = data.policy.get("timeout_ms")
        if not timeout_ms:
            return HandlerResult.coerce(await run_handler())
        try:
            raw = await asyncio.wait_for(run_handler(), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            raise TimeoutFailure(data.action_type, int(timeout_ms)) from e
        return HandlerResult.coerce(raw)

    async def _record_failure(self, queue_name: str, data: JobData, error: str, duration_ms: int) -> None:
        try:
            await self.status_repository.update_run(
                data.run_id,
                RunStatus.FAILED,
                error_details=error,
                completed_at=utc_now(),
                duration_ms=duration_ms,
            )
            await self.status_repository.update_action_status(
                data.action_id, ActionStatus.FAILED, error_message=error
            )
        except Exception as e:
            self.logger.error(f"Could not record failure of run {data.run_id}: {e}", exc_info=True)
        await self._publish(RUN_FAILED, data, queue_name, {"error": error})

    async def _progress(self, queue_name: str, job_id: str, progress: int) -> None:
        await self.broker.update_progress(queue_name, job_id, progress)
        self.logger.info(f"[QUEUE:{queue_name}] Job {job_id} progress: {progress}%")

    async def _publish(self, name: str, data: JobData, queue_name: str, payload: dict[str, object]) -> None:
        if self.event_bus is None:
            return
        event = Event.for_run(
            name,
            data.run_id,
            data.action_id,
            queue_name,
            action_type=data.action_type,
            idempotency_key=data.idempotency_key,
            **payload,
        )
        await self.event_bus.publish(event)

    @staticmethod
    def _environment(policy: Mapping[str, Any]) -> PolicyEnvironment:
        return PolicyEnvironment(policy.get("environment", PolicyEnvironment.DRY_RUN.value))


class WorkerPool:
    """Runs ``concurrency`` workers against one queue."""

    def __init__(
        self,
        queue_name: QueueName,
        broker: JobBrokerProtocol,
        executor: JobExecutor,
        concurrency: int,
        poll_interval: float = 1.0,
        credentials: Optional[Mapping[str, Any]] = None,
        routes: dict[str, QueueName] = ACTION_QUEUE_ROUTES,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.queue_name = queue_name
        self.broker = broker
        self.executor = executor
        self.concurrency = concurrency
        self.poll_interval = poll_interval
        self.credentials = credentials or {}
        self.routes = routes
        self.in_flight = 0
        self.max_in_flight = 0
        self._tasks: list[asyncio.Task] = []
        self._stopping = asyncio.Event()
        self.logger = get_logger(f"orchestration.worker.{queue_name.value}")

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def check_credentials(self) -> None:
        """Raise ConfigurationFailure if a handler served by this queue lacks credentials."""
        handlers = self.executor.handlers
        served = [
            registration.action_type
            for registration in handlers.registrations()
            if route_action_type(registration.action_type, self.routes) == self.queue_name
        ]
        missing = handlers.missing_credentials(served, self.credentials)
        if missing:
            details = "; ".join(f"{t}: {', '.join(names)}" for t, names in sorted(missing.items()))
            raise ConfigurationFailure(
                f"Queue {self.queue_name.value} cannot start, missing credentials ({details})"
            )

    async def start(self) -> None:
        if self._tasks:
            return
        self.check_credentials()
        self._stopping.clear()
        self._tasks = [
            asyncio.create_task(self._work(index), name=f"{self.queue_name.value}-worker-{index}")
            for index in range(self.concurrency)
        ]
        self.logger.info(f"✅ Started {self.concurrency} worker(s) on {self.queue_name.value}")

    async def stop(self) -> None:
        """Stop reserving new jobs and wait for in-flight jobs to finish."""
        if not self._tasks:
            return
        self._stopping.set()
        await asyncio.gather(*self._tasks)
        self._tasks = []
        self.logger.info(f"Workers on {self.queue_name.value} stopped")

    async def _work(self, index: int) -> None:
        queue = self.queue_name.value
        while not self._stopping.is_set():
            try:
                job = await self.broker.reserve(queue)
            except Exception as e:
                self.logger.error(f"[QUEUE:{queue}] Reserve failed: {e}", exc_info=True)
                job = None

            if job is None:
                await self._idle()
                continue

            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                await self._run_job(job)
            except Exception as e:
                # Broker bookkeeping failed; the worker keeps serving the queue.
                self.logger.error(f"[QUEUE:{queue}] Could not settle job {job.id}: {e}", exc_info=True)
            finally:
                self.in_flight -= 1

    async def _run_job(self, job: Job) -> None:
        queue = self.queue_name.value
        try:
            result = await self.executor.process(queue, job)
        except Exception as e:
            retried = await self.broker.fail(queue, job.id, str(e))
            outcome = "will be retried" if retried else "failed permanently"
            self.logger.error(f"[QUEUE:{queue}] Job {job.id} failed ({outcome}): {e}")
            return

        await self.broker.complete(queue, job.id, result.to_dict())
        self.logger.info(f"[QUEUE:{queue}] Job {job.id} completed")

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass
