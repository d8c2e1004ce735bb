"""Job broker - JobBrokerProtocol and InMemoryJobBroker."""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
import heapq
import itertools
from typing import Any, Protocol
import uuid

from core.infrastructure.logging import get_logger
from core.utils.datetime import epoch_ms

from .workflow import JobRetention, RetryPolicy

DEFAULT_PRIORITY = 50


class JobState(str, Enum):
    """Where a job currently sits in its queue."""

    WAITING = "waiting"
    DELAYED = "delayed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class JobOptions:
    """Per-job enqueue options."""

    priority: int = DEFAULT_PRIORITY
    delay_ms: int = 0
    job_id: str | None = None
    attempts: int | None = None
    backoff_seconds: float | None = None


@dataclass
class Job:
    """A unit of queued work."""

    id: str
    queue_name: str
    name: str
    data: dict[str, Any]
    priority: int = DEFAULT_PRIORITY
    state: JobState = JobState.WAITING
    attempts_made: int = 0
    max_attempts: int = 3
    progress: int = 0
    created_at_ms: int = 0
    ready_at_ms: int = 0
    processed_on_ms: int | None = None
    finished_on_ms: int | None = None
    failed_reason: str | None = None
    return_value: Any = None
    backoff_seconds: float | None = None
    sequence: int = field(default=0, repr=False)


def retry_delay_ms(policy: RetryPolicy, job: Job) -> int:
    """Backoff before the next attempt; a per-job backoff overrides the broker default."""
    if job.backoff_seconds is not None:
        policy = replace(policy, backoff_seconds=job.backoff_seconds)
    return int(policy.delay_for(job.attempts_made) * 1000)


class JobBrokerProtocol(Protocol):
    """
    Protocol for durable job queues.

    Priority: higher values are dispatched first, FIFO within a priority.
    Retries: the broker owns the retry policy; workers only report failure.
    """

    async def add(
        self,
        queue_name: str,
        job_name: str,
        data: dict[str, Any],
        options: JobOptions | None = None,
    ) -> str:
        """Enqueue a job; an existing ``options.job_id`` is returned unchanged."""
        ...

    async def reserve(self, queue_name: str) -> Job | None:
        """Take the next ready job, or None when empty or paused."""
        ...

    async def update_progress(self, queue_name: str, job_id: str, progress: int) -> None:
        """Record job progress (0-100)."""
        ...

    async def complete(self, queue_name: str, job_id: str, return_value: Any = None) -> None:
        """Mark an active job completed."""
        ...

    async def fail(self, queue_name: str, job_id: str, error: str) -> bool:
        """Mark an active job failed; return True if it was scheduled for retry."""
        ...

    async def get_job(self, queue_name: str, job_id: str) -> Job | None:
        """Look up a job by id."""
        ...

    async def get_counts(self, queue_name: str) -> dict[str, int]:
        """Return waiting/active/completed/failed/delayed counts."""
        ...

    async def pause(self, queue_name: str) -> None:
        """Stop dispatching new jobs from the queue."""
        ...

    async def resume(self, queue_name: str) -> None:
        """Resume dispatching."""
        ...

    async def is_paused(self, queue_name: str) -> bool:
        """Return True if the queue is paused."""
        ...

    async def clean(self, queue_name: str, grace_ms: int, limit: int, state: JobState) -> list[str]:
        """Remove up to ``limit`` jobs in ``state`` finished more than ``grace_ms`` ago."""
        ...

    async def close(self) -> None:
        """Release broker resources."""
        ...


class InMemoryJobBroker(JobBrokerProtocol):
    """In-process job broker for tests and single-process deployments."""

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        retention: JobRetention | None = None,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        """Initialize in-memory broker.

        Args:
            retry_policy: Default retry policy for every job
            retention: Finished-job retention limits
            clock: Millisecond clock, injectable for tests
        """
        self.retry_policy = retry_policy or RetryPolicy()
        self.retention = retention or JobRetention()
        self._clock = clock
        self._jobs: dict[str, dict[str, Job]] = {}
        self._waiting: dict[str, list[tuple[int, int, str]]] = {}
        self._paused: set[str] = set()
        self._sequence = itertools.count()
        self._logger = get_logger("orchestration.broker")

    async def add(
        self,
        queue_name: str,
        job_name: str,
        data: dict[str, Any],
        options: JobOptions | None = None,
    ) -> str:
        options = options or JobOptions()
        jobs = self._jobs.setdefault(queue_name, {})
        job_id = options.job_id or str(uuid.uuid4())

        if job_id in jobs:
            self._logger.info(f"[{queue_name}] Duplicate job {job_id} ignored")
            return job_id

        now = self._clock()
        job = Job(
            id=job_id,
            queue_name=queue_name,
            name=job_name,
            data=dict(data),
            priority=options.priority,
            max_attempts=options.attempts or self.retry_policy.max_attempts,
            created_at_ms=now,
            ready_at_ms=now + max(options.delay_ms, 0),
            backoff_seconds=options.backoff_seconds,
            sequence=next(self._sequence),
        )
        jobs[job_id] = job

        if options.delay_ms > 0:
            job.state = JobState.DELAYED
        else:
            self._push_waiting(job)

        self._logger.info(f"[{queue_name}] Job {job_id} added (priority={job.priority})")
        return job_id

    async def reserve(self, queue_name: str) -> Job | None:
        if queue_name in self._paused:
            return None

        self._promote_delayed(queue_name)
        heap = self._waiting.get(queue_name, [])
        jobs = self._jobs.get(queue_name, {})

        while heap:
            _, _, job_id = heapq.heappop(heap)
            job = jobs.get(job_id)
            # Entries for cleaned or already re-queued jobs are skipped.
            if job is None or job.state != JobState.WAITING:
                continue
            job.state = JobState.ACTIVE
            job.attempts_made += 1
            job.processed_on_ms = self._clock()
            return job
        return None

    async def update_progress(self, queue_name: str, job_id: str, progress: int) -> None:
        job = self._require(queue_name, job_id)
        job.progress = max(0, min(100, int(progress)))

    async def complete(self, queue_name: str, job_id: str, return_value: Any = None) -> None:
        job = self._require(queue_name, job_id)
        job.state = JobState.COMPLETED
        job.return_value = return_value
        job.finished_on_ms = self._clock()
        self._trim(queue_name, JobState.COMPLETED, self.retention.completed)

    async def fail(self, queue_name: str, job_id: str, error: str) -> bool:
        job = self._require(queue_name, job_id)
        job.failed_reason = error

        if job.attempts_made < job.max_attempts:
            delay_ms = retry_delay_ms(self.retry_policy, job)
            job.ready_at_ms = self._clock() + delay_ms
            job.sequence = next(self._sequence)
            if delay_ms > 0:
                job.state = JobState.DELAYED
            else:
                self._push_waiting(job)
            self._logger.warning(
                f"[{queue_name}] Job {job_id} failed (attempt {job.attempts_made}/"
                f"{job.max_attempts}), retrying in {delay_ms}ms: {error}"
            )
            return True

        job.state = JobState.FAILED
        job.finished_on_ms = self._clock()
        self._logger.error(
            f"[{queue_name}] Job {job_id} failed permanently after {job.attempts_made} attempts: {error}"
        )
        self._trim(queue_name, JobState.FAILED, self.retention.failed)
        return False

    async def get_job(self, queue_name: str, job_id: str) -> Job | None:
        return self._jobs.get(queue_name, {}).get(job_id)

    async def get_counts(self, queue_name: str) -> dict[str, int]:
        self._promote_delayed(queue_name)
        counts = {state.value: 0 for state in JobState}
        for job in self._jobs.get(queue_name, {}).values():
            counts[job.state.value] += 1
        return counts

    async def pause(self, queue_name: str) -> None:
        self._paused.add(queue_name)
        self._logger.info(f"[{queue_name}] Queue paused")

    async def resume(self, queue_name: str) -> None:
        self._paused.discard(queue_name)
        self._logger.info(f"[{queue_name}] Queue resumed")

    async def is_paused(self, queue_name: str) -> bool:
        return queue_name in self._paused

    async def clean(self, queue_name: str, grace_ms: int, limit: int, state: JobState) -> list[str]:
        cutoff = self._clock() - grace_ms
        jobs = self._jobs.get(queue_name, {})
        candidates = sorted(
            (
                job
                for job in jobs.values()
                if job.state == state and job.finished_on_ms is not None and job.finished_on_ms <= cutoff
            ),
            key=lambda job: job.finished_on_ms,
        )[: max(limit, 0)]

        for job in candidates:
            del jobs[job.id]

        if candidates:
            self._logger.info(f"[{queue_name}] Cleaned {len(candidates)} {state.value} job(s)")
        return [job.id for job in candidates]

    async def close(self) -> None:
        self._logger.info("In-memory broker closed")

    def _push_waiting(self, job: Job) -> None:
        job.state = JobState.WAITING
        heapq.heappush(
            self._waiting.setdefault(job.queue_name, []),
            (-job.priority, job.sequence, job.id),
        )

    def _promote_delayed(self, queue_name: str) -> None:
        now = self._clock()
        due = sorted(
            (
                job
                for job in self._jobs.get(queue_name, {}).values()
                if job.state == JobState.DELAYED and job.ready_at_ms <= now
            ),
            key=lambda job: job.ready_at_ms,
        )
        for job in due:
            self._push_waiting(job)

    def _trim(self, queue_name: str, state: JobState, keep: int) -> None:
        jobs = self._jobs.get(queue_name, {})
        finished = sorted(
            (job for job in jobs.values() if job.state == state),
            key=lambda job: job.finished_on_ms or 0,
        )
        for job in finished[: max(len(finished) - keep, 0)]:
            del jobs[job.id]

    def _require(self, queue_name: str, job_id: str) -> Job:
        job = self._jobs.get(queue_name, {}).get(job_id)
        if job is None:
            raise KeyError(f"Job {job_id} not found in queue {queue_name}")
        return job
