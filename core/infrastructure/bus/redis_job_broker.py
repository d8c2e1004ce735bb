"""
Redis-backed job broker.

Implements JobBrokerProtocol on redis.asyncio so queued jobs survive
process restarts and can be shared by several worker processes.

Every state change runs as one MULTI/EXEC transaction. Steps that read
before they write (dedup, claiming the head of the queue, retry
scheduling) WATCH the keys they read, and redis-py re-runs the step when
another process touched them first.

Key layout (per queue):
    {prefix}:{queue}:job:{id}     hash with the job fields; its presence dedups job ids
    {prefix}:{queue}:lock:{id}    expiring marker held while the job is active
    {prefix}:{queue}:waiting      zset, score = priority band + sequence
    {prefix}:{queue}:delayed      zset, score = ready_at_ms
    {prefix}:{queue}:active       set
    {prefix}:{queue}:completed    zset, score = finished_on_ms
    {prefix}:{queue}:failed       zset, score = finished_on_ms
    {prefix}:{queue}:paused       flag
    {prefix}:{queue}:seq          FIFO counter
"""
import json
import logging
import uuid
from typing import Any, Dict, Optional

import redis.asyncio as aioredis
from redis.asyncio.client import Pipeline

from core.utils.datetime import epoch_ms
from orchestration.broker import DEFAULT_PRIORITY, Job, JobBrokerProtocol, JobOptions, JobState, retry_delay_ms
from orchestration.workflow import JobRetention, RetryPolicy


logger = logging.getLogger(__name__)

# Higher priority must sort first in an ascending zset.
PRIORITY_BAND = 10**13
MAX_PRIORITY = 100

DEFAULT_LOCK_DURATION_MS = 900_000
STALLED_REASON = "Job stalled: worker lock expired"


def waiting_score(priority: int, sequence: int) -> float:
    """Score for the waiting zset: higher priority first, FIFO within a priority."""
    priority = max(0, min(MAX_PRIORITY, int(priority)))
    return float((MAX_PRIORITY + 1 - priority) * PRIORITY_BAND + sequence)


def _opt_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value not in (None, "") else None


class RedisJobBroker(JobBrokerProtocol):
    """Job broker storing jobs in Redis hashes and sorted sets."""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        key_prefix: str = "seoagent:queue",
        retry_policy: Optional[RetryPolicy] = None,
        retention: Optional[JobRetention] = None,
        client: Optional[aioredis.Redis] = None,
        lock_duration_ms: int = DEFAULT_LOCK_DURATION_MS,
    ):
        """
        Initialize Redis job broker.

        Args:
            redis_url: Redis connection URL
            key_prefix: Prefix for every key the broker writes
            retry_policy: Default retry policy for every job
            retention: Finished-job retention limits
            client: Pre-built client (tests inject a mock here)
            lock_duration_ms: How long an active job may go without a
                progress update before it is treated as stalled
        """
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.retry_policy = retry_policy or RetryPolicy()
        self.retention = retention or JobRetention()
        self.lock_duration_ms = lock_duration_ms
        self._redis_client: Optional[aioredis.Redis] = client

    async def connect(self) -> aioredis.Redis:
        """Establish Redis connection."""
        if self._redis_client is None:
            try:
                self._redis_client = aioredis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis_client.ping()
                logger.info(f"✅ Connected to Redis: {self.redis_url}")
            except Exception as e:
                logger.error(f"Failed to connect to Redis: {e}")
                self._redis_client = None
                raise
        return self._redis_client

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis_client:
            await self._redis_client.close()
            self._redis_client = None
            logger.info("✅ Disconnected from Redis")

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def _key(self, queue_name: str, suffix: str) -> str:
        return f"{self.key_prefix}:{queue_name}:{suffix}"

    def _job_key(self, queue_name: str, job_id: str) -> str:
        return self._key(queue_name, f"job:{job_id}")

    def _lock_key(self, queue_name: str, job_id: str) -> str:
        return self._key(queue_name, f"lock:{job_id}")

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    async def add(
        self,
        queue_name: str,
        job_name: str,
        data: Dict[str, Any],
        options: Optional[JobOptions] = None,
    ) -> str:
        client = await self.connect()
        options = options or JobOptions()
        job_id = options.job_id or str(uuid.uuid4())
        job_key = self._job_key(queue_name, job_id)

        now = epoch_ms()
        delay_ms = max(options.delay_ms, 0)
        state = JobState.DELAYED if delay_ms > 0 else JobState.WAITING
        fields = {
            "id": job_id,
            "name": job_name,
            "data": json.dumps(data, default=str),
            "priority": options.priority,
            "state": state.value,
            "attempts_made": 0,
            "max_attempts": options.attempts or self.retry_policy.max_attempts,
            "progress": 0,
            "created_at_ms": now,
            "ready_at_ms": now + delay_ms,
            "backoff_seconds": "" if options.backoff_seconds is None else options.backoff_seconds,
        }

        async def enqueue(pipe: Pipeline) -> bool:
            if await pipe.exists(job_key):
                return False
            sequence = None if state == JobState.DELAYED else await pipe.incr(self._key(queue_name, "seq"))
            pipe.multi()
            pipe.hset(job_key, mapping=fields)
            if sequence is None:
                pipe.zadd(self._key(queue_name, "delayed"), {job_id: now + delay_ms})
            else:
                pipe.zadd(self._key(queue_name, "waiting"), {job_id: waiting_score(options.priority, sequence)})
            return True

        added = await client.transaction(enqueue, job_key, value_from_callable=True)
        if not added:
            logger.info(f"[{queue_name}] Duplicate job {job_id} ignored")
            return job_id

        logger.info(f"[{queue_name}] Job {job_id} added (priority={options.priority})")
        return job_id

    async def reserve(self, queue_name: str) -> Optional[Job]:
        client = await self.connect()
        if await client.exists(self._key(queue_name, "paused")):
            return None

        await self.recover_stalled(queue_name)
        await self._promote_delayed(client, queue_name)

        waiting_key = self._key(queue_name, "waiting")

        async def claim(pipe: Pipeline) -> Optional[str]:
            head = await pipe.zrange(waiting_key, 0, 0)
            if not head:
                return None
            job_id = head[0]
            job_key = self._job_key(queue_name, job_id)
            pipe.multi()
            pipe.zrem(waiting_key, job_id)
            pipe.sadd(self._key(queue_name, "active"), job_id)
            pipe.set(self._lock_key(queue_name, job_id), "1", px=self.lock_duration_ms)
            pipe.hincrby(job_key, "attempts_made", 1)
            pipe.hset(job_key, mapping={"state": JobState.ACTIVE.value, "processed_on_ms": epoch_ms()})
            return job_id

        job_id = await client.transaction(claim, waiting_key, value_from_callable=True)
        if job_id is None:
            return None
        return await self.get_job(queue_name, job_id)

    async def update_progress(self, queue_name: str, job_id: str, progress: int) -> None:
        client = await self.connect()
        pipe = client.pipeline(transaction=True)
        pipe.hset(self._job_key(queue_name, job_id), "progress", max(0, min(100, int(progress))))
        # Progress counts as a heartbeat.
        pipe.pexpire(self._lock_key(queue_name, job_id), self.lock_duration_ms)
        await pipe.execute()

    async def complete(self, queue_name: str, job_id: str, return_value: Any = None) -> None:
        client = await self.connect()
        now = epoch_ms()
        pipe = client.pipeline(transaction=True)
        pipe.srem(self._key(queue_name, "active"), job_id)
        pipe.delete(self._lock_key(queue_name, job_id))
        pipe.hset(
            self._job_key(queue_name, job_id),
            mapping={
                "state": JobState.COMPLETED.value,
                "finished_on_ms": now,
                "return_value": json.dumps(return_value, default=str),
            },
        )
        pipe.zadd(self._key(queue_name, "completed"), {job_id: now})
        await pipe.execute()
        await self._trim(client, queue_name, JobState.COMPLETED, self.retention.completed)

    async def fail(self, queue_name: str, job_id: str, error: str) -> bool:
        client = await self.connect()
        outcome = await self._fail_job(client, queue_name, job_id, error)
        if outcome is None:
            raise KeyError(f"Job {job_id} not found in queue {queue_name}")
        return await self._after_fail(client, queue_name, outcome, error)

    async def recover_stalled(self, queue_name: str) -> list[str]:
        """
        Fail every active job whose lock has lapsed.

        A worker that dies mid-job stops renewing its lock; the job then goes
        through the normal fail path, so it is retried while attempts remain
        and lands in the failed set afterwards.

        Returns:
            Ids of the recovered jobs
        """
        client = await self.connect()
        recovered: list[str] = []
        for job_id in await client.smembers(self._key(queue_name, "active")):
            if await client.exists(self._lock_key(queue_name, job_id)):
                continue
            outcome = await self._fail_job(client, queue_name, job_id, STALLED_REASON, stalled_only=True)
            if outcome is None:
                continue
            logger.warning(f"[{queue_name}] Job {job_id} stalled")
            await self._after_fail(client, queue_name, outcome, STALLED_REASON)
            recovered.append(job_id)
        return recovered

    async def get_job(self, queue_name: str, job_id: str) -> Optional[Job]:
        client = await self.connect()
        raw = await client.hgetall(self._job_key(queue_name, job_id))
        if not raw:
            return None
        return self._to_job(queue_name, raw)

    async def get_counts(self, queue_name: str) -> Dict[str, int]:
        client = await self.connect()
        await self._promote_delayed(client, queue_name)
        return {
            JobState.WAITING.value: await client.zcard(self._key(queue_name, "waiting")),
            JobState.ACTIVE.value: await client.scard(self._key(queue_name, "active")),
            JobState.COMPLETED.value: await client.zcard(self._key(queue_name, "completed")),
            JobState.FAILED.value: await client.zcard(self._key(queue_name, "failed")),
            JobState.DELAYED.value: await client.zcard(self._key(queue_name, "delayed")),
        }

    async def pause(self, queue_name: str) -> None:
        client = await self.connect()
        await client.set(self._key(queue_name, "paused"), "1")
        logger.info(f"[{queue_name}] Queue paused")

    async def resume(self, queue_name: str) -> None:
        client = await self.connect()
        await client.delete(self._key(queue_name, "paused"))
        logger.info(f"[{queue_name}] Queue resumed")

    async def is_paused(self, queue_name: str) -> bool:
        client = await self.connect()
        return bool(await client.exists(self._key(queue_name, "paused")))

    async def clean(self, queue_name: str, grace_ms: int, limit: int, state: JobState) -> list[str]:
        if state not in (JobState.COMPLETED, JobState.FAILED):
            raise ValueError(f"Cannot clean jobs in state {state.value}")

        client = await self.connect()
        cutoff = epoch_ms() - grace_ms
        job_ids = await client.zrangebyscore(
            self._key(queue_name, state.value), 0, cutoff, start=0, num=max(limit, 0)
        )
        for job_id in job_ids:
            await self._remove(client, queue_name, state, job_id)

        if job_ids:
            logger.info(f"[{queue_name}] Cleaned {len(job_ids)} {state.value} job(s)")
        return list(job_ids)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fail_job(
        self,
        client: aioredis.Redis,
        queue_name: str,
        job_id: str,
        error: str,
        stalled_only: bool = False,
    ) -> Optional[tuple[Job, Optional[int]]]:
        """
        Move an active job to delayed, waiting or failed in one transaction.

        Returns (job, retry delay) with a None delay for a permanent failure,
        or None when the job is gone (or, with ``stalled_only``, no longer
        stalled).
        """
        job_key = self._job_key(queue_name, job_id)
        lock_key = self._lock_key(queue_name, job_id)

        async def transition(pipe: Pipeline) -> Optional[tuple[Job, Optional[int]]]:
            raw = await pipe.hgetall(job_key)
            if not raw:
                return None
            job = self._to_job(queue_name, raw)
            if stalled_only and (job.state != JobState.ACTIVE or await pipe.exists(lock_key)):
                return None

            now = epoch_ms()
            retrying = job.attempts_made < job.max_attempts
            delay_ms = retry_delay_ms(self.retry_policy, job) if retrying else None
            sequence = await pipe.incr(self._key(queue_name, "seq")) if delay_ms == 0 else None

            pipe.multi()
            pipe.srem(self._key(queue_name, "active"), job_id)
            pipe.delete(lock_key)
            if delay_ms is None:
                pipe.hset(
                    job_key,
                    mapping={"state": JobState.FAILED.value, "failed_reason": error, "finished_on_ms": now},
                )
                pipe.zadd(self._key(queue_name, "failed"), {job_id: now})
            elif delay_ms > 0:
                pipe.hset(
                    job_key,
                    mapping={
                        "state": JobState.DELAYED.value,
                        "failed_reason": error,
                        "ready_at_ms": now + delay_ms,
                    },
                )
                pipe.zadd(self._key(queue_name, "delayed"), {job_id: now + delay_ms})
            else:
                pipe.hset(job_key, mapping={"state": JobState.WAITING.value, "failed_reason": error})
                pipe.zadd(self._key(queue_name, "waiting"), {job_id: waiting_score(job.priority, sequence)})
            return job, delay_ms

        return await client.transaction(transition, job_key, lock_key, value_from_callable=True)

    async def _after_fail(
        self,
        client: aioredis.Redis,
        queue_name: str,
        outcome: tuple[Job, Optional[int]],
        error: str,
    ) -> bool:
        job, delay_ms = outcome
        if delay_ms is not None:
            logger.warning(
                f"[{queue_name}] Job {job.id} failed (attempt {job.attempts_made}/"
                f"{job.max_attempts}), retrying in {delay_ms}ms: {error}"
            )
            return True

        logger.error(
            f"[{queue_name}] Job {job.id} failed permanently after {job.attempts_made} attempts: {error}"
        )
        await self._trim(client, queue_name, JobState.FAILED, self.retention.failed)
        return False

    async def _promote_delayed(self, client: aioredis.Redis, queue_name: str) -> None:
        delayed_key = self._key(queue_name, "delayed")
        waiting_key = self._key(queue_name, "waiting")

        async def promote(pipe: Pipeline) -> None:
            due = await pipe.zrangebyscore(delayed_key, 0, epoch_ms())
            if not due:
                return
            scores = {}
            for job_id in due:
                priority = await pipe.hget(self._job_key(queue_name, job_id), "priority")
                sequence = await pipe.incr(self._key(queue_name, "seq"))
                scores[job_id] = waiting_score(int(priority or DEFAULT_PRIORITY), sequence)

            pipe.multi()
            for job_id, score in scores.items():
                pipe.zrem(delayed_key, job_id)
                pipe.hset(self._job_key(queue_name, job_id), "state", JobState.WAITING.value)
                pipe.zadd(waiting_key, {job_id: score})

        await client.transaction(promote, delayed_key)

    async def _trim(self, client: aioredis.Redis, queue_name: str, state: JobState, keep: int) -> None:
        set_key = self._key(queue_name, state.value)
        count = await client.zcard(set_key)
        excess = count - keep
        if excess <= 0:
            return
        for job_id in await client.zrange(set_key, 0, excess - 1):
            await self._remove(client, queue_name, state, job_id)

    async def _remove(self, client: aioredis.Redis, queue_name: str, state: JobState, job_id: str) -> None:
        pipe = client.pipeline(transaction=True)
        pipe.zrem(self._key(queue_name, state.value), job_id)
        pipe.delete(self._job_key(queue_name, job_id))
        await pipe.execute()

    @staticmethod
    def _to_job(queue_name: str, raw: Dict[str, str]) -> Job:
        return_value = raw.get("return_value")
        return Job(
            id=raw["id"],
            queue_name=queue_name,
            name=raw.get("name", ""),
            data=json.loads(raw.get("data") or "{}"),
            priority=int(raw.get("priority", DEFAULT_PRIORITY)),
            state=JobState(raw.get("state", JobState.WAITING.value)),
            attempts_made=int(raw.get("attempts_made", 0)),
            max_attempts=int(raw.get("max_attempts", 1)),
            progress=int(raw.get("progress", 0)),
            created_at_ms=int(raw.get("created_at_ms", 0)),
            ready_at_ms=int(raw.get("ready_at_ms", 0)),
            processed_on_ms=_opt_int(raw.get("processed_on_ms")),
            finished_on_ms=_opt_int(raw.get("finished_on_ms")),
            failed_reason=raw.get("failed_reason"),
            return_value=json.loads(return_value) if return_value else None,
            backoff_seconds=float(raw["backoff_seconds"]) if raw.get("backoff_seconds") else None,
        )
