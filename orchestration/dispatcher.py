"""Action dispatcher - creates the run record and enqueues the job."""

from dataclasses import dataclass
from typing import Any, Optional

from core.domain.entities import RunRecord
from core.domain.enums import ActionStatus, RunStatus
from core.domain.exceptions import ActionCreationFailure, DuplicateIdempotencyKey
from core.domain.repositories import StatusRepository
from core.domain.value_objects import IdempotencyKey
from core.infrastructure.logging import get_logger
from core.utils.datetime import utc_now

from .broker import DEFAULT_PRIORITY, JobBrokerProtocol, JobOptions
from .models import JobData
from .queues import ACTION_QUEUE_ROUTES, QueueName, route_action_type


@dataclass
class QueueOptions:
    """Caller options for queue_action."""

    priority: int = DEFAULT_PRIORITY
    delay_ms: int = 0
    idempotency_key: Optional[str] = None


class ActionDispatcher:
    """
    Turns a persisted action into a queued job.

    Order of effects: run insert, action -> queued, broker add. The job id
    is the idempotency key, so repeating a call with the same key is a no-op.
    """

    def __init__(
        self,
        status_repository: StatusRepository,
        broker: JobBrokerProtocol,
        routes: dict[str, QueueName] = ACTION_QUEUE_ROUTES,
    ):
        self.status_repository = status_repository
        self.broker = broker
        self.routes = routes
        self.logger = get_logger("orchestration.dispatcher")

    async def queue_action(
        self,
        action_id: str,
        user_token: str,
        action_type: str,
        payload: dict[str, Any],
        policy: dict[str, Any],
        options: Optional[QueueOptions] = None,
    ) -> str:
        """
        Queue an action for execution.

        Args:
            action_id: Persisted action id
            user_token: Owner token
            action_type: Action type, used for queue routing
            payload: Handler input
            policy: Policy snapshot stored on the run and sent with the job
            options: Priority, delay and an optional caller-supplied idempotency key

        Returns:
            Job id (equal to the idempotency key)

        Raises:
            ActionCreationFailure: If the run cannot be created or the job cannot be enqueued
        """
        options = options or QueueOptions()
        try:
            key = str(
                IdempotencyKey(options.idempotency_key)
                if options.idempotency_key
                else IdempotencyKey.generate(action_id)
            )
            existing = await self.status_repository.find_run_by_idempotency_key(key)
            queue = route_action_type(action_type, self.routes)
        except Exception as e:
            raise ActionCreationFailure(action_id, f"Failed to prepare dispatch: {e}") from e

        if existing is not None:
            self.logger.info(f"Run {existing.id} already exists for key {key}, not enqueuing again")
            return key

        try:
            run = await self.status_repository.create_run(
                RunRecord(
                    action_id=action_id,
                    user_token=user_token,
                    idempotency_key=key,
                    policy=dict(policy),
                    status=RunStatus.QUEUED,
                )
            )
        except DuplicateIdempotencyKey:
            self.logger.info(f"Run for key {key} was created concurrently, not enqueuing again")
            return key
        except Exception as e:
            raise ActionCreationFailure(action_id, f"Failed to create run record: {e}") from e

        try:
            await self.status_repository.update_action_status(action_id, ActionStatus.QUEUED)
        except Exception as e:
            await self._mark_dispatch_failed(run.id, action_id, str(e), fail_action=False)
            raise ActionCreationFailure(action_id, f"Failed to mark action queued: {e}") from e

        job = JobData(
            action_id=action_id,
            action_type=action_type,
            user_token=user_token,
            run_id=run.id,
            idempotency_key=key,
            policy=dict(policy),
            payload=dict(payload),
        )

        try:
            job_id = await self.broker.add(
                queue.value,
                f"action-{action_id}",
                job.to_dict(),
                JobOptions(priority=options.priority, delay_ms=options.delay_ms, job_id=key),
            )
        except Exception as e:
            await self._mark_dispatch_failed(run.id, action_id, str(e), fail_action=True)
            raise ActionCreationFailure(action_id, f"Failed to enqueue job: {e}") from e

        self.logger.info(
            f"✅ Action {action_id} queued on {queue.value} as job {job_id} (priority={options.priority})"
        )
        return job_id

    async def _mark_dispatch_failed(
        self, run_id: str, action_id: str, error: str, fail_action: bool
    ) -> None:
        try:
            await self.status_repository.update_run(
                run_id, RunStatus.FAILED, error_details=error, completed_at=utc_now()
            )
            if fail_action:
                await self.status_repository.update_action_status(
                    action_id, ActionStatus.FAILED, error_message=error
                )
        except Exception as e:
            self.logger.error(f"Could not record dispatch failure for run {run_id}: {e}", exc_info=True)
