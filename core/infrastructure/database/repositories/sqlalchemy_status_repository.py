"""
SQLAlchemy Status Repository Implementation.

Implements StatusRepository on the agent_actions, agent_runs and
agent_ideas tables. Each operation runs in its own session.
"""
from datetime import datetime, timezone
from typing import Any, List, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.domain.entities import ActionRecord, RunRecord
from core.domain.enums import ActionStatus, RunStatus
from core.domain.exceptions import DuplicateIdempotencyKey
from core.domain.repositories import StatusRepository, ensure_action_transition, ensure_run_transition
from core.infrastructure.database.models import ActionModel, IdeaModel, RunModel
from core.utils.datetime import utc_now


logger = logging.getLogger(__name__)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; every stored timestamp is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLAlchemyStatusRepository(StatusRepository):
    """
    SQLAlchemy implementation of StatusRepository.

    Handles persistence of actions and runs using PostgreSQL (or SQLite in tests).
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """
        Initialize repository with a session factory.

        Args:
            session_factory: SQLAlchemy async session factory
        """
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def create_action(self, action: ActionRecord) -> ActionRecord:
        now = utc_now()
        model = ActionModel(
            id=action.id,
            idea_id=action.idea_id,
            user_token=action.user_token,
            site_url=action.site_url,
            action_type=action.action_type,
            title=action.title,
            description=action.description,
            payload=dict(action.payload),
            policy=dict(action.policy),
            priority_score=action.priority_score,
            status=ActionStatus(action.status).value,
            created_at=now,
            updated_at=now,
        )
        async with self._session_factory() as session:
            session.add(model)
            await session.commit()

        logger.info(f"✅ Created action {model.id} ({action.action_type})")
        return self._action_to_record(model)

    async def get_action(self, action_id: str) -> Optional[ActionRecord]:
        async with self._session_factory() as session:
            model = await session.get(ActionModel, action_id)
            return self._action_to_record(model) if model else None

    async def update_action_status(
        self,
        action_id: str,
        status: ActionStatus,
        error_message: Optional[str] = None,
    ) -> None:
        status = ActionStatus(status)
        async with self._session_factory() as session:
            model = await session.get(ActionModel, action_id)
            if model is None:
                raise LookupError(f"Action {action_id} not found")

            ensure_action_transition(action_id, ActionStatus(model.status), status)
            if model.status == status.value:
                return

            now = utc_now()
            model.status = status.value
            model.updated_at = now
            if status == ActionStatus.QUEUED:
                model.queued_at = now
            elif status == ActionStatus.RUNNING:
                model.started_at = now
            elif status == ActionStatus.FAILED:
                model.failed_at = now
                if error_message:
                    model.error_message = error_message
            await session.commit()

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def create_run(self, run: RunRecord) -> RunRecord:
        model = RunModel(
            id=run.id,
            action_id=run.action_id,
            user_token=run.user_token,
            idempotency_key=run.idempotency_key,
            policy=dict(run.policy),
            status=RunStatus(run.status).value,
            stats=dict(run.stats),
            output_data=dict(run.output_data),
            created_at=utc_now(),
        )
        async with self._session_factory() as session:
            session.add(model)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateIdempotencyKey(run.idempotency_key) from e

        return self._run_to_record(model)

    async def get_run(self, run_id: str) -> Optional[RunRecord]:
        async with self._session_factory() as session:
            model = await session.get(RunModel, run_id)
            return self._run_to_record(model) if model else None

    async def find_run_by_idempotency_key(self, idempotency_key: str) -> Optional[RunRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(RunModel).where(RunModel.idempotency_key == idempotency_key)
            )
            model = result.scalar_one_or_none()
            return self._run_to_record(model) if model else None

    async def update_run(self, run_id: str, status: RunStatus, **changes: Any) -> None:
        status = RunStatus(status)
        async with self._session_factory() as session:
            model = await session.get(RunModel, run_id)
            if model is None:
                raise LookupError(f"Run {run_id} not found")

            ensure_run_transition(run_id, RunStatus(model.status), status, changes)
            model.status = status.value
            for name, value in changes.items():
                setattr(model, name, value)
            await session.commit()

    async def list_runs(self, action_id: str) -> List[RunRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(RunModel)
                .where(RunModel.action_id == action_id)
                .order_by(RunModel.created_at)
            )
            return [self._run_to_record(model) for model in result.scalars().all()]

    # ------------------------------------------------------------------
    # Ideas
    # ------------------------------------------------------------------

    async def mark_idea_adopted(self, idea_id: str, adopted_at: datetime) -> None:
        async with self._session_factory() as session:
            result = await session.execute(
                update(IdeaModel)
                .where(IdeaModel.id == idea_id)
                .values(status="adopted", adopted_at=adopted_at, updated_at=utc_now())
            )
            await session.commit()

        if result.rowcount == 0:
            logger.warning(f"Idea {idea_id} not found, adoption not recorded")
        else:
            logger.info(f"✅ Idea {idea_id} marked adopted")

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _action_to_record(model: ActionModel) -> ActionRecord:
        return ActionRecord(
            id=model.id,
            idea_id=model.idea_id,
            user_token=model.user_token,
            site_url=model.site_url,
            action_type=model.action_type,
            title=model.title,
            description=model.description or "",
            payload=dict(model.payload or {}),
            policy=dict(model.policy or {}),
            priority_score=model.priority_score,
            status=ActionStatus(model.status),
            queued_at=_aware(model.queued_at),
            started_at=_aware(model.started_at),
            failed_at=_aware(model.failed_at),
            error_message=model.error_message,
            created_at=_aware(model.created_at),
            updated_at=_aware(model.updated_at),
        )

    @staticmethod
    def _run_to_record(model: RunModel) -> RunRecord:
        return RunRecord(
            id=model.id,
            action_id=model.action_id,
            user_token=model.user_token,
            idempotency_key=model.idempotency_key,
            policy=dict(model.policy or {}),
            status=RunStatus(model.status),
            stats=dict(model.stats or {}),
            output_data=dict(model.output_data or {}),
            error_details=model.error_details,
            started_at=_aware(model.started_at),
            completed_at=_aware(model.completed_at),
            duration_ms=model.duration_ms,
            created_at=_aware(model.created_at),
        )
