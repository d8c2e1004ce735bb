"""
In-memory Status Repository Implementation.

Used by tests and single-process deployments without a database.
"""
from copy import deepcopy
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from core.domain.entities import ActionRecord, RunRecord
from core.domain.enums import ActionStatus, RunStatus
from core.domain.exceptions import DuplicateIdempotencyKey
from core.domain.repositories import StatusRepository, ensure_action_transition, ensure_run_transition
from core.utils.datetime import utc_now


logger = logging.getLogger(__name__)


class InMemoryStatusRepository(StatusRepository):
    """
    In-memory implementation of StatusRepository.

    Records are deep-copied on the way in and out so callers never share
    state with the store, nested payload and policy dicts included.
    """

    def __init__(self):
        self._actions: Dict[str, ActionRecord] = {}
        self._runs: Dict[str, RunRecord] = {}
        self._runs_by_key: Dict[str, str] = {}
        self.adopted_ideas: Dict[str, datetime] = {}
        logger.info("InMemoryStatusRepository initialized (in-memory storage)")

    async def create_action(self, action: ActionRecord) -> ActionRecord:
        now = utc_now()
        stored = deepcopy(replace(action, status=ActionStatus(action.status), created_at=now, updated_at=now))
        self._actions[stored.id] = stored
        return deepcopy(stored)

    async def get_action(self, action_id: str) -> Optional[ActionRecord]:
        action = self._actions.get(action_id)
        return deepcopy(action) if action else None

    async def update_action_status(
        self,
        action_id: str,
        status: ActionStatus,
        error_message: Optional[str] = None,
    ) -> None:
        action = self._actions.get(action_id)
        if action is None:
            raise LookupError(f"Action {action_id} not found")

        status = ActionStatus(status)
        ensure_action_transition(action_id, action.status, status)
        if action.status == status:
            return

        now = utc_now()
        changes: Dict[str, Any] = {"status": status, "updated_at": now}
        if status == ActionStatus.QUEUED:
            changes["queued_at"] = now
        elif status == ActionStatus.RUNNING:
            changes["started_at"] = now
        elif status == ActionStatus.FAILED:
            changes["failed_at"] = now
            if error_message:
                changes["error_message"] = error_message
        self._actions[action_id] = replace(action, **changes)

    async def create_run(self, run: RunRecord) -> RunRecord:
        existing_id = self._runs_by_key.get(run.idempotency_key)
        if existing_id is not None:
            raise DuplicateIdempotencyKey(run.idempotency_key, existing_id)

        stored = deepcopy(replace(run, status=RunStatus(run.status), created_at=utc_now()))
        self._runs[stored.id] = stored
        self._runs_by_key[stored.idempotency_key] = stored.id
        return deepcopy(stored)

    async def get_run(self, run_id: str) -> Optional[RunRecord]:
        run = self._runs.get(run_id)
        return deepcopy(run) if run else None

    async def find_run_by_idempotency_key(self, idempotency_key: str) -> Optional[RunRecord]:
        run_id = self._runs_by_key.get(idempotency_key)
        return await self.get_run(run_id) if run_id else None

    async def update_run(self, run_id: str, status: RunStatus, **changes: Any) -> None:
        run = self._runs.get(run_id)
        if run is None:
            raise LookupError(f"Run {run_id} not found")

        status = RunStatus(status)
        ensure_run_transition(run_id, run.status, status, changes)
        self._runs[run_id] = replace(run, status=status, **deepcopy(changes))

    async def list_runs(self, action_id: str) -> List[RunRecord]:
        runs = [deepcopy(run) for run in self._runs.values() if run.action_id == action_id]
        return sorted(runs, key=lambda run: run.created_at)

    async def mark_idea_adopted(self, idea_id: str, adopted_at: datetime) -> None:
        self.adopted_ideas[idea_id] = adopted_at
        logger.info(f"Idea {idea_id} marked adopted")
