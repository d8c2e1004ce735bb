"""Repository interface for action, run and idea status."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Optional

from ..entities import RUN_UPDATE_FIELDS, ActionRecord, RunRecord
from ..enums import ActionStatus, RunStatus, can_transition_action, can_transition_run
from ..exceptions import InvalidStatusTransition


def ensure_action_transition(action_id: str, current: ActionStatus, new: ActionStatus) -> None:
    """Raise InvalidStatusTransition unless the action may move to ``new``."""
    if not can_transition_action(ActionStatus(current), ActionStatus(new)):
        raise InvalidStatusTransition("Action", action_id, ActionStatus(current).value, ActionStatus(new).value)


def ensure_run_transition(run_id: str, current: RunStatus, new: RunStatus, changes: dict) -> None:
    """Raise InvalidStatusTransition or ValueError for an invalid run update."""
    unknown = set(changes) - RUN_UPDATE_FIELDS
    if unknown:
        raise ValueError(f"Unknown run fields: {', '.join(sorted(unknown))}")
    if not can_transition_run(RunStatus(current), RunStatus(new)):
        raise InvalidStatusTransition("Run", run_id, RunStatus(current).value, RunStatus(new).value)


class StatusRepository(ABC):
    """
    Durable store for Action and Run rows.

    Implementations must reject status changes that skip a lifecycle state
    by raising InvalidStatusTransition, and must refuse a second run for an
    idempotency key with DuplicateIdempotencyKey.
    """

    @abstractmethod
    async def create_action(self, action: ActionRecord) -> ActionRecord:
        """Persist a new action.

        Args:
            action: Action to insert (status is normally PROPOSED)

        Returns:
            The stored action with timestamps set
        """
        pass

    @abstractmethod
    async def get_action(self, action_id: str) -> Optional[ActionRecord]:
        """Return the action or None."""
        pass

    @abstractmethod
    async def update_action_status(
        self,
        action_id: str,
        status: ActionStatus,
        error_message: Optional[str] = None,
    ) -> None:
        """Move an action to ``status``.

        Args:
            action_id: Action identifier
            status: Target status
            error_message: Failure reason, stored when status is FAILED
        """
        pass

    @abstractmethod
    async def create_run(self, run: RunRecord) -> RunRecord:
        """Persist a new run record in QUEUED status."""
        pass

    @abstractmethod
    async def get_run(self, run_id: str) -> Optional[RunRecord]:
        """Return the run or None."""
        pass

    @abstractmethod
    async def find_run_by_idempotency_key(self, idempotency_key: str) -> Optional[RunRecord]:
        """Return the run created for ``idempotency_key`` or None."""
        pass

    @abstractmethod
    async def update_run(self, run_id: str, status: RunStatus, **changes: Any) -> None:
        """Move a run to ``status`` and set any of RUN_UPDATE_FIELDS.

        Args:
            run_id: Run identifier
            status: Target status
            **changes: stats, output_data, error_details, started_at,
                completed_at, duration_ms
        """
        pass

    @abstractmethod
    async def list_runs(self, action_id: str) -> List[RunRecord]:
        """Return all runs of an action, oldest first."""
        pass

    @abstractmethod
    async def mark_idea_adopted(self, idea_id: str, adopted_at: datetime) -> None:
        """Flag the idea a workflow was executed for as adopted."""
        pass
