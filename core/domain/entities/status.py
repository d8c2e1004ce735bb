"""
Persisted status records.

ActionRecord and RunRecord mirror the agent_actions and agent_runs rows.
Each record is only mutated by the worker that owns it.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
import uuid

from core.domain.enums import ActionStatus, RunStatus


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ActionRecord:
    """A workflow action as stored for a user's site."""

    user_token: str
    site_url: str
    action_type: str
    title: str
    description: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    policy: dict[str, Any] = field(default_factory=dict)
    priority_score: int = 50
    idea_id: Optional[str] = None
    status: ActionStatus = ActionStatus.PROPOSED
    id: str = field(default_factory=_new_id)
    queued_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class RunRecord:
    """One execution attempt of an action, keyed by its idempotency key."""

    action_id: str
    user_token: str
    idempotency_key: str
    policy: dict[str, Any] = field(default_factory=dict)
    status: RunStatus = RunStatus.QUEUED
    id: str = field(default_factory=_new_id)
    stats: dict[str, Any] = field(default_factory=dict)
    output_data: dict[str, Any] = field(default_factory=dict)
    error_details: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    created_at: Optional[datetime] = None


# Columns a worker may set alongside a run status change.
RUN_UPDATE_FIELDS = frozenset(
    {"stats", "output_data", "error_details", "started_at", "completed_at", "duration_ms"}
)
