"""Orchestration models - ExecutionPlan, BlockedAction, WorkflowExecutionResult, JobData, JobResult."""

from dataclasses import dataclass, field
from typing import Any

from core.domain.entities import WorkflowTemplate

BLOCKED_MISSING_DEPENDENCIES = "Missing dependencies"
BLOCKED_WORKFLOW_DEPENDENCIES = "Workflow dependencies not ready"


@dataclass
class BlockedAction:
    """An action that will not be enqueued, and why."""

    action_id: str
    reason: str
    missing_dependencies: list[str] = field(default_factory=list)


@dataclass
class ExecutionPlan:
    """Dependency-checked schedule for one template applied to one idea."""

    idea_id: str
    template: WorkflowTemplate
    execution_order: list[list[str]]
    total_estimated_duration: int
    ready_actions: list[str] = field(default_factory=list)
    blocked_actions: list[BlockedAction] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    missing_dependencies: list[str] = field(default_factory=list)
    approval_required: list[str] = field(default_factory=list)

    def is_blocked(self, action_id: str) -> bool:
        return any(blocked.action_id == action_id for blocked in self.blocked_actions)


@dataclass
class WorkflowExecutionResult:
    """Summary returned after a plan has been executed."""

    action_ids: list[str]
    message: str
    failed_actions: list[str] = field(default_factory=list)


@dataclass
class JobData:
    """Payload carried by every action job."""

    action_id: str
    action_type: str
    user_token: str
    run_id: str
    idempotency_key: str
    policy: dict[str, Any] = field(default_factory=dict)
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "actionId": self.action_id,
            "actionType": self.action_type,
            "userToken": self.user_token,
            "runId": self.run_id,
            "idempotencyKey": self.idempotency_key,
            "policy": self.policy,
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JobData":
        return cls(
            action_id=data["actionId"],
            action_type=data["actionType"],
            user_token=data["userToken"],
            run_id=data["runId"],
            idempotency_key=data["idempotencyKey"],
            policy=dict(data.get("policy") or {}),
            payload=dict(data.get("payload") or {}),
        )


@dataclass
class JobResult:
    """Outcome of a processed job."""

    success: bool
    run_id: str
    stats: dict[str, Any] = field(default_factory=dict)
    output: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "runId": self.run_id, "stats": self.stats, "output": self.output}
