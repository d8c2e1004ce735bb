"""
Workflow Status Enums.

Status values and allowed transitions for persisted actions and runs,
plus the policy/risk/dependency vocabularies used by workflow templates.
"""
from enum import Enum


class ActionStatus(str, Enum):
    """Lifecycle of a persisted agent action."""

    PROPOSED = "proposed"
    QUEUED = "queued"
    RUNNING = "running"
    NEEDS_VERIFICATION = "needs_verification"
    FAILED = "failed"


class RunStatus(str, Enum):
    """Lifecycle of a single execution attempt of an action."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PolicyEnvironment(str, Enum):
    """Environment an action is allowed to touch."""

    DRY_RUN = "DRY_RUN"
    STAGING = "STAGING"
    PRODUCTION = "PRODUCTION"


class RiskLevel(str, Enum):
    """Workflow risk classification."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DependencyType(str, Enum):
    """Kinds of external prerequisites a workflow can declare."""

    INTEGRATION = "integration"
    PERMISSION = "permission"
    DATA = "data"


# NEEDS_VERIFICATION has no outgoing edge here: the verification component owns it.
ACTION_TRANSITIONS: dict[ActionStatus, frozenset[ActionStatus]] = {
    ActionStatus.PROPOSED: frozenset({ActionStatus.QUEUED}),
    ActionStatus.QUEUED: frozenset({ActionStatus.RUNNING, ActionStatus.FAILED}),
    ActionStatus.RUNNING: frozenset(
        {ActionStatus.RUNNING, ActionStatus.NEEDS_VERIFICATION, ActionStatus.FAILED}
    ),
    ActionStatus.FAILED: frozenset({ActionStatus.RUNNING, ActionStatus.QUEUED}),
    ActionStatus.NEEDS_VERIFICATION: frozenset(),
}

RUN_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.QUEUED: frozenset({RunStatus.RUNNING, RunStatus.FAILED}),
    RunStatus.RUNNING: frozenset({RunStatus.RUNNING, RunStatus.SUCCEEDED, RunStatus.FAILED}),
    RunStatus.FAILED: frozenset({RunStatus.RUNNING}),
    RunStatus.SUCCEEDED: frozenset(),
}


def can_transition_action(current: ActionStatus, new: ActionStatus) -> bool:
    """Return True if an action may move from ``current`` to ``new``."""
    return current == new or new in ACTION_TRANSITIONS[current]


def can_transition_run(current: RunStatus, new: RunStatus) -> bool:
    """Return True if a run may move from ``current`` to ``new``."""
    return current == new or new in RUN_TRANSITIONS[current]
