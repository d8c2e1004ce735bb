"""Domain enums."""

from .workflow_status import (
    ACTION_TRANSITIONS,
    RUN_TRANSITIONS,
    ActionStatus,
    DependencyType,
    PolicyEnvironment,
    RiskLevel,
    RunStatus,
    can_transition_action,
    can_transition_run,
)

__all__ = [
    "ACTION_TRANSITIONS",
    "RUN_TRANSITIONS",
    "ActionStatus",
    "DependencyType",
    "PolicyEnvironment",
    "RiskLevel",
    "RunStatus",
    "can_transition_action",
    "can_transition_run",
]
