"""Domain layer - pure domain models and interfaces."""

from .entities import (
    ActionPolicy,
    ActionRecord,
    RunRecord,
    WorkflowAction,
    WorkflowDependency,
    WorkflowTemplate,
)
from .repositories import StatusRepository
from .value_objects import IdempotencyKey

__all__ = [
    "ActionPolicy",
    "ActionRecord",
    "IdempotencyKey",
    "RunRecord",
    "StatusRepository",
    "WorkflowAction",
    "WorkflowDependency",
    "WorkflowTemplate",
]
