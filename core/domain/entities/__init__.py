"""Domain entities."""

from .status import RUN_UPDATE_FIELDS, ActionRecord, RunRecord
from .workflow import ActionPolicy, WorkflowAction, WorkflowDependency, WorkflowTemplate

__all__ = [
    "RUN_UPDATE_FIELDS",
    "ActionPolicy",
    "ActionRecord",
    "RunRecord",
    "WorkflowAction",
    "WorkflowDependency",
    "WorkflowTemplate",
]
