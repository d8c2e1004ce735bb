"""
Workflow template entities.

Templates are static, immutable definitions of multi-step SEO procedures.
"""
from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional

from core.domain.enums import DependencyType, PolicyEnvironment, RiskLevel


@dataclass(frozen=True)
class ActionPolicy:
    """
    Execution policy attached to an action.

    DRY_RUN actions are simulated and never reach a target system.
    """

    environment: PolicyEnvironment = PolicyEnvironment.DRY_RUN
    requires_approval: bool = False
    max_pages: Optional[int] = None
    max_patches: Optional[int] = None
    timeout_ms: Optional[int] = None
    respect_robots: Optional[bool] = None
    constraints: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict, dropping unset limits."""
        data: dict[str, Any] = {
            "environment": self.environment.value,
            "requires_approval": self.requires_approval,
        }
        for name in ("max_pages", "max_patches", "timeout_ms", "respect_robots"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        if self.constraints:
            data["constraints"] = dict(self.constraints)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ActionPolicy":
        """Build a policy from a dict; unknown keys are kept as constraints."""
        known = {f.name for f in fields(cls)}
        constraints = dict(data.get("constraints") or {})
        constraints.update({k: v for k, v in data.items() if k not in known})
        return cls(
            environment=PolicyEnvironment(data.get("environment", PolicyEnvironment.DRY_RUN)),
            requires_approval=bool(data.get("requires_approval", False)),
            max_pages=data.get("max_pages"),
            max_patches=data.get("max_patches"),
            timeout_ms=data.get("timeout_ms"),
            respect_robots=data.get("respect_robots"),
            constraints=constraints,
        )


@dataclass(frozen=True)
class WorkflowAction:
    """One unit of work within a workflow template."""

    id: str
    action_type: str
    title: str
    description: str
    payload: Mapping[str, Any]
    policy: ActionPolicy
    order: int
    depends_on: tuple[str, ...] = ()
    parallelizable: bool = False
    estimated_duration: int = 10  # minutes


@dataclass(frozen=True)
class WorkflowDependency:
    """External prerequisite checked against live site state."""

    type: DependencyType
    requirement: str
    description: str = ""
    optional: bool = False


@dataclass(frozen=True)
class WorkflowTemplate:
    """Declarative multi-action workflow definition."""

    id: str
    name: str
    description: str
    category: str
    triggers: tuple[str, ...]
    estimated_duration: int
    risk_level: RiskLevel
    actions: tuple[WorkflowAction, ...]
    dependencies: tuple[WorkflowDependency, ...] = ()

    def get_action(self, action_id: str) -> Optional[WorkflowAction]:
        for action in self.actions:
            if action.id == action_id:
                return action
        return None

    @property
    def action_ids(self) -> list[str]:
        return [action.id for action in self.actions]
