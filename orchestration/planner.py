"""Execution planner - batching, classification and duration estimates."""

from typing import Iterable, Sequence

from core.domain.entities import WorkflowAction, WorkflowDependency, WorkflowTemplate
from core.domain.enums import RiskLevel
from core.infrastructure.logging import get_logger

from .models import (
    BLOCKED_MISSING_DEPENDENCIES,
    BLOCKED_WORKFLOW_DEPENDENCIES,
    BlockedAction,
    ExecutionPlan,
)
from .resolver import DependencyResolver, normalize_requirement

DEFAULT_ACTION_DURATION = 10

# External requirements an action type cannot run without.
ACTION_DEPENDENCY_MAP: dict[str, tuple[str, ...]] = {
    "sitemap_generation": ("google_search_console",),
    "technical_seo_fix": ("website_management",),
    "content_analysis": ("google_search_console", "search_performance_data"),
}

HIGH_RISK_WARNING = "This is a high-risk workflow that requires careful monitoring"


def sort_actions(actions: Iterable[WorkflowAction]) -> list[WorkflowAction]:
    """Stable sort by ascending stage order."""
    return sorted(actions, key=lambda action: action.order)


def build_execution_order(actions: Sequence[WorkflowAction]) -> list[list[str]]:
    """
    Group actions into batches.

    Consecutive parallelizable actions of the same order share a batch.
    A non-parallelizable action always gets a batch of its own.

    Args:
        actions: Template actions in any order

    Returns:
        Batches of action ids, stage order non-decreasing
    """
    batches: list[list[str]] = []
    current: list[str] = []
    current_order = None

    for action in sort_actions(actions):
        if action.parallelizable and action.order == current_order and current:
            current.append(action.id)
            continue

        if current:
            batches.append(current)
        current = [action.id]
        # Only a parallelizable batch may be joined by the next action.
        current_order = action.order if action.parallelizable else None

    if current:
        batches.append(current)
    return batches


def action_requires_dependency(action: WorkflowAction, requirement: str) -> bool:
    """Return True if ``action`` cannot run while ``requirement`` is unmet."""
    needed = {normalize_requirement(r) for r in ACTION_DEPENDENCY_MAP.get(action.action_type, ())}
    return normalize_requirement(requirement) in needed


def estimate_duration(template: WorkflowTemplate, execution_order: list[list[str]]) -> int:
    """Sum of the longest action per batch, in minutes."""
    total = 0
    for batch in execution_order:
        durations = []
        for action_id in batch:
            action = template.get_action(action_id)
            durations.append(action.estimated_duration if action else DEFAULT_ACTION_DURATION)
        total += max(durations, default=0)
    return total


def classify_actions(
    template: WorkflowTemplate,
    missing: list[WorkflowDependency],
    execution_order: list[list[str]],
) -> tuple[list[str], list[BlockedAction]]:
    """Split template actions into ready ids and blocked actions."""
    ready: list[str] = []
    blocked: list[BlockedAction] = []
    first_batch = set(execution_order[0]) if execution_order else set()

    for action in sort_actions(template.actions):
        missing_for_action = [
            dep.requirement for dep in missing if action_requires_dependency(action, dep.requirement)
        ]
        if missing_for_action:
            blocked.append(
                BlockedAction(
                    action_id=action.id,
                    reason=BLOCKED_MISSING_DEPENDENCIES,
                    missing_dependencies=missing_for_action,
                )
            )
            continue

        unready = [dep for dep in action.depends_on if dep not in ready and dep not in first_batch]
        if unready:
            blocked.append(
                BlockedAction(
                    action_id=action.id,
                    reason=BLOCKED_WORKFLOW_DEPENDENCIES,
                    missing_dependencies=unready,
                )
            )
        else:
            ready.append(action.id)

    return ready, blocked


class ExecutionPlanner:
    """Builds ExecutionPlans; dependency problems are reported, never raised."""

    def __init__(self, resolver: DependencyResolver):
        self.resolver = resolver
        self.logger = get_logger("orchestration.planner")

    async def create_execution_plan(
        self,
        idea_id: str,
        template: WorkflowTemplate,
        user_token: str,
        site_url: str,
    ) -> ExecutionPlan:
        """
        Create an execution plan for a workflow template.

        Args:
            idea_id: Idea the workflow is executed for
            template: Selected workflow template
            user_token: Owner token
            site_url: Target site

        Returns:
            ExecutionPlan with ready/blocked classification and warnings
        """
        self.logger.info(f"Creating execution plan for idea {idea_id} using template {template.name}")

        missing = await self.resolver.check_dependencies(template.dependencies, user_token, site_url)
        execution_order = build_execution_order(template.actions)
        ready, blocked = classify_actions(template, missing, execution_order)

        warnings = []
        if blocked:
            warnings.append(f"{len(blocked)} actions are blocked due to missing dependencies")
        if template.risk_level == RiskLevel.HIGH:
            warnings.append(HIGH_RISK_WARNING)

        approval_required = [
            action.id
            for action in sort_actions(template.actions)
            if action.id in ready and action.policy.requires_approval
        ]

        plan = ExecutionPlan(
            idea_id=idea_id,
            template=template,
            execution_order=execution_order,
            total_estimated_duration=estimate_duration(template, execution_order),
            ready_actions=ready,
            blocked_actions=blocked,
            warnings=warnings,
            missing_dependencies=[dep.requirement for dep in missing],
            approval_required=approval_required,
        )

        self.logger.info(
            f"Plan for idea {idea_id}: {len(ready)} ready, {len(blocked)} blocked, "
            f"{plan.total_estimated_duration} minutes"
        )
        return plan
