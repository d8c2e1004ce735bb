"""
API request/response models.

Domain dataclasses are converted here so routes stay thin.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.domain.entities import WorkflowTemplate
from orchestration.models import ExecutionPlan, WorkflowExecutionResult


# =============================================================================
# REQUESTS
# =============================================================================

class EvidenceRequest(BaseModel):
    """Site signals that bias template selection."""
    site_age: Optional[str] = None
    has_technical_issues: bool = False
    content_performance: Optional[str] = None


class SuggestWorkflowRequest(BaseModel):
    """Request model for workflow suggestion."""
    title: str = Field(..., min_length=1)
    hypothesis: Optional[str] = None
    evidence: Optional[EvidenceRequest] = None


class PlanRequest(BaseModel):
    """Request model for plan creation and execution."""
    idea_id: str = Field(..., min_length=1)
    template_id: str = Field(..., min_length=1)
    user_token: str = Field(..., min_length=1)
    site_url: str = Field(..., min_length=1)


class QueueActionRequest(BaseModel):
    """Request model for queueing a single persisted action."""
    action_id: str = Field(..., min_length=1)
    user_token: str = Field(..., min_length=1)
    action_type: str = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)
    policy: Dict[str, Any] = Field(default_factory=dict)
    priority: int = Field(default=50, ge=1, le=100)
    delay_ms: int = Field(default=0, ge=0)
    idempotency_key: Optional[str] = None


class CleanQueueRequest(BaseModel):
    """Request model for queue cleaning."""
    older_than_ms: int = Field(default=24 * 60 * 60 * 1000, ge=0)


# =============================================================================
# RESPONSES
# =============================================================================

class QueueActionResponse(BaseModel):
    job_id: str


class ExecutionResultResponse(BaseModel):
    action_ids: List[str]
    failed_actions: List[str]
    message: str


def template_to_dict(template: WorkflowTemplate) -> Dict[str, Any]:
    """Serialize a template for JSON responses."""
    return {
        "id": template.id,
        "name": template.name,
        "description": template.description,
        "category": template.category,
        "triggers": list(template.triggers),
        "estimated_duration": template.estimated_duration,
        "risk_level": template.risk_level.value,
        "actions": [
            {
                "id": action.id,
                "action_type": action.action_type,
                "title": action.title,
                "description": action.description,
                "payload": dict(action.payload),
                "policy": action.policy.to_dict(),
                "order": action.order,
                "depends_on": list(action.depends_on),
                "parallelizable": action.parallelizable,
                "estimated_duration": action.estimated_duration,
            }
            for action in template.actions
        ],
        "dependencies": [
            {
                "type": dependency.type.value,
                "requirement": dependency.requirement,
                "description": dependency.description,
                "optional": dependency.optional,
            }
            for dependency in template.dependencies
        ],
    }


def plan_to_dict(plan: ExecutionPlan) -> Dict[str, Any]:
    """Serialize an execution plan for JSON responses."""
    return {
        "idea_id": plan.idea_id,
        "template_id": plan.template.id,
        "template_name": plan.template.name,
        "execution_order": plan.execution_order,
        "total_estimated_duration": plan.total_estimated_duration,
        "ready_actions": plan.ready_actions,
        "blocked_actions": [
            {
                "action_id": blocked.action_id,
                "reason": blocked.reason,
                "missing_dependencies": blocked.missing_dependencies,
            }
            for blocked in plan.blocked_actions
        ],
        "warnings": plan.warnings,
        "missing_dependencies": plan.missing_dependencies,
        "approval_required": plan.approval_required,
    }


def result_to_response(result: WorkflowExecutionResult) -> ExecutionResultResponse:
    return ExecutionResultResponse(
        action_ids=result.action_ids,
        failed_actions=result.failed_actions,
        message=result.message,
    )
