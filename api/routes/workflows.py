"""
Workflow endpoints.

Template browsing, idea-to-template suggestion, plan creation and
dispatch of planned or single actions.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
import logging

from api.dependencies import get_orchestrator
from api.schemas import (
    ExecutionResultResponse,
    PlanRequest,
    QueueActionRequest,
    QueueActionResponse,
    SuggestWorkflowRequest,
    plan_to_dict,
    result_to_response,
    template_to_dict,
)
from core.domain.exceptions import ActionCreationFailure
from orchestration import QueueOptions, WorkflowOrchestrator, get_template


logger = logging.getLogger(__name__)
router = APIRouter()


def _require_template(orchestrator: WorkflowOrchestrator, template_id: str):
    template = get_template(template_id, templates=orchestrator.templates)
    if template is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Workflow template {template_id} not found",
        )
    return template


# =============================================================================
# TEMPLATES
# =============================================================================

@router.get(
    "/templates",
    summary="List workflow templates",
    description="List catalog templates, optionally filtered by category and search term",
)
async def list_templates(
    category: Optional[str] = Query(None, description="Exact category match"),
    search: Optional[str] = Query(None, description="Case-insensitive search in name, description and triggers"),
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> List[Dict[str, Any]]:
    templates = orchestrator.get_workflow_templates(category=category, search_term=search)
    return [template_to_dict(template) for template in templates]


@router.get(
    "/templates/{template_id}",
    summary="Get workflow template",
)
async def get_template_by_id(
    template_id: str,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    return template_to_dict(_require_template(orchestrator, template_id))


@router.post(
    "/suggest",
    summary="Suggest workflow for an idea",
    description="Score every template against the idea text and evidence; returns null when nothing matches",
)
async def suggest(
    request: SuggestWorkflowRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> Optional[Dict[str, Any]]:
    evidence = request.evidence.model_dump() if request.evidence else None
    template = orchestrator.suggest_workflow(request.title, request.hypothesis, evidence)
    if template is None:
        logger.info(f"No workflow matched idea '{request.title}'")
        return None
    return template_to_dict(template)


# =============================================================================
# PLANS
# =============================================================================

@router.post(
    "/plans",
    summary="Create execution plan",
    description="Resolve dependencies and build the batched execution order for a template",
)
async def create_plan(
    request: PlanRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    template = _require_template(orchestrator, request.template_id)
    plan = await orchestrator.create_execution_plan(
        request.idea_id, template, request.user_token, request.site_url
    )
    return plan_to_dict(plan)


@router.post(
    "/plans/execute",
    response_model=ExecutionResultResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Plan and execute workflow",
    description="Create the plan, persist and queue every ready action, then mark the idea adopted",
)
async def execute_plan(
    request: PlanRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
):
    template = _require_template(orchestrator, request.template_id)
    plan = await orchestrator.create_execution_plan(
        request.idea_id, template, request.user_token, request.site_url
    )
    result = await orchestrator.execute_workflow_plan(plan, request.user_token, request.site_url)
    logger.info(f"Idea {request.idea_id}: {result.message}")
    return result_to_response(result)


# =============================================================================
# ACTIONS
# =============================================================================

@router.post(
    "/actions/queue",
    response_model=QueueActionResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue single action",
    description="Create a run for an existing action and enqueue it; repeated keys return the existing job id",
)
async def queue_action(
    request: QueueActionRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
):
    options = QueueOptions(
        priority=request.priority,
        delay_ms=request.delay_ms,
        idempotency_key=request.idempotency_key,
    )
    try:
        job_id = await orchestrator.queue_action(
            request.action_id,
            request.user_token,
            request.action_type,
            request.payload,
            request.policy,
            options,
        )
    except ActionCreationFailure as e:
        logger.error(f"Failed to queue action {request.action_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )
    return QueueActionResponse(job_id=job_id)
