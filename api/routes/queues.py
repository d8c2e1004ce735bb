"""
Queue administration endpoints.

Unknown queue names surface as 404 through the UnknownQueueError handler
registered in api.main.
"""
from typing import Dict, Optional

from fastapi import APIRouter, Depends, status
import logging

from api.dependencies import get_orchestrator
from api.schemas import CleanQueueRequest
from orchestration import QueueName, WorkflowOrchestrator


logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "",
    summary="List queues",
)
async def list_queues():
    return [queue.value for queue in QueueName]


@router.get(
    "/{queue_name}/stats",
    summary="Get queue statistics",
    description="Job counts per state: waiting, active, completed, failed, delayed",
)
async def get_queue_stats(
    queue_name: str,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> Dict[str, int]:
    return await orchestrator.get_queue_stats(queue_name)


@router.post(
    "/{queue_name}/pause",
    summary="Pause queue",
)
async def pause_queue(
    queue_name: str,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
):
    await orchestrator.pause_queue(queue_name)
    logger.info(f"Queue {queue_name} paused")
    return {"queue": queue_name, "paused": True}


@router.post(
    "/{queue_name}/resume",
    summary="Resume queue",
)
async def resume_queue(
    queue_name: str,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
):
    await orchestrator.resume_queue(queue_name)
    logger.info(f"Queue {queue_name} resumed")
    return {"queue": queue_name, "paused": False}


@router.post(
    "/{queue_name}/clean",
    status_code=status.HTTP_200_OK,
    summary="Clean finished jobs",
    description="Remove completed and failed jobs older than the grace period",
)
async def clean_queue(
    queue_name: str,
    request: Optional[CleanQueueRequest] = None,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
):
    request = request or CleanQueueRequest()
    removed = await orchestrator.clean_queue(queue_name, request.older_than_ms)
    return {"queue": queue_name, "removed": removed}
