"""
Health check endpoints.

Used for monitoring and load balancer health checks.
"""
from fastapi import APIRouter, Depends
from datetime import datetime, timezone
import platform

from api.dependencies import get_orchestrator
from orchestration import QueueName, WorkflowOrchestrator


router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns system health status.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "seoagent-workflows",
        "version": "1.0.0",
        "python_version": platform.python_version(),
    }


@router.get("/health/ready")
async def readiness_check(orchestrator: WorkflowOrchestrator = Depends(get_orchestrator)):
    """
    Readiness check endpoint.

    Reports whether the job broker answers and which worker pools run.
    """
    try:
        await orchestrator.get_queue_stats(QueueName.AGENT_ACTIONS.value)
        broker = "ok"
    except Exception as e:
        broker = f"error: {e}"

    return {
        "status": "ready" if broker == "ok" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "api": "ok",
            "broker": broker,
            "workers": sorted(queue.value for queue in orchestrator.pools),
        },
    }
