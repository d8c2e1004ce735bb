"""
SEOAgent Workflows - Main FastAPI Application.

REST API over the workflow orchestrator: template catalog, idea matching,
execution planning, action dispatch and queue administration.

Workers are not started here; run ``python -m orchestration.runner``.
"""
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import shutdown_dependencies
from api.routes import health, queues, workflows
from core.domain.exceptions import (
    ConfigurationFailure,
    DuplicateIdempotencyKey,
    InvalidStatusTransition,
    UnknownQueueError,
    WorkflowEngineError,
)
from core.infrastructure.database.config import close_database
from core.infrastructure.logging import configure_logging
from core.settings import get_app_settings


configure_logging()
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


# =============================================================================
# CREATE FASTAPI APP
# =============================================================================

app = FastAPI(
    title="SEOAgent - Workflow Orchestration API",
    description="""
    Workflow orchestration and execution engine for SEOAgent.

    Features:
    - Workflow template catalog and idea matching
    - Dependency-aware execution planning
    - Idempotent action dispatch to priority queues
    - Queue statistics, pause/resume and cleanup
    """,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Tag each request with an id and log it with timing."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    started = time.perf_counter()

    response = await call_next(request)

    elapsed = time.perf_counter() - started
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = f"{elapsed:.4f}"
    logger.info(
        f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} ({elapsed:.3f}s)"
    )
    return response


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

# First matching class wins, so subclasses go before WorkflowEngineError.
_ENGINE_ERROR_STATUS = (
    (UnknownQueueError, 404, "Unknown queue"),
    (InvalidStatusTransition, 409, "Invalid status transition"),
    (DuplicateIdempotencyKey, 409, "Duplicate idempotency key"),
    (ConfigurationFailure, 503, "Engine misconfigured"),
    (WorkflowEngineError, 500, None),
)


def _error_response(request: Request, status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": detail, "path": request.url.path},
    )


@app.exception_handler(WorkflowEngineError)
async def workflow_engine_error_handler(request: Request, exc: WorkflowEngineError):
    for exc_type, status_code, label in _ENGINE_ERROR_STATUS:
        if isinstance(exc, exc_type):
            break
    if status_code >= 500:
        logger.error(f"Workflow engine error on {request.url.path}: {exc}")
    return _error_response(request, status_code, label or type(exc).__name__, str(exc))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error_response(request, 500, "Internal server error", str(exc))


# =============================================================================
# STARTUP/SHUTDOWN EVENTS
# =============================================================================

@app.on_event("startup")
async def startup_event():
    queue_settings = get_app_settings().queue
    logger.info("🚀 SEOAgent Workflows API starting up...")
    logger.info(f"Queue backend: {queue_settings.backend} (prefix {queue_settings.key_prefix})")
    logger.info("📚 Swagger UI available at: /docs")


@app.on_event("shutdown")
async def shutdown_event():
    await shutdown_dependencies()
    await close_database()
    logger.info("👋 SEOAgent Workflows API shut down")


# =============================================================================
# ROUTERS
# =============================================================================

app.include_router(health.router, tags=["Health"])
app.include_router(workflows.router, prefix="/api/v1/workflows", tags=["Workflows"])
app.include_router(queues.router, prefix="/api/v1/queues", tags=["Queues"])


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "SEOAgent - Workflow Orchestration API",
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "ready": "/health/ready",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
