"""Orchestration layer - workflow planning, dispatch and queue execution."""

from typing import TYPE_CHECKING, Optional

from .broker import InMemoryJobBroker, Job, JobBrokerProtocol, JobOptions, JobState
from .bus import EventBusProtocol, InMemoryEventBus
from .catalog import WORKFLOW_TEMPLATES, get_template, get_workflow_templates
from .dispatcher import QueueOptions
from .events import Event, EventMetadata
from .handlers import HandlerRegistry, HandlerResult, JobContext
from .matcher import IdeaEvidence, suggest_workflow
from .models import BlockedAction, ExecutionPlan, JobResult, WorkflowExecutionResult
from .orchestrator import WorkflowOrchestrator
from .queues import QueueName
from .resolver import DependencyResolver
from .workflow import JobRetention, RetryPolicy

if TYPE_CHECKING:
    from core.application.interfaces import ISiteStateStore
    from core.domain.repositories import StatusRepository
    from core.settings import AppSettings

__all__ = [
    "BlockedAction",
    "DependencyResolver",
    "Event",
    "EventBusProtocol",
    "EventMetadata",
    "ExecutionPlan",
    "HandlerRegistry",
    "HandlerResult",
    "IdeaEvidence",
    "InMemoryEventBus",
    "InMemoryJobBroker",
    "Job",
    "JobBrokerProtocol",
    "JobContext",
    "JobOptions",
    "JobResult",
    "JobRetention",
    "JobState",
    "QueueName",
    "QueueOptions",
    "RetryPolicy",
    "WORKFLOW_TEMPLATES",
    "WorkflowExecutionResult",
    "WorkflowOrchestrator",
    "get_template",
    "get_workflow_templates",
    "suggest_workflow",
]


def create_default_orchestrator(
    status_repository: "StatusRepository",
    site_state: "ISiteStateStore",
    settings: "AppSettings",
    handlers: Optional[HandlerRegistry] = None,
    broker: Optional[JobBrokerProtocol] = None,
) -> WorkflowOrchestrator:
    """Create an orchestrator wired from application settings.

    Args:
        status_repository: Store for actions, runs and ideas
        site_state: Site-state lookups for dependency checks
        settings: Application settings (queue and worker sections are used)
        handlers: Optional handler registry
        broker: Optional broker; built from settings.queue when omitted

    Returns:
        WorkflowOrchestrator instance
    """
    queue_settings = settings.queue
    retry_policy = RetryPolicy(
        max_attempts=queue_settings.retry_attempts,
        backoff_seconds=queue_settings.retry_backoff_seconds,
    )
    retention = JobRetention(
        completed=queue_settings.remove_on_complete,
        failed=queue_settings.remove_on_fail,
    )

    if broker is None:
        if queue_settings.backend == "memory":
            broker = InMemoryJobBroker(retry_policy=retry_policy, retention=retention)
        else:
            from core.infrastructure.bus import RedisJobBroker

            broker = RedisJobBroker(
                redis_url=queue_settings.redis_url,
                key_prefix=queue_settings.key_prefix,
                retry_policy=retry_policy,
                retention=retention,
                lock_duration_ms=queue_settings.lock_duration_ms,
            )

    return WorkflowOrchestrator(
        status_repository=status_repository,
        resolver=DependencyResolver(site_state, site_state, site_state),
        broker=broker,
        handlers=handlers,
        event_bus=InMemoryEventBus(),
        concurrency={queue: queue_settings.concurrency_for(queue.value) for queue in QueueName},
        retention=retention,
        credentials=settings.worker.credentials(),
        poll_interval=queue_settings.poll_interval_seconds,
        dry_run_delay_seconds=queue_settings.dry_run_delay_seconds,
    )
