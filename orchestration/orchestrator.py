"""Orchestrator - workflow selection, planning, dispatch and queue administration."""

import asyncio
from typing import Any, Mapping, Optional, Union

from core.domain.entities import WorkflowTemplate
from core.domain.exceptions import ConfigurationFailure
from core.domain.repositories import StatusRepository
from core.infrastructure.logging import get_logger

from .broker import JobBrokerProtocol, JobState
from .bus import EventBusProtocol
from .catalog import WORKFLOW_TEMPLATES, catalog_action_types, get_workflow_templates
from .dispatcher import ActionDispatcher, QueueOptions
from .handlers import HandlerRegistry
from .job_executor import JobExecutor, WorkerPool
from .matcher import IdeaEvidence, suggest_workflow
from .models import ExecutionPlan, WorkflowExecutionResult
from .plan_executor import PlanExecutor
from .planner import ExecutionPlanner
from .queues import ACTION_QUEUE_ROUTES, QUEUE_CONCURRENCY, QueueName, parse_queue_name, validate_routes
from .resolver import DependencyResolver
from .workflow import JobRetention

DEFAULT_CLEAN_AGE_MS = 24 * 60 * 60 * 1000


class WorkflowOrchestrator:
    """
    Entry point of the workflow engine.

    Every collaborator is injected; nothing here is a process-wide singleton.
    """

    def __init__(
        self,
        status_repository: StatusRepository,
        resolver: DependencyResolver,
        broker: JobBrokerProtocol,
        handlers: Optional[HandlerRegistry] = None,
        event_bus: Optional[EventBusProtocol] = None,
        templates: tuple[WorkflowTemplate, ...] = WORKFLOW_TEMPLATES,
        routes: dict[str, QueueName] = ACTION_QUEUE_ROUTES,
        concurrency: Optional[Mapping[QueueName, int]] = None,
        retention: Optional[JobRetention] = None,
        credentials: Optional[Mapping[str, Any]] = None,
        poll_interval: float = 1.0,
        dry_run_delay_seconds: float = 1.0,
    ) -> None:
        """Initialize orchestrator.

        Args:
            status_repository: Store for actions, runs and ideas
            resolver: Dependency resolver bound to site-state lookups
            broker: Job broker shared by the dispatcher and the worker pools
            handlers: Action handlers for non-dry-run jobs
            event_bus: Optional bus receiving run lifecycle events
            templates: Workflow template catalog
            routes: Explicit action type -> queue table
            concurrency: Per-queue worker limits
            retention: Finished-job retention, also bounds clean_queue
            credentials: Configured handler credentials by name
            poll_interval: Seconds an idle worker waits before polling again
            dry_run_delay_seconds: Simulated duration of a dry run

        Raises:
            ConfigurationFailure: If a catalog action type has no explicit queue route
        """
        validate_routes(catalog_action_types(templates), routes)

        self.status_repository = status_repository
        self.broker = broker
        self.handlers = handlers or HandlerRegistry()
        self.event_bus = event_bus
        self.templates = templates
        self.routes = routes
        self.concurrency = dict(QUEUE_CONCURRENCY)
        self.concurrency.update(concurrency or {})
        self.retention = retention or JobRetention()
        self.credentials = dict(credentials or {})
        self.poll_interval = poll_interval

        self.planner = ExecutionPlanner(resolver)
        self.dispatcher = ActionDispatcher(status_repository, broker, routes)
        self.plan_executor = PlanExecutor(status_repository, self.dispatcher)
        self.job_executor = JobExecutor(
            status_repository,
            broker,
            self.handlers,
            event_bus=event_bus,
            dry_run_delay_seconds=dry_run_delay_seconds,
        )

        self.pools: dict[QueueName, WorkerPool] = {}
        self._workers_started = False
        self._logger = get_logger("orchestration.orchestrator")

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def suggest_workflow(
        self,
        title: str,
        hypothesis: Optional[str] = None,
        evidence: Union[IdeaEvidence, Mapping[str, Any], None] = None,
    ) -> Optional[WorkflowTemplate]:
        return suggest_workflow(title, hypothesis, evidence, templates=self.templates)

    def get_workflow_templates(
        self,
        category: Optional[str] = None,
        search_term: Optional[str] = None,
    ) -> list[WorkflowTemplate]:
        return get_workflow_templates(category, search_term, templates=self.templates)

    async def create_execution_plan(
        self,
        idea_id: str,
        template: WorkflowTemplate,
        user_token: str,
        site_url: str,
    ) -> ExecutionPlan:
        return await self.planner.create_execution_plan(idea_id, template, user_token, site_url)

    async def execute_workflow_plan(
        self,
        plan: ExecutionPlan,
        user_token: str,
        site_url: str,
    ) -> WorkflowExecutionResult:
        return await self.plan_executor.execute_workflow_plan(plan, user_token, site_url)

    async def queue_action(
        self,
        action_id: str,
        user_token: str,
        action_type: str,
        payload: dict[str, Any],
        policy: dict[str, Any],
        options: Optional[QueueOptions] = None,
    ) -> str:
        return await self.dispatcher.queue_action(
            action_id, user_token, action_type, payload, policy, options
        )

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    async def start_workers(self) -> None:
        """Start one worker pool per queue. Calling it again is a no-op.

        A pool whose handlers lack credentials is skipped and logged; the
        other pools still start.
        """
        if self._workers_started:
            return

        for queue in QueueName:
            pool = WorkerPool(
                queue,
                self.broker,
                self.job_executor,
                concurrency=self.concurrency[queue],
                poll_interval=self.poll_interval,
                credentials=self.credentials,
                routes=self.routes,
            )
            try:
                await pool.start()
            except ConfigurationFailure as e:
                self._logger.error(f"Worker pool {queue.value} not started: {e}")
                continue
            self.pools[queue] = pool

        self._workers_started = True
        self._logger.info(f"✅ Workers started for {len(self.pools)} queue(s)")

    # ------------------------------------------------------------------
    # Queue administration
    # ------------------------------------------------------------------

    async def get_queue_stats(self, queue_name: str) -> dict[str, int]:
        queue = parse_queue_name(queue_name)
        return await self.broker.get_counts(queue.value)

    async def pause_queue(self, queue_name: str) -> None:
        queue = parse_queue_name(queue_name)
        await self.broker.pause(queue.value)

    async def resume_queue(self, queue_name: str) -> None:
        queue = parse_queue_name(queue_name)
        await self.broker.resume(queue.value)

    async def clean_queue(self, queue_name: str, older_than_ms: int = DEFAULT_CLEAN_AGE_MS) -> dict[str, int]:
        """Remove finished jobs older than ``older_than_ms``.

        Returns:
            Number of removed jobs per state
        """
        queue = parse_queue_name(queue_name)
        completed = await self.broker.clean(
            queue.value, older_than_ms, self.retention.completed, JobState.COMPLETED
        )
        failed = await self.broker.clean(queue.value, older_than_ms, self.retention.failed, JobState.FAILED)
        return {JobState.COMPLETED.value: len(completed), JobState.FAILED.value: len(failed)}

    async def shutdown(self) -> None:
        """Stop every worker pool, then close the broker."""
        self._logger.info("Shutting down gracefully...")
        await asyncio.gather(*(pool.stop() for pool in self.pools.values()))
        self.pools = {}
        self._workers_started = False
        await self.broker.close()
        self._logger.info("Shutdown complete")
