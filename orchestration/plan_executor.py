"""Plan executor - persists and dispatches the ready actions of a plan."""

from core.domain.entities import ActionRecord, WorkflowAction
from core.domain.enums import ActionStatus
from core.domain.exceptions import ActionCreationFailure
from core.domain.repositories import StatusRepository
from core.infrastructure.logging import get_logger
from core.utils.datetime import utc_now

from .dispatcher import ActionDispatcher, QueueOptions
from .models import ExecutionPlan, WorkflowExecutionResult
from .policy import build_run_policy
from .priority import calculate_priority_score


def build_result_message(plan: ExecutionPlan, created: int) -> str:
    message = (
        f'Workflow "{plan.template.name}" created with {created} actions. '
        f"Estimated completion: {plan.total_estimated_duration} minutes."
    )
    if plan.warnings:
        message += f" Warnings: {', '.join(plan.warnings)}"
    return message


class PlanExecutor:
    """Creates Action rows for every unblocked template action and queues them."""

    def __init__(self, status_repository: StatusRepository, dispatcher: ActionDispatcher):
        self.status_repository = status_repository
        self.dispatcher = dispatcher
        self.logger = get_logger("orchestration.plan_executor")

    async def execute_workflow_plan(
        self,
        plan: ExecutionPlan,
        user_token: str,
        site_url: str,
    ) -> WorkflowExecutionResult:
        """
        Execute a plan.

        A failure on one action is logged and the remaining actions are still
        processed. The idea is marked adopted afterwards.

        Args:
            plan: Plan returned by the planner
            user_token: Owner token
            site_url: Target site

        Returns:
            WorkflowExecutionResult with the ids of the queued actions
        """
        self.logger.info(f"Executing workflow plan for idea {plan.idea_id}")

        created_ids: list[str] = []
        failed: list[str] = []

        for action in plan.template.actions:
            if plan.is_blocked(action.id):
                self.logger.info(f"Skipping blocked action: {action.id}")
                continue

            try:
                action_id = await self._create_and_queue(plan, action, user_token, site_url)
            except ActionCreationFailure as e:
                self.logger.error(f"Failed to create action {action.id}: {e.reason}")
                failed.append(action.id)
                continue
            except Exception as e:
                self.logger.error(f"Unexpected error creating action {action.id}: {e}", exc_info=True)
                failed.append(action.id)
                continue

            created_ids.append(action_id)
            self.logger.info(f"Created action {action_id}: {action.title}")

        try:
            await self.status_repository.mark_idea_adopted(plan.idea_id, utc_now())
        except Exception as e:
            self.logger.error(f"Could not mark idea {plan.idea_id} adopted: {e}", exc_info=True)

        return WorkflowExecutionResult(
            action_ids=created_ids,
            message=build_result_message(plan, len(created_ids)),
            failed_actions=failed,
        )

    async def _create_and_queue(
        self,
        plan: ExecutionPlan,
        action: WorkflowAction,
        user_token: str,
        site_url: str,
    ) -> str:
        policy = build_run_policy(action)
        priority = calculate_priority_score(action, plan.template.risk_level)

        try:
            record = await self.status_repository.create_action(
                ActionRecord(
                    idea_id=plan.idea_id,
                    user_token=user_token,
                    site_url=site_url,
                    action_type=action.action_type,
                    title=action.title,
                    description=action.description,
                    payload=dict(action.payload),
                    policy=policy,
                    priority_score=priority,
                    status=ActionStatus.PROPOSED,
                )
            )
        except Exception as e:
            raise ActionCreationFailure(action.id, str(e)) from e

        await self.dispatcher.queue_action(
            record.id,
            user_token,
            action.action_type,
            dict(action.payload),
            policy,
            QueueOptions(priority=priority),
        )
        return record.id
