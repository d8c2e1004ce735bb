"""
Workflow engine exceptions.

Missing prerequisites are never raised: they are reported as blocked
actions on the execution plan.
"""
from typing import Optional


class WorkflowEngineError(Exception):
    """Base class for workflow engine errors."""


class ActionCreationFailure(WorkflowEngineError):
    """Persisting or enqueuing a single action failed."""

    def __init__(self, action_id: str, reason: str):
        self.action_id = action_id
        self.reason = reason
        super().__init__(f"Failed to create action {action_id}: {reason}")


class HandlerFailure(WorkflowEngineError):
    """An action-type specific handler raised or could not be resolved."""

    def __init__(self, action_type: str, message: str):
        self.action_type = action_type
        self.message = message
        super().__init__(f"[{action_type}] {message}")


class TimeoutFailure(HandlerFailure):
    """A handler ran past its policy timeout."""

    def __init__(self, action_type: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(action_type, f"Handler exceeded timeout of {timeout_ms}ms")


class ConfigurationFailure(WorkflowEngineError):
    """Engine or worker configuration is incomplete."""


class InvalidStatusTransition(WorkflowEngineError):
    """A status change would skip or reverse a lifecycle state."""

    def __init__(self, entity: str, entity_id: str, current: str, new: str):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.new = new
        super().__init__(f"{entity} {entity_id}: cannot move from '{current}' to '{new}'")


class DuplicateIdempotencyKey(WorkflowEngineError):
    """A run with the same idempotency key already exists."""

    def __init__(self, idempotency_key: str, run_id: Optional[str] = None):
        self.idempotency_key = idempotency_key
        self.run_id = run_id
        super().__init__(f"Run already exists for idempotency key {idempotency_key}")


class UnknownQueueError(WorkflowEngineError):
    """Requested queue is not one of the engine's logical queues."""

    def __init__(self, queue_name: str):
        self.queue_name = queue_name
        super().__init__(f"Queue {queue_name} not found")
