"""Run lifecycle events published by the job executor."""

from dataclasses import dataclass, field
from datetime import datetime

from core.utils.datetime import utc_now

RUN_STARTED = "run.started"
RUN_SUCCEEDED = "run.succeeded"
RUN_FAILED = "run.failed"

RUN_EVENTS = (RUN_STARTED, RUN_SUCCEEDED, RUN_FAILED)

# Subscribing to this name receives every published event.
ANY_EVENT = "*"


@dataclass
class EventMetadata:
    run_id: str
    action_id: str
    queue: str | None = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass
class Event:
    """One transition in the life of an action run."""

    name: str
    payload: dict[str, object]
    metadata: EventMetadata

    @classmethod
    def for_run(
        cls,
        name: str,
        run_id: str,
        action_id: str,
        queue: str | None = None,
        **payload: object,
    ) -> "Event":
        if name not in RUN_EVENTS:
            raise ValueError(f"Unknown run event: {name}")
        return cls(
            name=name,
            payload=dict(payload),
            metadata=EventMetadata(run_id=run_id, action_id=action_id, queue=queue),
        )

    @property
    def is_terminal(self) -> bool:
        return self.name in (RUN_SUCCEEDED, RUN_FAILED)
