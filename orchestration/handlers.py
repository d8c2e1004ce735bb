"""Action handler registry - HandlerRegistry, JobContext, HandlerResult."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union


@dataclass
class HandlerResult:
    """What a handler reports back after executing an action."""

    pages_processed: int = 0
    patches_applied: int = 0
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, value: Union["HandlerResult", Mapping[str, Any], None]) -> "HandlerResult":
        if isinstance(value, HandlerResult):
            return value
        if value is None:
            return cls()
        data = dict(value)
        return cls(
            pages_processed=int(data.pop("pages_processed", 0) or 0),
            patches_applied=int(data.pop("patches_applied", 0) or 0),
            data=data,
        )


@dataclass
class JobContext:
    """Everything a handler gets to see about the job it runs."""

    action_id: str
    action_type: str
    user_token: str
    run_id: str
    payload: dict[str, Any]
    policy: dict[str, Any]
    report_progress: Callable[[int], Awaitable[None]]


ActionHandler = Callable[[JobContext], Awaitable[Union[HandlerResult, Mapping[str, Any], None]]]


@dataclass(frozen=True)
class HandlerRegistration:
    action_type: str
    handler: ActionHandler
    required_credentials: tuple[str, ...] = ()


class HandlerRegistry:
    """Maps action types to the coroutine that executes them."""

    def __init__(self):
        self._handlers: dict[str, HandlerRegistration] = {}

    def register(
        self,
        action_type: str,
        handler: ActionHandler,
        required_credentials: Iterable[str] = (),
    ) -> None:
        """
        Register a handler.

        Args:
            action_type: Action type the handler executes
            handler: Async callable taking a JobContext
            required_credentials: Credential names that must be configured
                before a worker pool serving this handler may start
        """
        self._handlers[action_type] = HandlerRegistration(
            action_type=action_type,
            handler=handler,
            required_credentials=tuple(required_credentials),
        )

    def get(self, action_type: str) -> Optional[ActionHandler]:
        registration = self._handlers.get(action_type)
        return registration.handler if registration else None

    def registrations(self) -> list[HandlerRegistration]:
        return list(self._handlers.values())

    def __contains__(self, action_type: str) -> bool:
        return action_type in self._handlers

    def missing_credentials(
        self,
        action_types: Iterable[str],
        credentials: Mapping[str, Any],
    ) -> dict[str, list[str]]:
        """Return {action_type: [missing credential names]} for the given types."""
        missing: dict[str, list[str]] = {}
        for action_type in action_types:
            registration = self._handlers.get(action_type)
            if registration is None:
                continue
            absent = [name for name in registration.required_credentials if not credentials.get(name)]
            if absent:
                missing[action_type] = absent
        return missing
