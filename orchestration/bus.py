"""Run event bus - EventBusProtocol and InMemoryEventBus."""

from collections.abc import Awaitable, Callable
from typing import Protocol

from core.infrastructure.logging import get_logger

from .events import ANY_EVENT, Event

EventHandler = Callable[[Event], Awaitable[None]]


class EventBusProtocol(Protocol):
    """Where the job executor reports run transitions."""

    async def publish(self, event: Event) -> None:
        ...

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Register ``handler`` for ``event_name`` (or ``ANY_EVENT``)."""
        ...


class InMemoryEventBus(EventBusProtocol):
    """In-process bus; a failing subscriber is logged and skipped."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = {}
        self._logger = get_logger("orchestration.event_bus")

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        self._subscribers.setdefault(event_name, []).append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> bool:
        """Remove a handler; returns False if it was not subscribed."""
        handlers = self._subscribers.get(event_name, [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    def handlers_for(self, event_name: str) -> list[EventHandler]:
        return [*self._subscribers.get(event_name, []), *self._subscribers.get(ANY_EVENT, [])]

    async def publish(self, event: Event) -> None:
        recipients = self.handlers_for(event.name)
        if not recipients:
            return

        self._logger.debug(
            f"{event.name} run={event.metadata.run_id} action={event.metadata.action_id} "
            f"-> {len(recipients)} subscriber(s)"
        )

        for handler in recipients:
            try:
                await handler(event)
            except Exception as exc:
                self._logger.error(
                    f"Subscriber {getattr(handler, '__qualname__', handler)} failed on {event.name}: {exc}",
                    exc_info=True,
                )
