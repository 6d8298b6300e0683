"""Local event subject for re-emitting EventSub messages.

Application code registers handlers per event name; the client publishes
verified notifications, challenges, revocations and lifecycle events to
them in registration order.
"""

import asyncio
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

# Handlers may be plain functions or coroutine functions
EventHandler = Callable[..., Awaitable[None] | None]


class EventSubject:
    """Maps event names to ordered lists of handlers.

    Handler exceptions are logged and do not prevent later handlers
    from running.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._logger = logger.bind(component="event_subject")

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Register a handler for an event name.

        Args:
            event_name: Event to listen for (e.g. "stream.online").
            handler: Sync or async callable receiving the event arguments.
        """
        self._handlers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        """Remove a previously registered handler.

        Args:
            event_name: Event name the handler was registered for.
            handler: Handler to remove.
        """
        handlers = self._handlers.get(event_name)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event_name: str) -> int:
        """Number of handlers registered for an event name."""
        return len(self._handlers.get(event_name, ()))

    async def publish(self, event_name: str, *args: Any) -> int:
        """Publish an event to all handlers registered for it.

        Args:
            event_name: Event to publish.
            *args: Arguments passed to every handler.

        Returns:
            Number of handlers that were called.
        """
        handlers = list(self._handlers.get(event_name, ()))
        if not handlers:
            self._logger.debug("event_without_handlers", event_name=event_name)
            return 0

        for handler in handlers:
            try:
                result = handler(*args)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                self._logger.warning(
                    "event_handler_error",
                    event_name=event_name,
                    error=str(e),
                )

        return len(handlers)
