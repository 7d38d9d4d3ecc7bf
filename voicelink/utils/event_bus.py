"""Change notifications from the session controller to its observers."""

import inspect
from collections import defaultdict
from enum import Enum
from typing import Any, Awaitable, Callable, Union

import structlog

logger = structlog.get_logger()


class EventType(str, Enum):
    """Controller change notifications."""
    STATUS_CHANGED = "status_changed"
    MODE_CHANGED = "mode_changed"
    TRANSCRIPT_APPENDED = "transcript_appended"
    TRANSCRIPT_CLEARED = "transcript_cleared"
    SESSION_ERROR = "session_error"


# Observers may be plain callables or coroutine functions.
EventHandler = Callable[[Any], Union[None, Awaitable[None]]]


class EventBus:
    """Delivers controller snapshots to observers.

    Handlers run one after another in subscription order, and ``publish``
    returns only after all of them have seen the payload, so an observer
    receives snapshots in the order the controller committed them. A failing
    observer is logged and skipped.
    """

    def __init__(self):
        self._handlers: dict[EventType, list[EventHandler]] = defaultdict(list)

    async def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe to an event type. Subscribing twice has no effect."""
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)
            logger.debug("Observer subscribed", event_type=event_type.value)

    async def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe one handler to every event type."""
        for event_type in EventType:
            await self.subscribe(event_type, handler)

    async def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe from an event type."""
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)
            logger.debug("Observer unsubscribed", event_type=event_type.value)

    def subscriber_count(self, event_type: EventType) -> int:
        return len(self._handlers[event_type])

    async def publish(self, event_type: EventType, payload: Any = None) -> None:
        """Hand ``payload`` to every observer of ``event_type``."""
        # Copy so handlers may unsubscribe themselves while being called.
        for handler in list(self._handlers[event_type]):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Observer failed",
                            event_type=event_type.value,
                            handler=getattr(handler, "__name__", repr(handler)),
                            error=str(e))

    def clear(self) -> None:
        """Remove all observers."""
        self._handlers.clear()
