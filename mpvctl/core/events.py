"""
Event Bus for mpvctl.

Messages from the player that carry no request_id are events. The IPC layer
turns each one into an MpvEvent and hands it to the bus, which republishes it
to interested handlers in arrival order.

Event types are the player's own event names, e.g.:
- start-file: playback of a new entry is starting
- file-loaded: the entry was opened and playback begins
- end-file: the current entry ended (or failed to load)
- property-change: an observed property changed (PropertyChangeEvent)
- pause / unpause / idle / seek / playback-restart / shutdown

The bus additionally emits:
- connection.closed: the player connection was torn down

Usage:
    bus = EventBus()
    await bus.start()

    async def on_file_loaded(event: MpvEvent) -> None:
        print("now playing", event.data)

    await bus.subscribe("file-loaded", on_file_loaded)

    # From the read loop (non-blocking, ordered)
    bus.publish_nowait(MpvEvent.from_message({"event": "file-loaded"}))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Mapping

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[["Event"], Coroutine[Any, Any, None]]


@dataclass
class Event:
    """Base class for all events."""

    event_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        return {"event": self.event_type}


@dataclass
class MpvEvent(Event):
    """An event message sent by the player."""

    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_message(cls, message: Mapping[str, Any]) -> "MpvEvent":
        """Build the matching event object from a parsed protocol message."""
        name = str(message.get("event", ""))
        data = {k: v for k, v in message.items() if k not in ("event", "request_id")}
        if name == PropertyChangeEvent.EVENT_NAME:
            return PropertyChangeEvent(
                event_type=name,
                data=data,
                name=str(data.get("name", "")),
                value=data.get("data"),
                observe_id=int(data.get("id", 0) or 0),
            )
        return cls(event_type=name, data=data)

    def to_dict(self) -> dict[str, Any]:
        return {"event": self.event_type, **self.data}


@dataclass
class PropertyChangeEvent(MpvEvent):
    """Fired when a property registered with observe_property changes."""

    EVENT_NAME = "property-change"

    name: str = ""
    value: Any = None
    observe_id: int = 0


@dataclass
class ConnectionClosedEvent(Event):
    """Fired when the player connection is torn down."""

    event_type: str = field(default="connection.closed", init=False)
    socket_path: str = ""
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event_type,
            "socket_path": self.socket_path,
            "reason": self.reason,
        }


class EventBus:
    """
    Simple async pub/sub event bus.

    Supports:
    - Multiple handlers per event type
    - Global wildcard subscriptions ("*")
    - Async handlers
    - Error isolation (one handler failing doesn't affect others)
    - Ordered, non-blocking publication from synchronous code
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._lock = asyncio.Lock()
        self._queue: asyncio.Queue[Event | None] | None = None
        self._dispatcher: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Whether the ordered dispatcher is active."""
        return self._dispatcher is not None and not self._dispatcher.done()

    async def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Event name to subscribe to, or "*" for all events.
            handler: Async function to call when event is published.
        """
        async with self._lock:
            if event_type not in self._handlers:
                self._handlers[event_type] = []
            self._handlers[event_type].append(handler)
            logger.debug("Subscribed to %s: %s", event_type, handler)

    async def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """
        Unsubscribe a handler from an event type.

        Returns True if handler was found and removed.
        """
        async with self._lock:
            if event_type in self._handlers:
                try:
                    self._handlers[event_type].remove(handler)
                    logger.debug("Unsubscribed from %s: %s", event_type, handler)
                    return True
                except ValueError:
                    pass
            return False

    async def publish(self, event: Event) -> int:
        """
        Publish an event to all subscribed handlers.

        Handlers run one after another in subscription order.

        Args:
            event: The event to publish.

        Returns:
            Number of handlers that received the event.
        """
        event_type = event.event_type
        handlers_called = 0

        # Collect matching handlers
        async with self._lock:
            matching_handlers: list[EventHandler] = list(self._handlers.get(event_type, ()))
            if event_type != "*":
                matching_handlers.extend(self._handlers.get("*", ()))

        # Call handlers outside of lock
        for handler in matching_handlers:
            try:
                await handler(event)
                handlers_called += 1
            except Exception as e:
                logger.exception("Error in event handler for %s: %s", event_type, e)

        if handlers_called > 0:
            logger.debug("Published %s to %d handlers", event_type, handlers_called)

        return handlers_called

    def publish_nowait(self, event: Event) -> None:
        """
        Queue an event for ordered publication.

        Safe to call from synchronous code running on the event loop (e.g. the
        IPC read loop). Events are delivered by a single dispatcher task in the
        order they were queued.
        """
        if self._queue is None:
            logger.warning("Cannot publish event %s: event bus not started", event.event_type)
            return
        self._queue.put_nowait(event)

    async def start(self) -> None:
        """Start the ordered dispatcher task."""
        if self.is_running:
            return
        self._queue = asyncio.Queue()
        self._dispatcher = asyncio.create_task(self._dispatch_loop(self._queue))
        logger.debug("Event bus dispatcher started")

    async def stop(self) -> None:
        """
        Deliver already queued events, then stop the dispatcher.

        When called from a handler, the dispatcher finishes the remaining
        queue after that handler returns.
        """
        if self._queue is None or self._dispatcher is None:
            return
        queue, dispatcher = self._queue, self._dispatcher
        self._queue = None
        self._dispatcher = None
        queue.put_nowait(None)
        if dispatcher is not asyncio.current_task():
            await dispatcher
        logger.debug("Event bus dispatcher stopped")

    async def _dispatch_loop(self, queue: asyncio.Queue[Event | None]) -> None:
        while True:
            event = await queue.get()
            if event is None:
                return
            await self.publish(event)

    async def clear(self) -> None:
        """Remove all subscriptions."""
        async with self._lock:
            self._handlers.clear()
            logger.debug("Cleared all event subscriptions")
