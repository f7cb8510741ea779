"""
Event-driven message bus for storyteller components.
Supports pub/sub with priorities, one-time subscriptions, waiting for a
specific event, event history and metrics.

Publishers running inside timer callbacks use ``post``, which enqueues
without awaiting; coroutine code may use ``emit``.
"""

import asyncio
import logging
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event types published by the storyteller."""

    # Catalog Events
    CATALOG_LOADED = "catalog_loaded"
    CATALOG_FAILED = "catalog_failed"

    # Playback Events
    STORY_SELECTED = "story_selected"
    PLAYBACK_RESUMED = "playback_resumed"
    PLAYBACK_PAUSED = "playback_paused"
    PLAYBACK_ENDED = "playback_ended"
    PREVIEW_STARTED = "preview_started"

    # Face Events
    CUE_FIRED = "cue_fired"
    EMOTION_OVERLAY_STARTED = "emotion_overlay_started"
    EMOTION_OVERLAY_CLEARED = "emotion_overlay_cleared"

    # System Events
    SYSTEM_STARTED = "system_started"
    SYSTEM_STOPPED = "system_stopped"
    ERROR_OCCURRED = "error_occurred"


@dataclass
class Event:
    """Base event structure with metadata."""
    type: EventType
    data: Dict[str, Any]
    timestamp: float
    source: str
    correlation_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        return {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp,
            "source": self.source,
            "correlation_id": self.correlation_id,
            "metadata": self.metadata
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """Create event from dictionary."""
        return cls(
            type=EventType(data["type"]),
            data=data["data"],
            timestamp=data["timestamp"],
            source=data["source"],
            correlation_id=data.get("correlation_id"),
            metadata=data.get("metadata", {})
        )


class EventHandler:
    """Handler for processing events with async support."""

    def __init__(self, handler_func: Callable, event_types: List[EventType],
                 priority: int = 0, filter_func: Optional[Callable] = None,
                 once: bool = False):
        self.handler_func = handler_func
        self.event_types = event_types
        self.priority = priority  # Higher priority = processed first
        self.filter_func = filter_func
        self.is_async = asyncio.iscoroutinefunction(handler_func)
        self.once = once
        self.call_count = 0
        self.last_called = 0.0

    def matches(self, event: Event) -> bool:
        """Check if this handler matches the event."""
        if event.type not in self.event_types:
            return False

        if self.filter_func and not self.filter_func(event):
            return False

        return True

    async def handle(self, event: Event) -> Optional[Any]:
        """Handle an event."""
        if not self.matches(event):
            return None

        self.call_count += 1
        self.last_called = time.time()

        try:
            if self.is_async:
                return await self.handler_func(event)
            return self.handler_func(event)
        except Exception as e:
            logger.error(f"Error in event handler {self.handler_func.__name__}: {e}", exc_info=True)
            raise


class EventBus:
    """Central event bus for pub/sub communication."""

    _instance: Optional["EventBus"] = None

    def __init__(self, max_queue_size: int = 1000, enable_history: bool = True,
                 history_size: int = 100):
        self.handlers: Dict[EventType, List[EventHandler]] = defaultdict(list)
        self.event_queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self.is_running = False
        self._task: Optional[asyncio.Task] = None

        # Event history for debugging
        self.enable_history = enable_history
        self.event_history: deque = deque(maxlen=history_size)

        self.metrics = self._empty_metrics()

    @staticmethod
    def _empty_metrics() -> Dict[str, Any]:
        return {
            "total_events": 0,
            "total_errors": 0,
            "events_by_type": defaultdict(int),
            "handler_errors": defaultdict(int),
            "queue_overflows": 0,
        }

    @classmethod
    async def get_instance(cls) -> "EventBus":
        """Get singleton instance of EventBus."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    async def start(self) -> None:
        """Start the event bus processing loop."""
        if self.is_running:
            return

        self.is_running = True
        self._task = asyncio.create_task(self._process_events())
        logger.info("Event bus started")

    async def stop(self) -> None:
        """Stop the event bus processing loop."""
        self.is_running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Event bus stopped")

    async def _process_events(self) -> None:
        """Main event processing loop."""
        while self.is_running:
            event = await self.event_queue.get()
            try:
                await self._dispatch_event(event)
            except Exception as e:
                logger.error(f"Error processing event {event.type.value}: {e}", exc_info=True)

    async def _dispatch_event(self, event: Event) -> None:
        """Dispatch event to all registered handlers in priority order."""
        handlers = sorted(self.handlers.get(event.type, []),
                          key=lambda h: h.priority, reverse=True)

        for handler in handlers:
            # A filtered once handler stays until an event passes its filter
            if handler.once and handler.matches(event):
                self._remove_handler(handler)

            try:
                await handler.handle(event)
            except Exception:
                self.metrics["total_errors"] += 1
                self.metrics["handler_errors"][handler.handler_func.__name__] += 1

    def post(self, event_type: EventType, data: Dict[str, Any],
             source: str = "system", correlation_id: Optional[str] = None,
             metadata: Optional[Dict[str, Any]] = None) -> None:
        """Enqueue an event without awaiting (safe from timer callbacks)."""
        event = Event(
            type=event_type,
            data=data,
            timestamp=time.time(),
            source=source,
            correlation_id=correlation_id,
            metadata=metadata or {}
        )

        try:
            self.event_queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Event queue full, dropping event: {event_type.value}")
            self.metrics["queue_overflows"] += 1
            return

        if self.enable_history:
            self.event_history.append(event)

        self.metrics["total_events"] += 1
        self.metrics["events_by_type"][event_type.value] += 1

    async def emit(self, event_type: EventType, data: Dict[str, Any],
                   source: str = "system", correlation_id: Optional[str] = None,
                   metadata: Optional[Dict[str, Any]] = None) -> None:
        """Emit an event to the bus."""
        self.post(event_type, data, source, correlation_id, metadata)

    def subscribe(self, event_types: Union[EventType, List[EventType]],
                  handler: Callable, priority: int = 0,
                  filter_func: Optional[Callable] = None) -> None:
        """Subscribe a handler to one or more event types."""
        self._add_handler(event_types, handler, priority, filter_func, once=False)
        logger.debug(f"Subscribed {handler.__name__}")

    def once(self, event_types: Union[EventType, List[EventType]],
             handler: Callable, priority: int = 0,
             filter_func: Optional[Callable] = None) -> None:
        """Subscribe to events with one-time execution."""
        self._add_handler(event_types, handler, priority, filter_func, once=True)
        logger.debug(f"One-time subscription: {handler.__name__}")

    def _add_handler(self, event_types: Union[EventType, List[EventType]],
                     handler: Callable, priority: int,
                     filter_func: Optional[Callable], once: bool) -> None:
        if isinstance(event_types, EventType):
            event_types = [event_types]

        event_handler = EventHandler(handler, event_types, priority, filter_func, once=once)
        for event_type in event_types:
            self.handlers[event_type].append(event_handler)

    def _remove_handler(self, event_handler: EventHandler) -> None:
        for event_type in event_handler.event_types:
            if event_handler in self.handlers[event_type]:
                self.handlers[event_type].remove(event_handler)

    def unsubscribe(self, handler: Callable) -> None:
        """Unsubscribe a handler from all events."""
        for event_type in self.handlers:
            self.handlers[event_type] = [
                h for h in self.handlers[event_type]
                if h.handler_func != handler
            ]
        logger.debug(f"Unsubscribed {handler.__name__}")

    async def wait_for(self, event_type: EventType, timeout: float = 5.0,
                       filter_func: Optional[Callable] = None) -> Optional[Event]:
        """Wait for a specific event with timeout."""
        future = asyncio.get_running_loop().create_future()

        def wait_handler(event: Event):
            if not future.done():
                future.set_result(event)

        self.once(event_type, wait_handler, filter_func=filter_func)

        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            logger.debug(f"Timeout waiting for event {event_type.value}")
            return None
        finally:
            self.unsubscribe(wait_handler)

    def get_stats(self) -> Dict[str, Any]:
        """Get event bus statistics."""
        return {
            "is_running": self.is_running,
            "queue_size": self.event_queue.qsize(),
            "total_handlers": sum(len(handlers) for handlers in self.handlers.values()),
            "metrics": dict(self.metrics),
            "event_history_size": len(self.event_history) if self.enable_history else 0,
        }

    def get_event_history(self, event_type: Optional[EventType] = None,
                          limit: int = 10) -> List[Event]:
        """Get recent event history, optionally filtered by type."""
        if not self.enable_history:
            return []

        if event_type:
            events = [e for e in self.event_history if e.type == event_type]
        else:
            events = list(self.event_history)

        return events[-limit:]

    def clear_history(self) -> None:
        """Clear event history."""
        self.event_history.clear()

    def reset_metrics(self) -> None:
        """Reset all metrics."""
        self.metrics = self._empty_metrics()
