"""
Lightweight event bus for decoupled graph change notifications.

The editor session publishes one GraphEvent per graph change (and per
notice) so a UI can re-render without the session knowing about it.

Design Principles:
- Publisher-subscriber pattern (decoupled)
- Synchronous: handlers run in publish order, on the publisher's thread
- A failing handler is logged and never breaks the publisher
- Type-safe events via msgspec

Usage:
    from infrastructure.event_bus import EventBus, EventType

    bus = EventBus()

    def on_node_created(event: GraphEvent):
        redraw(event.payload["node_id"])

    bus.subscribe(EventType.NODE_CREATED, on_node_created)
    bus.emit(EventType.NODE_CREATED, {"node_id": "Stripe-4"}, source="editor")
"""
from typing import Callable, List, Dict, Any, Optional
from enum import Enum
import time
import msgspec
from collections import defaultdict
import logging


logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Types of events published by the editor session."""
    NODE_CREATED = "node_created"
    NODE_UPDATED = "node_updated"
    NODE_DELETED = "node_deleted"
    EDGE_CREATED = "edge_created"
    GRAPH_REPLACED = "graph_replaced"
    NOTICE_POSTED = "notice_posted"


class GraphEvent(msgspec.Struct, kw_only=True):
    """
    Event emitted when the graph (or the notice) changes.

    Attributes:
        type: Type of event (NODE_CREATED, EDGE_CREATED, etc.)
        payload: Event-specific data (node_id, edge_id, reason, ...)
        timestamp: Unix timestamp when event occurred
        source: Source of event ("editor", "cli", ...)
    """
    type: EventType
    payload: Dict[str, Any]
    timestamp: float
    source: str


EventHandler = Callable[[GraphEvent], None]


class EventBus:
    """
    Pub/sub for graph change notifications.

    Thread Safety:
        NOT thread-safe. Publish from the thread that owns the session.
    """

    def __init__(self):
        self._subscribers: Dict[EventType, List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: EventHandler):
        """
        Subscribe to events with a synchronous handler.

        Subscribing the same handler twice has no effect.
        """
        if handler not in self._subscribers[event_type]:
            self._subscribers[event_type].append(handler)
            logger.debug(f"Subscribed handler to {event_type.value}")

    def subscribe_all(self, handler: EventHandler):
        """Subscribe one handler to every event type."""
        for event_type in EventType:
            self.subscribe(event_type, handler)

    def publish(self, event: GraphEvent):
        """
        Publish an event to all subscribers.

        Exceptions in handlers are logged but don't propagate; the
        remaining handlers still run.
        """
        logger.debug(
            f"Publishing {event.type.value} from {event.source} "
            f"(payload keys: {list(event.payload.keys())})"
        )

        for handler in list(self._subscribers[event.type]):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Error in handler for {event.type.value}: {e}",
                    exc_info=True
                )

    def emit(self, event_type: EventType, payload: Optional[Dict[str, Any]] = None, source: str = "unknown") -> GraphEvent:
        """Build a GraphEvent stamped with the current time and publish it."""
        event = GraphEvent(
            type=event_type,
            payload=payload or {},
            timestamp=time.time(),
            source=source,
        )
        self.publish(event)
        return event

    def unsubscribe(self, event_type: EventType, handler: EventHandler):
        """Unsubscribe from events. `handler` must be the same instance."""
        if handler in self._subscribers[event_type]:
            self._subscribers[event_type].remove(handler)
            logger.debug(f"Unsubscribed handler from {event_type.value}")

    def clear_subscribers(self, event_type: Optional[EventType] = None):
        """
        Clear all subscribers for an event type (or all types).

        Args:
            event_type: Event type to clear (None = all types)
        """
        if event_type is None:
            self._subscribers.clear()
            logger.info("Cleared all event subscribers")
        else:
            self._subscribers[event_type].clear()
            logger.info(f"Cleared subscribers for {event_type.value}")

    def subscriber_count(self, event_type: Optional[EventType] = None) -> int:
        """Number of subscribers for an event type (None = all types)."""
        if event_type is None:
            return sum(len(handlers) for handlers in self._subscribers.values())
        return len(self._subscribers[event_type])
