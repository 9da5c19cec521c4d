"""
Event Bus - notification channel between the listener and its consumers.

Each ProtocolEventListener owns one EventBus. Normalized events, factory
events and listener errors are published to it and dispatched, in publish
order, to the handlers subscribed to that event type.

Key Features:
- Async FIFO queue using asyncio.Queue (single consumer keeps ordering)
- Type-keyed subscription returning a Subscription handle
- Cancellation contract: once a Subscription is cancelled its handler is
  never called again, including for events already sitting in the queue
- Handler error isolation and statistics
- Graceful shutdown that drains the queue
"""

import asyncio
import itertools
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type

logger = logging.getLogger(__name__)


# ============================================================================
# Event Bus Statistics
# ============================================================================

@dataclass
class EventBusStats:
    """Statistics for event bus monitoring."""
    events_published: int = 0
    events_processed: int = 0
    events_dropped: int = 0
    handlers_executed: int = 0
    handler_errors: int = 0
    avg_processing_time_ms: float = 0.0
    queue_size: int = 0
    total_processing_time_ms: float = 0.0
    started_at: Optional[datetime] = None
    last_event_at: Optional[datetime] = None

    def get_stats_dict(self) -> Dict[str, Any]:
        """Return stats as dictionary."""
        return {
            "events_published": self.events_published,
            "events_processed": self.events_processed,
            "events_dropped": self.events_dropped,
            "handlers_executed": self.handlers_executed,
            "handler_errors": self.handler_errors,
            "avg_processing_time_ms": round(self.avg_processing_time_ms, 2),
            "queue_size": self.queue_size,
            "uptime_seconds": (
                (datetime.utcnow() - self.started_at).total_seconds()
                if self.started_at
                else 0
            ),
        }


# ============================================================================
# Subscription Handle
# ============================================================================

class Subscription:
    """Handle returned by EventBus.subscribe()."""

    _ids = itertools.count(1)

    def __init__(self, bus: "EventBus", event_type: Type, handler: Callable[[Any], Any]):
        self.id = next(self._ids)
        self.event_type = event_type
        self.handler = handler
        self._bus = bus
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Stop all future deliveries to this handler."""
        if self._active:
            self._active = False
            self._bus._remove(self)

    def __repr__(self) -> str:
        name = getattr(self.event_type, "__name__", str(self.event_type))
        return f"Subscription(id={self.id}, event_type={name}, active={self._active})"


# ============================================================================
# Event Bus
# ============================================================================

class EventBus:
    """
    Per-listener notification channel.

    Usage:
        bus = EventBus()

        async def on_event(event: StandardizedEvent):
            print(event.id)

        subscription = bus.subscribe(StandardizedEvent, on_event)
        await bus.start()
        await bus.publish(event)
        subscription.cancel()
        await bus.stop()
    """

    def __init__(self, max_queue_size: int = 10000, publish_timeout: float = 1.0):
        """
        Initialize EventBus.

        Args:
            max_queue_size: Maximum events in queue before publishers wait
            publish_timeout: Seconds publish() waits on a full queue before dropping
        """
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self._publish_timeout = publish_timeout

        # Subscribers: {EventType: [subscription1, subscription2, ...]}
        self._subscribers: Dict[Type, List[Subscription]] = defaultdict(list)
        self._wildcard_subscribers: List[Subscription] = []

        self._running = False
        self._event_loop_task: Optional[asyncio.Task] = None
        self._stats = EventBusStats()

        logger.debug("EventBus initialized (max queue size: %d)", max_queue_size)

    # ========================================================================
    # Subscription Management
    # ========================================================================

    def subscribe(self, event_type: Type, handler: Callable[[Any], Any]) -> Subscription:
        """
        Subscribe a handler to a specific event type.

        Args:
            event_type: Event class to subscribe to (e.g., StandardizedEvent)
            handler: Async or sync callable that accepts the event

        Returns:
            Subscription handle; call cancel() or unsubscribe() to detach
        """
        subscription = Subscription(self, event_type, handler)
        self._subscribers[event_type].append(subscription)
        logger.debug(
            "Subscribed %s to %s (total: %d handlers)",
            getattr(handler, "__name__", repr(handler)),
            event_type.__name__,
            len(self._subscribers[event_type]),
        )
        return subscription

    def subscribe_to_all(self, handler: Callable[[Any], Any]) -> Subscription:
        """Subscribe a handler to ALL events (wildcard subscription)."""
        subscription = Subscription(self, object, handler)
        self._wildcard_subscribers.append(subscription)
        logger.debug("Subscribed %s to ALL events", getattr(handler, "__name__", repr(handler)))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Cancel a subscription. Safe to call more than once."""
        subscription.cancel()

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._wildcard_subscribers:
            self._wildcard_subscribers.remove(subscription)
            return
        handlers = self._subscribers.get(subscription.event_type, [])
        if subscription in handlers:
            handlers.remove(subscription)

    def get_subscriber_count(self, event_type: Optional[Type] = None) -> int:
        """Get number of subscribers for an event type (or all typed subscribers)."""
        if event_type:
            return len(self._subscribers.get(event_type, []))
        return sum(len(handlers) for handlers in self._subscribers.values())

    # ========================================================================
    # Event Publishing
    # ========================================================================

    async def publish(self, event: Any) -> None:
        """
        Publish an event to the bus.

        Raises:
            asyncio.QueueFull: If the queue stays full for publish_timeout seconds
        """
        try:
            await asyncio.wait_for(self._queue.put(event), timeout=self._publish_timeout)
            self._stats.events_published += 1
            self._stats.last_event_at = datetime.utcnow()
        except asyncio.TimeoutError:
            self._stats.events_dropped += 1
            logger.error("Event queue full! Dropping event: %s", event.__class__.__name__)
            raise asyncio.QueueFull(
                f"Event queue full (max: {self._queue.maxsize}), cannot publish {event.__class__.__name__}"
            )

    # ========================================================================
    # Event Loop Management
    # ========================================================================

    async def start(self) -> None:
        """Start the background dispatch loop."""
        if self._running:
            logger.warning("EventBus already running")
            return

        self._running = True
        self._stats.started_at = datetime.utcnow()
        self._event_loop_task = asyncio.create_task(self._process_events())
        logger.debug("EventBus started")

    async def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the bus, draining queued events first.

        Args:
            timeout: Maximum time to wait for the queue to drain (seconds)
        """
        if not self._running:
            return

        logger.debug("Stopping EventBus (draining queue: %d events)...", self._queue.qsize())
        self._running = False

        if self._event_loop_task:
            try:
                await asyncio.wait_for(self._event_loop_task, timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("EventBus shutdown timeout - forcing stop")
                self._event_loop_task.cancel()
                try:
                    await self._event_loop_task
                except asyncio.CancelledError:
                    pass
            self._event_loop_task = None

    async def join(self) -> None:
        """Wait until every published event has been dispatched."""
        await self._queue.join()

    async def _process_events(self) -> None:
        """Pull events off the queue and dispatch them one at a time."""
        while self._running or not self._queue.empty():
            try:
                try:
                    event = await asyncio.wait_for(self._queue.get(), timeout=0.1)
                except asyncio.TimeoutError:
                    continue

                self._stats.queue_size = self._queue.qsize()
                self._stats.events_processed += 1

                start_time = datetime.utcnow()
                try:
                    await self._dispatch_event(event)
                finally:
                    self._queue.task_done()
                processing_time_ms = (datetime.utcnow() - start_time).total_seconds() * 1000

                self._stats.total_processing_time_ms += processing_time_ms
                self._stats.avg_processing_time_ms = (
                    self._stats.total_processing_time_ms / self._stats.events_processed
                )

            except Exception as e:
                logger.exception("Error in event processing loop: %s", e)

    async def _dispatch_event(self, event: Any) -> None:
        """
        Dispatch event to its handlers in subscription order.

        Handlers run sequentially so a single subscriber observes events in
        publish order. Subscriptions cancelled while the event was queued
        are skipped.
        """
        handlers = list(self._subscribers.get(type(event), [])) + list(self._wildcard_subscribers)

        for subscription in handlers:
            if not subscription.active:
                continue
            await self._execute_handler(subscription.handler, event)

    async def _execute_handler(self, handler: Callable, event: Any) -> None:
        """Execute a single handler with error isolation."""
        try:
            result = handler(event)
            if asyncio.iscoroutine(result):
                await result
            self._stats.handlers_executed += 1

        except Exception as e:
            self._stats.handler_errors += 1
            logger.exception(
                "Error in handler %s for event %s: %s",
                getattr(handler, "__name__", repr(handler)),
                event.__class__.__name__,
                e,
            )

    # ========================================================================
    # Statistics & Monitoring
    # ========================================================================

    def get_stats(self) -> Dict[str, Any]:
        """Get current event bus statistics."""
        self._stats.queue_size = self._queue.qsize()
        return self._stats.get_stats_dict()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    def __repr__(self) -> str:
        return (
            f"EventBus(running={self._running}, "
            f"queue_size={self._queue.qsize()}, "
            f"subscribers={self.get_subscriber_count()}, "
            f"events_processed={self._stats.events_processed})"
        )
