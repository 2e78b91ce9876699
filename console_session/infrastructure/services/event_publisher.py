"""Event Publisher Infrastructure Service.

Concrete implementation of the domain event publishing interface, letting the
session manager announce lifecycle changes without knowing who listens.
"""

import asyncio
import inspect
from typing import Callable, List, Optional

import structlog

from console_session.domain.events.session_events import BaseDomainEvent
from console_session.domain.interfaces.services import IEventPublisher

logger = structlog.get_logger(__name__)


class InMemoryEventPublisher(IEventPublisher):
    """In-memory event publisher.

    Keeps published events for inspection and notifies subscribers in
    registration order. Subscribers may be plain functions or coroutine
    functions. A failing subscriber is logged and skipped; it never fails the
    session operation that published the event.
    """

    def __init__(self, history_limit: Optional[int] = 100):
        """Initialize event publisher with in-memory storage.

        Args:
            history_limit: Maximum number of events kept for inspection.
                ``None`` keeps everything.
        """
        self._published_events: List[BaseDomainEvent] = []
        self._subscribers: List[Callable] = []
        self._history_limit = history_limit

    async def publish(self, event: BaseDomainEvent) -> None:
        """Publish a single domain event.

        Args:
            event: Domain event to publish
        """
        self._published_events.append(event)
        if self._history_limit is not None and len(self._published_events) > self._history_limit:
            del self._published_events[: len(self._published_events) - self._history_limit]

        if self._subscribers:
            await self._notify_subscribers(event)

        logger.debug(
            "Domain event published",
            event_type=type(event).__name__,
            user_id=event.user_id,
            occurred_at=event.occurred_at.isoformat(),
        )

    async def publish_many(self, events: List[BaseDomainEvent]) -> None:
        """Publish multiple domain events in order.

        Args:
            events: List of domain events to publish
        """
        for event in events:
            await self.publish(event)

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        """Add event subscriber callback.

        Args:
            callback: Function or coroutine function called with each event

        Returns:
            A function that removes the subscription. Calling it twice is harmless.
        """
        self._subscribers.append(callback)
        logger.debug("Event subscriber added", subscribers=len(self._subscribers))

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
                logger.debug("Event subscriber removed", subscribers=len(self._subscribers))

        return unsubscribe

    def get_published_events(self, event_type: Optional[type] = None) -> List[BaseDomainEvent]:
        """Get published events, optionally only those of one type.

        Args:
            event_type: Event class to filter by

        Returns:
            List[BaseDomainEvent]: Matching events, oldest first
        """
        if event_type is None:
            return list(self._published_events)
        return [e for e in self._published_events if isinstance(e, event_type)]

    def clear_published_events(self) -> None:
        """Clear all stored published events."""
        event_count = len(self._published_events)
        self._published_events.clear()
        logger.debug("Published events cleared", event_count=event_count)

    async def _notify_subscribers(self, event: BaseDomainEvent) -> None:
        """Notify all subscribers of published event.

        Args:
            event: Event to notify subscribers about
        """
        for subscriber in list(self._subscribers):
            try:
                result = subscriber(event)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "Event subscriber failed",
                    event_type=type(event).__name__,
                    subscriber=getattr(subscriber, "__qualname__", repr(subscriber)),
                    error=str(e),
                )
