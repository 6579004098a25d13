"""Delivery of domain events to downstream collaborators.

Email, in-app messaging and similar consumers subscribe here. Delivery
happens after the state change is committed, so a failing subscriber is
logged and skipped; it never undoes the change.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], Awaitable[None]]


class NotificationService:
    """Fan-out of domain events to registered subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Subscriber:
        """Register a subscriber; usable as a decorator."""
        self._subscribers.append(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    async def publish(self, event: Any) -> int:
        """Deliver an event to every subscriber.

        Returns:
            Number of subscribers that accepted the event
        """
        payload = event.to_dict() if hasattr(event, "to_dict") else event
        logger.info("Domain event %s", payload)

        delivered = 0
        for subscriber in list(self._subscribers):
            try:
                await subscriber(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "Subscriber %r failed for %s",
                    subscriber,
                    getattr(event, "name", type(event).__name__),
                )
        return delivered


notification_service = NotificationService()
