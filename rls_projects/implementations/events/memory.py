"""
In-memory event bus for testing and development.
"""

from __future__ import annotations

import uuid
from collections import defaultdict

import structlog

from rls_projects.core.interfaces.events import Event, EventHandler, Subscription

logger = structlog.get_logger()


class InMemoryEventBus:
    """
    In-process event bus.

    Handlers run sequentially in publish order, so delivery order per topic
    is the publish order. A failing handler is logged and skipped.

    Usage:
        bus = InMemoryEventBus()

        async def on_change(event: Event) -> None:
            print(event.type, event.data)

        sub = await bus.subscribe("projects:<company_id>", on_change)
        await bus.publish("projects:<company_id>", Event(type="project_created", data={}))
        await bus.unsubscribe(sub.id)
    """

    def __init__(self, keep_history: bool = False):
        """
        Args:
            keep_history: Record every published event in ``published``
                (tests only; grows without bound).
        """
        self.keep_history = keep_history
        self.published: list[Event] = []
        self._subscriptions: dict[str, Subscription] = {}
        self._topics: dict[str, list[str]] = defaultdict(list)

    async def publish(self, topic: str, event: Event) -> str:
        event.topic = topic
        if self.keep_history:
            self.published.append(event)

        for subscription_id in list(self._topics.get(topic, [])):
            subscription = self._subscriptions.get(subscription_id)
            if subscription is None:
                continue
            try:
                await subscription.handler(event)
            except Exception as exc:
                logger.error(
                    "event_handler_failed",
                    topic=topic,
                    event_type=event.type,
                    subscription_id=subscription_id,
                    error=str(exc),
                )

        return event.id

    async def subscribe(self, topic: str, handler: EventHandler) -> Subscription:
        subscription = Subscription(id=str(uuid.uuid4()), topic=topic, handler=handler)
        self._subscriptions[subscription.id] = subscription
        self._topics[topic].append(subscription.id)
        return subscription

    async def unsubscribe(self, subscription_id: str) -> bool:
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is None:
            return False
        self._topics[subscription.topic].remove(subscription_id)
        if not self._topics[subscription.topic]:
            del self._topics[subscription.topic]
        return True

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, []))

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        self._subscriptions.clear()
        self._topics.clear()

    async def health_check(self) -> bool:
        return True
