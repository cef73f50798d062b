"""
Redis pub/sub event bus implementation.
"""

from __future__ import annotations

import asyncio
import uuid

import redis.asyncio as redis
import structlog

from rls_projects.core.interfaces.events import Event, EventHandler, Subscription

logger = structlog.get_logger()


def _log_listener_exit(task: asyncio.Task, topic: str, subscription_id: str) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "event_listener_died",
            topic=topic,
            subscription_id=subscription_id,
            error=str(exc),
        )
    else:
        logger.warning("event_listener_stopped", topic=topic, subscription_id=subscription_id)


class RedisEventBus:
    """
    Event bus on Redis pub/sub.

    Each subscription owns a PubSub connection and a listener task.
    Redis pub/sub is fire-and-forget: subscribers that are not connected
    when an event is published never see it.

    Usage:
        bus = RedisEventBus(redis_url="redis://localhost:6379/0")
        await bus.start()

        sub = await bus.subscribe("projects:<company_id>", handler)
        await bus.publish("projects:<company_id>", event)

        await bus.stop()
    """

    def __init__(self, redis_url: str = "redis://localhost:6379/0", prefix: str = ""):
        self.redis_url = redis_url
        self.prefix = prefix
        self._client: redis.Redis | None = None
        self._subscriptions: dict[str, Subscription] = {}
        self._listeners: dict[str, tuple[redis.client.PubSub, asyncio.Task]] = {}

    async def start(self) -> None:
        """Connect to Redis."""
        if self._client is None:
            self._client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )

    async def stop(self) -> None:
        """Cancel listeners and disconnect."""
        for subscription_id in list(self._listeners):
            await self.unsubscribe(subscription_id)
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Event bus not connected. Call start() first.")
        return self._client

    def _channel(self, topic: str) -> str:
        return f"{self.prefix}{topic}" if self.prefix else topic

    async def publish(self, topic: str, event: Event) -> str:
        event.topic = topic
        receivers = await self.client.publish(self._channel(topic), event.to_json())
        logger.debug("event_published", topic=topic, event_type=event.type, receivers=receivers)
        return event.id

    async def subscribe(self, topic: str, handler: EventHandler) -> Subscription:
        subscription = Subscription(id=str(uuid.uuid4()), topic=topic, handler=handler)

        pubsub = self.client.pubsub()
        await pubsub.subscribe(self._channel(topic))

        async def _listener() -> None:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    await handler(Event.from_json(message["data"]))
                except Exception as exc:
                    logger.error(
                        "event_handler_failed",
                        topic=topic,
                        subscription_id=subscription.id,
                        error=str(exc),
                    )

        task = asyncio.create_task(_listener())
        task.add_done_callback(lambda t: _log_listener_exit(t, topic, subscription.id))
        self._subscriptions[subscription.id] = subscription
        self._listeners[subscription.id] = (pubsub, task)
        return subscription

    async def unsubscribe(self, subscription_id: str) -> bool:
        self._subscriptions.pop(subscription_id, None)
        listener = self._listeners.pop(subscription_id, None)
        if listener is None:
            return False

        pubsub, task = listener
        task.cancel()
        # A listener that already died was logged by its done callback
        await asyncio.gather(task, return_exceptions=True)

        try:
            await pubsub.unsubscribe()
        except redis.RedisError as exc:
            logger.warning("event_unsubscribe_failed", subscription_id=subscription_id, error=str(exc))
        finally:
            await pubsub.aclose()
        return True

    async def health_check(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (redis.RedisError, RuntimeError):
            return False
