"""
Change notification bus backends.
"""

from rls_projects.core.config import EventSettings, RedisSettings, settings
from rls_projects.core.interfaces.events import EventBus

from .memory import InMemoryEventBus
from .redis import RedisEventBus


def create_event_bus(
    events: EventSettings | None = None,
    redis_settings: RedisSettings | None = None,
) -> EventBus:
    """Build the configured event bus (not yet started)."""
    events = events or settings.events
    if events.backend == "redis":
        redis_settings = redis_settings or settings.redis
        return RedisEventBus(redis_url=str(redis_settings.url))
    return InMemoryEventBus()


__all__ = ["InMemoryEventBus", "RedisEventBus", "create_event_bus"]
