"""
Backend implementations for core interfaces.
"""

from rls_projects.implementations.events import (
    InMemoryEventBus,
    RedisEventBus,
    create_event_bus,
)

__all__ = [
    "InMemoryEventBus",
    "RedisEventBus",
    "create_event_bus",
]
