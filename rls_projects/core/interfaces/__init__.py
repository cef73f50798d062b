"""
Core interfaces (protocols) for extensibility.
All backends must implement these protocols to be swappable.
"""

from .events import Event, EventBus, EventHandler, Subscription

__all__ = [
    "Event",
    "EventBus",
    "EventHandler",
    "Subscription",
]
