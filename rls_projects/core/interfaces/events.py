"""
Event bus protocol for change notifications.
Implementations: InMemoryEventBus, RedisEventBus

Delivery is at-most-once and best-effort: events only tell live viewers
to re-query through the scoped operations, they never carry state that
correctness depends on.
"""
from __future__ import annotations

from typing import Protocol, Any, Callable, Awaitable
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
import json
import uuid


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Event:
    """Base event structure."""
    type: str  # e.g., "project_created"
    data: dict[str, Any]
    topic: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_utc_now)

    def to_json(self) -> str:
        payload = asdict(self)
        payload["timestamp"] = self.timestamp.isoformat()
        return json.dumps(payload)

    @classmethod
    def from_json(cls, raw: str | bytes) -> "Event":
        payload = json.loads(raw)
        payload["timestamp"] = datetime.fromisoformat(payload["timestamp"])
        return cls(**payload)


EventHandler = Callable[[Event], Awaitable[None]]


@dataclass
class Subscription:
    """Event subscription info."""
    id: str
    topic: str
    handler: EventHandler


class EventBus(Protocol):
    """
    Protocol for event bus implementations.

    Topics are plain strings; tenant channels look like
    "projects:<company_id>".
    """

    async def publish(self, topic: str, event: Event) -> str:
        """
        Publish an event to a topic.
        Returns event ID.
        """
        ...

    async def subscribe(self, topic: str, handler: EventHandler) -> Subscription:
        """Call handler for every event published to topic from now on."""
        ...

    async def unsubscribe(self, subscription_id: str) -> bool:
        """Unsubscribe from events."""
        ...

    # Lifecycle
    async def start(self) -> None:
        """Start the event bus (connect)."""
        ...

    async def stop(self) -> None:
        """Stop the event bus (disconnect, cleanup)."""
        ...

    async def health_check(self) -> bool:
        """Check if event bus is healthy."""
        ...
