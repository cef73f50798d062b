"""Component health checks for /health/detailed."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rls_projects.core.interfaces.events import EventBus

logger = structlog.get_logger()

SLOW_DATABASE_MS = 100

RLS_STATE_SQL = text(
    "SELECT relrowsecurity, relforcerowsecurity FROM pg_class WHERE relname = 'projects'"
)


class HealthStatus(str, Enum):
    """Ordered from best to worst."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @property
    def severity(self) -> int:
        return list(HealthStatus).index(self)


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus
    latency_ms: Optional[float] = None
    message: Optional[str] = None
    details: dict = field(default_factory=dict)

    @classmethod
    def failed(cls, name: str, error: BaseException) -> "ComponentHealth":
        return cls(name=name, status=HealthStatus.UNHEALTHY, message=str(error)[:100])


@dataclass
class SystemHealth:
    status: HealthStatus
    version: str
    environment: str
    components: list[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> dict:
        components = {}
        for component in self.components:
            entry = asdict(component)
            entry.pop("name")
            entry["status"] = component.status.value
            entry.update(entry.pop("details"))
            components[component.name] = entry

        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "components": components,
        }


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


async def check_database(session_factory: async_sessionmaker[AsyncSession]) -> ComponentHealth:
    """
    Check database connectivity and that row-level security is in force.

    Reports DEGRADED when the projects table is reachable but its policies
    are not both enabled and forced, or when the round trip is slow.
    """
    start = time.perf_counter()
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
            row = (await session.execute(RLS_STATE_SQL)).first()
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return ComponentHealth.failed("database", e)

    latency = _elapsed_ms(start)
    rls_enforced = bool(row and row[0] and row[1])

    if not rls_enforced:
        status, message = HealthStatus.DEGRADED, "Row-level security not enforced on projects"
    elif latency >= SLOW_DATABASE_MS:
        status, message = HealthStatus.DEGRADED, "Slow response"
    else:
        status, message = HealthStatus.HEALTHY, "Connected"

    return ComponentHealth(
        name="database",
        status=status,
        latency_ms=latency,
        message=message,
        details={"rls_enforced": rls_enforced},
    )


async def check_event_bus(bus: EventBus) -> ComponentHealth:
    """Check the notification bus. A dead bus only degrades live updates."""
    start = time.perf_counter()
    try:
        healthy = await bus.health_check()
    except Exception as e:
        logger.error("Event bus health check failed", error=str(e))
        healthy = False

    return ComponentHealth(
        name="events",
        status=HealthStatus.HEALTHY if healthy else HealthStatus.DEGRADED,
        latency_ms=_elapsed_ms(start),
        message="Connected" if healthy else "Unavailable",
        details={"backend": type(bus).__name__},
    )


HealthCheck = Callable[[], Awaitable[ComponentHealth]]


class HealthChecker:
    """
    Runs registered component checks concurrently.

    The overall status is the worst component status; a check that raises
    counts as unhealthy.
    """

    def __init__(self, version: str, environment: str):
        self.version = version
        self.environment = environment
        self.checks: dict[str, HealthCheck] = {}

    def add_check(self, name: str, check_fn: HealthCheck) -> None:
        self.checks[name] = check_fn

    async def run(self) -> SystemHealth:
        names = list(self.checks)
        results = await asyncio.gather(
            *(self.checks[name]() for name in names),
            return_exceptions=True,
        )

        components = [
            ComponentHealth.failed(name, result) if isinstance(result, BaseException) else result
            for name, result in zip(names, results)
        ]
        overall = max(
            (c.status for c in components),
            key=lambda status: status.severity,
            default=HealthStatus.HEALTHY,
        )

        return SystemHealth(
            status=overall,
            version=self.version,
            environment=self.environment,
            components=components,
        )
