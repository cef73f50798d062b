"""
Database connection and session management.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)

from rls_projects.core.config import DatabaseSettings, settings


def create_engine(db: DatabaseSettings | None = None) -> AsyncEngine:
    """
    Create the pooled async engine.

    Statement and lock timeouts are applied as server settings on every
    pooled connection; the access-context executor adds no timeout of its own.
    """
    db = db or settings.database
    return create_async_engine(
        str(db.url),
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.pool_overflow,
        pool_timeout=db.pool_timeout,
        pool_pre_ping=True,
        connect_args={
            "server_settings": {
                "statement_timeout": str(db.statement_timeout_ms),
                "lock_timeout": str(db.lock_timeout_ms),
            }
        },
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory; objects stay readable after their transaction commits."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Create async engine
engine = create_engine()

# Session factory
async_session_factory = create_session_factory(engine)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
