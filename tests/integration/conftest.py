"""
Fixtures for tests against a real PostgreSQL database.

Set TEST_DATABASE_URL to a database the test role may create tables and
roles in (a superuser on a throwaway database is simplest). Every test gets
freshly created tables with the row-level security policies installed;
without the variable, these tests are skipped.
"""

import os
from collections.abc import AsyncGenerator
from dataclasses import dataclass

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from rls_projects.core.rls import DEFAULT_PRINCIPALS, AccessContextExecutor
from rls_projects.core.rls.policies import install_statements
from rls_projects.core.scope import Scope
from rls_projects.implementations.events import InMemoryEventBus
from rls_projects.models import Base
from rls_projects.models.database import create_session_factory
from rls_projects.services.accounts import AccountsService
from rls_projects.services.project import ProjectService


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Engine with the schema and the policy layer installed."""
    database_url = os.getenv("TEST_DATABASE_URL")
    if not database_url:
        pytest.skip("TEST_DATABASE_URL not set - skipping postgres test")

    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"TEST_DATABASE_URL is not PostgreSQL: {database_url}")

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(database_url, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
        for statement in install_statements(DEFAULT_PRINCIPALS):
            await conn.exec_driver_sql(statement)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def pg_executor(postgres_engine: AsyncEngine) -> AccessContextExecutor:
    return AccessContextExecutor(create_session_factory(postgres_engine))


@pytest.fixture
def pg_events() -> InMemoryEventBus:
    return InMemoryEventBus(keep_history=True)


@pytest.fixture
def pg_projects(pg_executor: AccessContextExecutor, pg_events: InMemoryEventBus) -> ProjectService:
    return ProjectService(pg_executor, pg_events)


@pytest.fixture
def pg_accounts(pg_executor: AccessContextExecutor) -> AccountsService:
    return AccountsService(pg_executor)


@dataclass
class Tenants:
    """Two companies: A with two projects, B with three."""

    user_a: Scope
    user_b: Scope
    admin_a: Scope
    readonly_a: Scope


@pytest_asyncio.fixture
async def tenants(pg_accounts: AccountsService, pg_projects: ProjectService) -> Tenants:
    company_a = await pg_accounts.create_company({"name": "Acme Corporation"})
    company_b = await pg_accounts.create_company({"name": "Tech Solutions Ltd"})

    async def scope(email: str, role: str, company) -> Scope:
        user = await pg_accounts.register_user({"email": email, "role": role, "company_id": company.id})
        return await pg_accounts.scope_for_user(user.id)

    result = Tenants(
        user_a=await scope("john@acme.com", "user", company_a),
        user_b=await scope("bob@techsolutions.com", "user", company_b),
        admin_a=await scope("admin@acme.com", "admin", company_a),
        readonly_a=await scope("readonly@acme.com", "readonly", company_a),
    )

    for name in ("Website Redesign", "Mobile App"):
        await pg_projects.create_project(result.user_a, {"name": name})
    for name in ("Client Portal", "API Development", "Data Pipeline"):
        await pg_projects.create_project(result.user_b, {"name": name})

    return result
