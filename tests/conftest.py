"""
Pytest fixtures for testing.

Provides:
- Fake async sessions that record statements (no database needed)
- Executor, services and event bus wired to the fakes
- Test client with service overrides
- Factory helpers for scopes and projects

Tests that need real row-level security live in tests/integration/.
"""

from collections import deque
from datetime import datetime, timezone
from typing import Any, AsyncGenerator
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.exc import DBAPIError
from sqlalchemy.sql.elements import TextClause

from rls_projects.api.dependencies import get_accounts_service, get_project_service
from rls_projects.core.rls import AccessContextExecutor
from rls_projects.core.scope import Scope, ScopeTenant, ScopeUser
from rls_projects.implementations.events import InMemoryEventBus
from rls_projects.main import create_app
from rls_projects.models.project import Project
from rls_projects.services.project import ProjectService


# ============ Fake Sessions ============

SETUP_PREFIXES = ("SELECT set_config(", "SET LOCAL ROLE ")


class FakeScalars:
    def __init__(self, rows: list[Any]):
        self.rows = rows

    def all(self) -> list[Any]:
        return list(self.rows)


class FakeResult:
    """Stands in for a SQLAlchemy Result."""

    def __init__(self, rows: list[Any] | None = None):
        self.rows = rows or []

    def scalars(self) -> FakeScalars:
        return FakeScalars(self.rows)

    def scalar_one_or_none(self) -> Any:
        return self.rows[0] if self.rows else None

    def scalar(self) -> Any:
        return self.rows[0] if self.rows else None

    def first(self) -> Any:
        return self.rows[0] if self.rows else None

    def all(self) -> list[Any]:
        return list(self.rows)


class _Transaction:
    def __init__(self, session: "FakeSession"):
        self.session = session

    async def __aenter__(self):
        self.session.began = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            if self.session.factory.commit_error is not None:
                self.session.rolled_back = True
                raise self.session.factory.commit_error
            self.session.committed = True
        else:
            self.session.rolled_back = True
        return False


class FakeSession:
    """
    Records every statement.

    Access-context setup statements (set_config, SET LOCAL ROLE) are kept
    in ``setup``; everything else in ``statements`` and answered from the
    factory's response queue.
    """

    def __init__(self, factory: "FakeSessionFactory"):
        self.factory = factory
        self.setup: list[tuple[str, dict | None]] = []
        self.statements: list[Any] = []
        self.added: list[Any] = []
        self.began = False
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def begin(self) -> _Transaction:
        return _Transaction(self)

    def _next(self) -> Any:
        if self.factory.operation_error is not None:
            raise self.factory.operation_error
        return self.factory.responses.popleft() if self.factory.responses else None

    async def execute(self, statement: Any, params: dict | None = None) -> FakeResult:
        if isinstance(statement, TextClause) and statement.text.startswith(SETUP_PREFIXES):
            if self.factory.setup_error is not None:
                raise self.factory.setup_error
            self.setup.append((statement.text, params))
            return FakeResult()

        self.statements.append(statement)
        response = self._next()
        if isinstance(response, FakeResult):
            return response
        if response is None:
            return FakeResult()
        return FakeResult(response if isinstance(response, list) else [response])

    async def scalar(self, statement: Any) -> Any:
        self.statements.append(statement)
        response = self._next()
        if isinstance(response, FakeResult):
            return response.scalar()
        return response

    async def get(self, entity: Any, ident: Any) -> Any:
        self.statements.append((entity, ident))
        return self._next()

    def add(self, obj: Any) -> None:
        self.added.append(obj)

    async def flush(self) -> None:
        for obj in self.added:
            if getattr(obj, "id", None) is None:
                obj.id = uuid4()

    async def refresh(self, obj: Any, attribute_names: Any = None) -> None:
        now = datetime.now(timezone.utc)
        for attr in ("created_at", "updated_at"):
            if hasattr(obj, attr) and getattr(obj, attr) is None:
                setattr(obj, attr, now)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True
        return False


class FakeSessionFactory:
    """Callable like an async_sessionmaker; remembers the sessions it opened."""

    def __init__(self):
        self.sessions: list[FakeSession] = []
        self.responses: deque[Any] = deque()
        self.setup_error: Exception | None = None
        self.operation_error: Exception | None = None
        self.commit_error: Exception | None = None

    def __call__(self) -> FakeSession:
        session = FakeSession(self)
        self.sessions.append(session)
        return session

    def respond(self, *responses: Any) -> None:
        """Queue answers for the next non-setup statements, in order."""
        self.responses.extend(responses)

    @property
    def last(self) -> FakeSession:
        return self.sessions[-1]


def db_error(message: str = "permission denied for table projects") -> DBAPIError:
    return DBAPIError("SELECT 1", {}, Exception(message))


# ============ Factory Helpers ============


def make_scope(
    role: str = "user",
    company_id: UUID | None = None,
    company_name: str = "Acme Corporation",
    email: str | None = None,
) -> Scope:
    company_id = company_id or uuid4()
    return Scope(
        user=ScopeUser(
            id=uuid4(),
            email=email or f"user-{uuid4().hex[:8]}@example.com",
            role=role,
            company_id=company_id,
        ),
        tenant=ScopeTenant(id=company_id, name=company_name),
    )


def make_project(
    company_id: UUID,
    name: str = "Website Redesign",
    description: str | None = "Complete overhaul of company website",
) -> Project:
    now = datetime.now(timezone.utc)
    return Project(
        id=uuid4(),
        company_id=company_id,
        name=name,
        description=description,
        created_at=now,
        updated_at=now,
    )


# ============ Fixtures ============


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory()


@pytest.fixture
def executor(session_factory: FakeSessionFactory) -> AccessContextExecutor:
    return AccessContextExecutor(session_factory)


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus(keep_history=True)


@pytest.fixture
def project_service(executor: AccessContextExecutor, event_bus: InMemoryEventBus) -> ProjectService:
    return ProjectService(executor, event_bus)


@pytest.fixture
def scope_a() -> Scope:
    return make_scope(company_name="Acme Corporation", email="john@acme.com")


@pytest.fixture
def scope_b() -> Scope:
    return make_scope(company_name="Tech Solutions Ltd", email="bob@techsolutions.com")


class FakeAccounts:
    """Resolves X-User-ID to pre-registered scopes."""

    def __init__(self, scopes: list[Scope]):
        self.scopes = {scope.user.id: scope for scope in scopes}

    async def scope_for_user(self, user_id: UUID) -> Scope | None:
        return self.scopes.get(user_id)


@pytest_asyncio.fixture
async def client(
    project_service: ProjectService,
    scope_a: Scope,
    scope_b: Scope,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with service overrides.

    Requests authenticate as scope_a or scope_b through ``headers_for``.
    """
    app = create_app()
    accounts = FakeAccounts([scope_a, scope_b])

    app.dependency_overrides[get_project_service] = lambda: project_service
    app.dependency_overrides[get_accounts_service] = lambda: accounts

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


def headers_for(scope: Scope) -> dict[str, str]:
    return {"X-User-ID": str(scope.user.id)}
