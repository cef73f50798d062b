"""
Tests for cross-company reporting, the isolation audit and accounts.
"""

from types import SimpleNamespace
from uuid import uuid4

import pytest

from rls_projects.core.exceptions import ValidationFailure
from rls_projects.core.scope import Scope
from rls_projects.models.company import Company
from rls_projects.services.accounts import AccountsService
from rls_projects.services.isolation import IsolationAuditService
from rls_projects.services.system import SystemService

from tests.conftest import make_project


# ============ SystemService ============


@pytest.mark.asyncio
async def test_system_stats(executor, session_factory):
    session_factory.respond(3, 7, 6)

    stats = await SystemService(executor).get_system_stats()

    assert stats.total_companies == 3
    assert stats.total_users == 7
    assert stats.total_projects == 6
    assert stats.users_per_company == 2.33
    assert session_factory.last.setup[-1][0] == 'SET LOCAL ROLE "app_admin"'


@pytest.mark.asyncio
async def test_system_stats_without_companies(executor, session_factory):
    session_factory.respond(0, 0, 0)

    stats = await SystemService(executor).get_system_stats()

    assert stats.users_per_company == 0.0


@pytest.mark.asyncio
async def test_company_project_counts(executor, session_factory):
    acme, startup = uuid4(), uuid4()
    session_factory.respond([(acme, "Acme Corporation", 3), (startup, "Startup Inc", 0)])

    counts = await SystemService(executor).company_project_counts()

    assert [(c.company_name, c.project_count) for c in counts] == [
        ("Acme Corporation", 3),
        ("Startup Inc", 0),
    ]
    assert counts[0].company_id == acme


# ============ IsolationAuditService ============


def _user(email: str, role: str, company):
    return SimpleNamespace(id=uuid4(), email=email, role=role, company_id=company.id, company=company)


class StubProjects:
    """
    Answers like ProjectService over a fixed data set.

    ``leaky`` makes get_project ignore company boundaries, the way a
    missing policy would.
    """

    def __init__(self, projects, leaky: bool = False):
        self.projects = projects
        self.leaky = leaky

    def _visible(self, scope: Scope | None):
        if scope is None or scope.user is None:
            return []
        if scope.is_admin:
            return list(self.projects)
        return [p for p in self.projects if p.company_id == scope.tenant_id]

    async def list_projects(self, scope):
        return self._visible(scope)

    async def get_project(self, scope, project_id):
        pool = self.projects if self.leaky and scope is not None else self._visible(scope)
        return next((p for p in pool if p.id == project_id), None)


@pytest.fixture
def companies():
    return (
        SimpleNamespace(id=uuid4(), name="Acme Corporation"),
        SimpleNamespace(id=uuid4(), name="Tech Solutions Ltd"),
    )


@pytest.fixture
def users(companies):
    acme, tech = companies
    return [
        _user("admin@acme.com", "admin", acme),
        _user("john@acme.com", "user", acme),
        _user("bob@techsolutions.com", "user", tech),
    ]


@pytest.fixture
def projects(companies):
    acme, tech = companies
    return [
        make_project(acme.id, "Website Redesign"),
        make_project(acme.id, "Mobile App"),
        make_project(tech.id, "Client Portal"),
    ]


@pytest.mark.asyncio
async def test_isolation_holds(users, projects):
    reports = await IsolationAuditService(StubProjects(projects)).run(users)

    by_user = {r.user: r for r in reports}
    assert sum(r.security_breaches for r in reports) == 0

    john = by_user["john@acme.com"]
    assert john.own_projects == 2
    assert john.total_accessible_projects == 2
    cross = [r for r in john.results if r.access_type == "cross_company"]
    assert [(r.target_company, r.target_projects, r.accessible_projects) for r in cross] == [
        ("Tech Solutions Ltd", 1, 0)
    ]
    same = [r for r in john.results if r.access_type == "same_company"]
    assert [(r.target_user, r.accessible_projects) for r in same] == [("admin@acme.com", 2)]


@pytest.mark.asyncio
async def test_admin_cross_company_access_is_not_a_breach(users, projects):
    reports = await IsolationAuditService(StubProjects(projects)).run(users)

    admin = next(r for r in reports if r.user == "admin@acme.com")
    assert admin.is_admin
    assert admin.own_projects == 3
    assert admin.security_breaches == 0
    # own (all 3) + john's company (2) + bob's company (1)
    assert admin.total_accessible_projects == 6


@pytest.mark.asyncio
async def test_leaking_reads_are_breaches(users, projects):
    reports = await IsolationAuditService(StubProjects(projects, leaky=True)).run(users)

    by_user = {r.user: r for r in reports}
    assert by_user["john@acme.com"].security_breaches == 1
    # both Acme users are targets, each exposing the same two projects
    assert by_user["bob@techsolutions.com"].security_breaches == 4
    assert by_user["admin@acme.com"].security_breaches == 0


# ============ AccountsService ============


@pytest.mark.asyncio
async def test_create_company(executor, session_factory):
    session_factory.respond(None)

    company = await AccountsService(executor).create_company({"name": "Startup Inc"})

    assert company.name == "Startup Inc"
    assert session_factory.last.setup[-1][0] == 'SET LOCAL ROLE "app_admin"'


@pytest.mark.asyncio
async def test_create_company_duplicate_name(executor, session_factory):
    session_factory.respond(uuid4())

    with pytest.raises(ValidationFailure) as exc_info:
        await AccountsService(executor).create_company({"name": "Startup Inc"})

    assert "name" in exc_info.value.errors


@pytest.mark.asyncio
async def test_create_company_invalid(executor, session_factory):
    with pytest.raises(ValidationFailure):
        await AccountsService(executor).create_company({"name": ""})

    assert session_factory.sessions == []


@pytest.mark.asyncio
async def test_register_user_checks_company_and_email(executor, session_factory):
    session_factory.respond(None, uuid4())

    with pytest.raises(ValidationFailure) as exc_info:
        await AccountsService(executor).register_user({
            "email": "john@acme.com",
            "role": "user",
            "company_id": str(uuid4()),
        })

    assert set(exc_info.value.errors) == {"company_id", "email"}


@pytest.mark.asyncio
async def test_register_user_rejects_unknown_role(executor, session_factory):
    with pytest.raises(ValidationFailure) as exc_info:
        await AccountsService(executor).register_user({
            "email": "root@acme.com",
            "role": "superuser",
            "company_id": str(uuid4()),
        })

    assert "role" in exc_info.value.errors
    assert session_factory.sessions == []


@pytest.mark.asyncio
async def test_register_user(executor, session_factory):
    company = Company(id=uuid4(), name="Acme Corporation")
    session_factory.respond(company, None)

    user = await AccountsService(executor).register_user({
        "email": "jane@acme.com",
        "role": "readonly",
        "company_id": str(company.id),
    })

    assert user.email == "jane@acme.com"
    assert user.role == "readonly"
    assert user.company_id == company.id


@pytest.mark.asyncio
async def test_scope_for_user(executor, session_factory):
    company = SimpleNamespace(id=uuid4(), name="Acme Corporation")
    user = _user("john@acme.com", "user", company)
    session_factory.respond(user)

    scope = await AccountsService(executor).scope_for_user(user.id)

    assert scope.user_id == user.id
    assert scope.tenant_id == company.id


@pytest.mark.asyncio
async def test_scope_for_unknown_user(executor, session_factory):
    session_factory.respond(None)

    assert await AccountsService(executor).scope_for_user(uuid4()) is None
