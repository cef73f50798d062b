"""
Tests for the access-context executor.

These check what the executor sends to the database and how it reacts to
failures; row filtering itself is covered by the integration tests.
"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import DBAPIError
from structlog.testing import capture_logs

from rls_projects.core.exceptions import ContextSetupFailure, NoUserInScope
from rls_projects.core.rls import AccessContext, AccessContextExecutor, PrincipalMap, Role
from rls_projects.core.scope import Scope, ScopeTenant, ScopeUser

from tests.conftest import db_error, make_scope


async def _noop(ctx: AccessContext) -> AccessContext:
    return ctx


def _settings(session) -> dict[str, str]:
    return {
        params["name"]: params["value"]
        for sql, params in session.setup
        if params is not None
    }


@pytest.mark.asyncio
async def test_user_context_sets_parameters_and_role(executor, session_factory):
    scope = make_scope(role="user")

    ctx = await executor.run_with_user_context(scope, _noop)

    session = session_factory.last
    assert _settings(session) == {
        "app.current_user_id": str(scope.user.id),
        "app.current_company_id": str(scope.tenant.id),
        "app.current_user_role": "user",
    }
    # Parameters first, then the principal switch
    assert session.setup[-1] == ('SET LOCAL ROLE "app_user"', None)
    assert all("set_config" in sql for sql, _ in session.setup[:-1])

    assert ctx.role == "user"
    assert ctx.principal == "app_user"
    assert ctx.user_id == scope.user.id
    assert ctx.tenant_id == scope.tenant.id
    assert not ctx.is_admin_context


@pytest.mark.asyncio
async def test_settings_are_transaction_local(executor, session_factory):
    await executor.run_with_user_context(make_scope(), _noop)

    session = session_factory.last
    assert session.began
    assert session.committed
    assert session.closed
    for sql, _ in session.setup[:-1]:
        assert sql == "SELECT set_config(:name, :value, true)"
    assert session.setup[-1][0].startswith("SET LOCAL ROLE")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "role, principal",
    [("admin", "app_admin"), ("user", "app_user"), ("readonly", "app_readonly")],
)
async def test_role_selects_principal(executor, session_factory, role, principal):
    ctx = await executor.run_with_user_context(make_scope(role=role), _noop)

    assert ctx.principal == principal
    assert session_factory.last.setup[-1] == (f'SET LOCAL ROLE "{principal}"', None)


@pytest.mark.asyncio
@pytest.mark.parametrize("scope", [None, Scope(), Scope(tenant=ScopeTenant(id=uuid4(), name="Acme"))])
async def test_no_user_fails_before_opening_a_session(executor, session_factory, scope):
    called = False

    async def operation(ctx):
        nonlocal called
        called = True

    with pytest.raises(NoUserInScope):
        await executor.run_with_user_context(scope, operation)

    assert not called
    assert session_factory.sessions == []


@pytest.mark.asyncio
async def test_unknown_role_is_setup_failure(executor, session_factory):
    with pytest.raises(ContextSetupFailure):
        await executor.run_with_user_context(make_scope(role="superuser"), _noop)

    # Never defaults to some principal
    assert session_factory.sessions == []


@pytest.mark.asyncio
async def test_missing_tenant_from_resolver_is_setup_failure(session_factory):
    executor = AccessContextExecutor(session_factory, tenant_resolver=lambda scope: None)

    with pytest.raises(ContextSetupFailure):
        await executor.run_with_user_context(make_scope(), _noop)


@pytest.mark.asyncio
async def test_malformed_tenant_from_resolver_is_setup_failure(session_factory):
    executor = AccessContextExecutor(session_factory, tenant_resolver=lambda scope: "not-a-uuid")

    with pytest.raises(ContextSetupFailure):
        await executor.run_with_user_context(make_scope(), _noop)


@pytest.mark.asyncio
async def test_custom_tenant_resolver(session_factory):
    override = uuid4()
    executor = AccessContextExecutor(session_factory, tenant_resolver=lambda scope: str(override))

    ctx = await executor.run_with_user_context(make_scope(), _noop)

    assert ctx.tenant_id == override
    assert _settings(session_factory.last)["app.current_company_id"] == str(override)


@pytest.mark.asyncio
async def test_database_rejecting_setup_is_setup_failure(executor, session_factory):
    session_factory.setup_error = db_error('role "app_user" does not exist')
    called = False

    async def operation(ctx):
        nonlocal called
        called = True

    with pytest.raises(ContextSetupFailure) as exc_info:
        await executor.run_with_user_context(make_scope(), operation)

    assert not called
    assert isinstance(exc_info.value.__cause__, DBAPIError)
    assert session_factory.last.rolled_back


@pytest.mark.asyncio
async def test_admin_context_sets_only_role(executor, session_factory):
    ctx = await executor.run_with_admin_context(_noop)

    session = session_factory.last
    assert _settings(session) == {"app.current_user_role": "admin"}
    assert session.setup[-1] == ('SET LOCAL ROLE "app_admin"', None)
    assert ctx.is_admin_context
    assert ctx.user_id is None
    assert ctx.tenant_id is None


@pytest.mark.asyncio
async def test_operation_result_is_returned(executor):
    async def operation(ctx):
        return 42

    assert await executor.run_with_user_context(make_scope(), operation) == 42


@pytest.mark.asyncio
async def test_operation_error_rolls_back_and_propagates(executor, session_factory):
    class Boom(Exception):
        pass

    async def operation(ctx):
        raise Boom()

    with pytest.raises(Boom):
        await executor.run_with_user_context(make_scope(), operation)

    assert session_factory.last.rolled_back
    assert not session_factory.last.committed


@pytest.mark.asyncio
async def test_storage_error_in_operation_propagates_unchanged(executor, session_factory):
    session_factory.operation_error = db_error("new row violates row-level security policy")

    async def operation(ctx):
        await ctx.session.execute(object())

    with capture_logs() as logs, pytest.raises(DBAPIError):
        await executor.run_with_user_context(make_scope(), operation)

    assert "storage_error_in_access_context" in [entry["event"] for entry in logs]


@pytest.mark.asyncio
async def test_storage_error_at_commit_is_logged_and_propagates(executor, session_factory):
    session_factory.commit_error = db_error("insert or update violates foreign key constraint")

    with capture_logs() as logs, pytest.raises(DBAPIError):
        await executor.run_with_user_context(make_scope(), _noop)

    assert session_factory.last.rolled_back
    assert "storage_error_in_access_context" in [entry["event"] for entry in logs]


@pytest.mark.asyncio
async def test_each_call_gets_its_own_session(executor, session_factory):
    scope_a, scope_b = make_scope(), make_scope()

    ctx_a = await executor.run_with_user_context(scope_a, _noop)
    ctx_b = await executor.run_with_user_context(scope_b, _noop)

    assert len(session_factory.sessions) == 2
    assert ctx_a.session is not ctx_b.session
    assert _settings(session_factory.sessions[0])["app.current_company_id"] == str(scope_a.tenant.id)
    assert _settings(session_factory.sessions[1])["app.current_company_id"] == str(scope_b.tenant.id)


@pytest.mark.asyncio
async def test_custom_principals_and_prefix(session_factory):
    executor = AccessContextExecutor(
        session_factory,
        PrincipalMap({
            Role.ADMIN: "tenant_admin",
            Role.USER: "tenant_user",
            Role.READONLY: "tenant_reader",
        }),
        settings_prefix="myapp",
    )
    scope = make_scope(role="readonly")

    await executor.run_with_user_context(scope, _noop)

    session = session_factory.last
    assert set(_settings(session)) == {
        "myapp.current_user_id",
        "myapp.current_company_id",
        "myapp.current_user_role",
    }
    assert session.setup[-1] == ('SET LOCAL ROLE "tenant_reader"', None)


@pytest.mark.asyncio
async def test_role_value_is_bound_not_interpolated(executor, session_factory):
    company_id = uuid4()
    scope = Scope(
        user=ScopeUser(id=uuid4(), email="x@acme.com", role="user", company_id=company_id),
        tenant=ScopeTenant(id=company_id, name="Acme'; DROP TABLE projects; --"),
    )

    await executor.run_with_user_context(scope, _noop)

    for sql, _ in session_factory.last.setup:
        assert "DROP" not in sql
