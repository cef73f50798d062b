"""
Access-context executor.

Runs a unit of work inside one transaction whose session parameters and
effective database role are derived from the caller's scope. The row-level
security policies read those parameters, so every statement issued through
the AccessContext is filtered by the database itself.

Usage:
    executor = AccessContextExecutor(async_session_factory)

    async def load(ctx: AccessContext) -> list[Project]:
        result = await ctx.session.execute(select(Project))
        return list(result.scalars().all())

    projects = await executor.run_with_user_context(scope, load)

    # Trusted internal callers only (maintenance, reporting, seeding)
    total = await executor.run_with_admin_context(count_everything)

Settings are applied with set_config(..., is_local => true), the function
form of SET LOCAL, and the role with SET LOCAL ROLE. Both revert when the
transaction commits or rolls back, so a pooled connection never carries a
previous caller's context.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar
from uuid import UUID

import structlog
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rls_projects.core.config import RLSSettings
from rls_projects.core.exceptions import ContextSetupFailure, NoUserInScope
from rls_projects.core.rls.context import AccessContext
from rls_projects.core.rls.roles import DEFAULT_PRINCIPALS, PrincipalMap, Role, quote_identifier
from rls_projects.core.scope import Scope

logger = structlog.get_logger()

T = TypeVar("T")

Operation = Callable[[AccessContext], Awaitable[T]]
TenantResolver = Callable[[Scope], Any]

_SET_CONFIG = text("SELECT set_config(:name, :value, true)")


def scope_tenant(scope: Scope) -> UUID | None:
    """Default tenant resolution: the scope's company."""
    return scope.tenant.id if scope.tenant else None


def _as_uuid(value: Any, label: str) -> str:
    if value is None:
        raise ContextSetupFailure(f"Missing {label} for access context")
    try:
        return str(value if isinstance(value, UUID) else UUID(str(value)))
    except ValueError:
        raise ContextSetupFailure(f"Malformed {label}: {value!r}") from None


class AccessContextExecutor:
    """
    Establishes a scoped security context per operation.

    Args:
        session_factory: Async session factory bound to the application engine.
        principals: Role -> database principal mapping.
        tenant_resolver: Resolves the company id for a scope; defaults to
            ``scope.tenant.id``.
        settings_prefix: Namespace of the session parameters
            (``<prefix>.current_user_id`` etc.), must match the policies.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        principals: PrincipalMap = DEFAULT_PRINCIPALS,
        *,
        tenant_resolver: TenantResolver | None = None,
        settings_prefix: str = "app",
    ):
        self._session_factory = session_factory
        self._principals = principals
        self._tenant_resolver = tenant_resolver or scope_tenant
        self.user_id_param = f"{settings_prefix}.current_user_id"
        self.tenant_id_param = f"{settings_prefix}.current_company_id"
        self.role_param = f"{settings_prefix}.current_user_role"

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        rls: RLSSettings,
    ) -> AccessContextExecutor:
        """Executor with the configured principals and parameter namespace."""
        return cls(
            session_factory,
            PrincipalMap.from_settings(rls),
            settings_prefix=rls.settings_prefix,
        )

    @property
    def principals(self) -> PrincipalMap:
        return self._principals

    async def run_with_user_context(self, scope: Scope | None, operation: Operation[T]) -> T:
        """
        Run ``operation`` as the scope's user.

        Raises:
            NoUserInScope: scope has no user; nothing was opened or run.
            ContextSetupFailure: unknown role, malformed ids, or the database
                rejected the parameters or the role switch.

        Errors raised by ``operation`` roll the transaction back and
        propagate unchanged.
        """
        if scope is None or scope.user is None:
            raise NoUserInScope()

        user = scope.user
        principal = self._principals.principal_for(user.role)
        user_id = _as_uuid(user.id, "user id")
        tenant_id = _as_uuid(self._tenant_resolver(scope), "company id")

        parameters = {
            self.user_id_param: user_id,
            self.tenant_id_param: tenant_id,
            self.role_param: user.role,
        }
        return await self._run(
            parameters,
            principal,
            operation,
            role=user.role,
            user_id=UUID(user_id),
            tenant_id=UUID(tenant_id),
        )

    async def run_with_admin_context(self, operation: Operation[T]) -> T:
        """
        Run ``operation`` with system-wide access.

        Only the role parameter is set; no user or company is bound. Never
        call this from a path driven by a tenant's request.
        """
        return await self._run(
            {self.role_param: Role.ADMIN.value},
            self._principals.admin,
            operation,
            role=Role.ADMIN.value,
        )

    async def _run(
        self,
        parameters: dict[str, str],
        principal: str,
        operation: Operation[T],
        *,
        role: str,
        user_id: UUID | None = None,
        tenant_id: UUID | None = None,
    ) -> T:
        log = logger.bind(principal=principal, role=role, user_id=user_id, tenant_id=tenant_id)

        async with self._session_factory() as session:
            try:
                async with session.begin():
                    await self._establish(session, parameters, principal, log)

                    context = AccessContext(
                        role=role,
                        principal=principal,
                        session=session,
                        user_id=user_id,
                        tenant_id=tenant_id,
                    )
                    log.debug("access_context_established")
                    return await operation(context)
            except DBAPIError:
                # Policy violations, including deferred ones raised at commit,
                # stay generic
                log.exception("storage_error_in_access_context")
                raise

    async def _establish(
        self,
        session: AsyncSession,
        parameters: dict[str, str],
        principal: str,
        log: Any,
    ) -> None:
        set_role = text(f"SET LOCAL ROLE {quote_identifier(principal)}")
        try:
            for name, value in parameters.items():
                await session.execute(_SET_CONFIG, {"name": name, "value": value})
            await session.execute(set_role)
        except DBAPIError as exc:
            log.error("access_context_setup_failed", error=str(exc.orig))
            raise ContextSetupFailure(f"Could not establish access context: {exc.orig}") from exc
