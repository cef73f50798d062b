"""
Accounts service.

Companies and users are the identity side of the system: they decide which
Scope a request runs under, so they cannot themselves be resolved through a
user context. Every method here runs in the admin context and must only be
reached from trusted code (the request identity resolver, the CLI, seeding).
"""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

import structlog
from pydantic import ValidationError
from sqlalchemy import select

from rls_projects.core.exceptions import ValidationFailure
from rls_projects.core.rls import AccessContext, AccessContextExecutor
from rls_projects.core.scope import Scope
from rls_projects.models.company import Company
from rls_projects.models.user import User
from rls_projects.schemas.company import CompanyCreate
from rls_projects.schemas.user import UserCreate

logger = structlog.get_logger()


class AccountsService:
    """Company and user management (admin context)."""

    def __init__(self, executor: AccessContextExecutor):
        self.executor = executor

    # ============================================================
    # COMPANIES
    # ============================================================

    async def create_company(self, data: CompanyCreate | Mapping[str, Any]) -> Company:
        """Create a company. Names are unique."""
        try:
            payload = data if isinstance(data, CompanyCreate) else CompanyCreate.model_validate(dict(data))
        except ValidationError as e:
            raise ValidationFailure.from_pydantic(e) from None

        async def op(ctx: AccessContext) -> Company:
            existing = await ctx.session.scalar(select(Company.id).where(Company.name == payload.name))
            if existing is not None:
                raise ValidationFailure({"name": ["has already been taken"]})

            company = Company(name=payload.name)
            ctx.session.add(company)
            await ctx.session.flush()
            await ctx.session.refresh(company)
            return company

        company = await self.executor.run_with_admin_context(op)
        logger.info("company_created", company_id=str(company.id), name=company.name)
        return company

    async def get_company(self, company_id: UUID) -> Company | None:
        async def op(ctx: AccessContext) -> Company | None:
            return await ctx.session.get(Company, company_id)

        return await self.executor.run_with_admin_context(op)

    async def get_company_by_name(self, name: str) -> Company | None:
        async def op(ctx: AccessContext) -> Company | None:
            result = await ctx.session.execute(select(Company).where(Company.name == name))
            return result.scalar_one_or_none()

        return await self.executor.run_with_admin_context(op)

    async def list_companies(self) -> list[Company]:
        async def op(ctx: AccessContext) -> list[Company]:
            result = await ctx.session.execute(select(Company).order_by(Company.name))
            return list(result.scalars().all())

        return await self.executor.run_with_admin_context(op)

    # ============================================================
    # USERS
    # ============================================================

    async def register_user(self, data: UserCreate | Mapping[str, Any]) -> User:
        """
        Register a user in an existing company.

        Raises:
            ValidationFailure: Invalid attributes, unknown company or an
                email that is already registered.
        """
        try:
            payload = data if isinstance(data, UserCreate) else UserCreate.model_validate(dict(data))
        except ValidationError as e:
            raise ValidationFailure.from_pydantic(e) from None

        async def op(ctx: AccessContext) -> User:
            errors: dict[str, list[str]] = {}
            if await ctx.session.get(Company, payload.company_id) is None:
                errors["company_id"] = ["does not exist"]
            taken = await ctx.session.scalar(select(User.id).where(User.email == payload.email))
            if taken is not None:
                errors["email"] = ["has already been taken"]
            if errors:
                raise ValidationFailure(errors)

            user = User(
                email=payload.email,
                name=payload.name,
                role=payload.role.value,
                company_id=payload.company_id,
            )
            ctx.session.add(user)
            await ctx.session.flush()
            await ctx.session.refresh(user)
            return user

        user = await self.executor.run_with_admin_context(op)
        logger.info(
            "user_registered",
            user_id=str(user.id),
            company_id=str(user.company_id),
            role=user.role,
        )
        return user

    async def get_user(self, user_id: UUID) -> User | None:
        async def op(ctx: AccessContext) -> User | None:
            result = await ctx.session.execute(select(User).where(User.id == user_id))
            return result.scalar_one_or_none()

        return await self.executor.run_with_admin_context(op)

    async def get_user_by_email(self, email: str) -> User | None:
        async def op(ctx: AccessContext) -> User | None:
            result = await ctx.session.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()

        return await self.executor.run_with_admin_context(op)

    async def list_users(self, company_id: UUID | None = None) -> list[User]:
        """All users, or the users of one company."""

        async def op(ctx: AccessContext) -> list[User]:
            stmt = select(User).order_by(User.email)
            if company_id is not None:
                stmt = stmt.where(User.company_id == company_id)
            result = await ctx.session.execute(stmt)
            return list(result.scalars().all())

        return await self.executor.run_with_admin_context(op)

    async def scope_for_user(self, user_id: UUID) -> Scope | None:
        """Resolve a user id to its Scope; None for unknown users."""
        return Scope.for_user(await self.get_user(user_id))
