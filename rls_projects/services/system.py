"""
System-wide reporting.

Everything here reads across all companies through the admin context.
Operators and maintenance code only; nothing in the HTTP layer calls it.
"""

import structlog
from sqlalchemy import func, select

from rls_projects.core.rls import AccessContext, AccessContextExecutor
from rls_projects.models.company import Company
from rls_projects.models.project import Project
from rls_projects.models.user import User
from rls_projects.schemas.system import CompanyProjectCount, SystemStats

logger = structlog.get_logger()


class SystemService:
    """Cross-company statistics."""

    def __init__(self, executor: AccessContextExecutor):
        self.executor = executor

    async def get_system_stats(self) -> SystemStats:
        """
        Totals across every company.

        users_per_company is rounded to two decimals and 0.0 when there are
        no companies.
        """

        async def op(ctx: AccessContext) -> SystemStats:
            companies = await ctx.session.scalar(select(func.count()).select_from(Company)) or 0
            users = await ctx.session.scalar(select(func.count()).select_from(User)) or 0
            projects = await ctx.session.scalar(select(func.count()).select_from(Project)) or 0

            return SystemStats(
                total_companies=companies,
                total_users=users,
                total_projects=projects,
                users_per_company=round(users / companies, 2) if companies else 0.0,
            )

        stats = await self.executor.run_with_admin_context(op)
        logger.info("system_stats_collected", **stats.model_dump())
        return stats

    async def company_project_counts(self) -> list[CompanyProjectCount]:
        """Project count of every company, companies without projects included."""

        async def op(ctx: AccessContext) -> list[CompanyProjectCount]:
            stmt = (
                select(Company.id, Company.name, func.count(Project.id))
                .outerjoin(Project, Project.company_id == Company.id)
                .group_by(Company.id, Company.name)
                .order_by(Company.name)
            )
            result = await ctx.session.execute(stmt)
            return [
                CompanyProjectCount(company_id=row[0], company_name=row[1], project_count=row[2])
                for row in result.all()
            ]

        return await self.executor.run_with_admin_context(op)
