"""
Cross-company isolation audit.

For every user, asks the ordinary tenant-facing read path (get_project)
whether the projects of every other user are reachable. A regular user
reaching a project of another company is a breach; admins reach every
company by design and never count breaches.
"""

from collections.abc import Sequence

import structlog

from rls_projects.core.scope import Scope
from rls_projects.models.project import Project
from rls_projects.models.user import User
from rls_projects.schemas.system import CompanyAccessResult, UserIsolationReport
from rls_projects.services.project import ProjectService

logger = structlog.get_logger()

SAME_COMPANY = "same_company"
CROSS_COMPANY = "cross_company"


class IsolationAuditService:
    """Runs the cross-company access check for a set of users."""

    def __init__(self, projects: ProjectService):
        self.projects = projects

    async def run(self, users: Sequence[User]) -> list[UserIsolationReport]:
        reports = [await self.check_user(user, users) for user in users]

        breaches = sum(report.security_breaches for report in reports)
        if breaches:
            logger.error("isolation_breaches_detected", breaches=breaches, users=len(users))
        else:
            logger.info("isolation_check_passed", users=len(users))
        return reports

    async def check_user(self, user: User, users: Sequence[User]) -> UserIsolationReport:
        scope = Scope.for_user(user)
        is_admin = user.role == "admin"
        own_projects = await self.projects.list_projects(scope)

        results = []
        for other in users:
            if other.id == user.id:
                continue

            # An admin target sees every company; keep only its own company's rows
            target = [
                p for p in await self.projects.list_projects(Scope.for_user(other))
                if p.company_id == other.company_id
            ]
            results.append(
                CompanyAccessResult(
                    target_user=other.email,
                    target_company=other.company.name,
                    access_type=SAME_COMPANY if other.company_id == user.company_id else CROSS_COMPANY,
                    target_projects=len(target),
                    accessible_projects=await self._count_accessible(scope, target),
                )
            )

        cross_hits = sum(r.accessible_projects for r in results if r.access_type == CROSS_COMPANY)
        total_accessible = len(own_projects)
        if is_admin:
            total_accessible += sum(r.accessible_projects for r in results)

        return UserIsolationReport(
            user=user.email,
            company=user.company.name,
            role=user.role,
            is_admin=is_admin,
            own_projects=len(own_projects),
            total_accessible_projects=total_accessible,
            security_breaches=0 if is_admin else cross_hits,
            results=results,
        )

    async def _count_accessible(self, scope: Scope | None, projects: list[Project]) -> int:
        count = 0
        for project in projects:
            if await self.projects.get_project(scope, project.id) is not None:
                count += 1
        return count
