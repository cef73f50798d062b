"""
Demo data: three companies, their users and projects.

Seeding is idempotent; existing companies, users and projects (matched by
name or email) are left untouched. Everything runs in the admin context.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy import select

from rls_projects.core.rls import AccessContext, AccessContextExecutor, Role
from rls_projects.models.company import Company
from rls_projects.models.project import Project
from rls_projects.services.accounts import AccountsService

logger = structlog.get_logger()


DEMO_COMPANIES = ("Acme Corporation", "Tech Solutions Ltd", "Startup Inc")

# (email, role, company)
DEMO_USERS = (
    ("admin@acme.com", Role.ADMIN, "Acme Corporation"),
    ("john@acme.com", Role.USER, "Acme Corporation"),
    ("jane@acme.com", Role.USER, "Acme Corporation"),
    ("readonly@acme.com", Role.READONLY, "Acme Corporation"),
    ("admin@techsolutions.com", Role.ADMIN, "Tech Solutions Ltd"),
    ("bob@techsolutions.com", Role.USER, "Tech Solutions Ltd"),
    ("founder@startup.com", Role.USER, "Startup Inc"),
)

# company -> [(name, description)]
DEMO_PROJECTS = {
    "Acme Corporation": [
        ("Website Redesign", "Complete overhaul of company website"),
        ("Mobile App", "New mobile application for customers"),
        ("Database Migration", "Migrate legacy database to PostgreSQL"),
    ],
    "Tech Solutions Ltd": [
        ("Client Portal", "Customer self-service portal"),
        ("API Development", "REST API for third-party integrations"),
    ],
    "Startup Inc": [
        ("MVP Development", "Minimum viable product for launch"),
    ],
}


@dataclass
class SeedResult:
    companies_created: int = 0
    users_created: int = 0
    projects_created: int = 0


async def seed_demo_data(executor: AccessContextExecutor) -> SeedResult:
    """Create whatever part of the demo data set is missing."""
    accounts = AccountsService(executor)
    result = SeedResult()

    companies: dict[str, Company] = {}
    for name in DEMO_COMPANIES:
        company = await accounts.get_company_by_name(name)
        if company is None:
            company = await accounts.create_company({"name": name})
            result.companies_created += 1
        companies[name] = company

    for email, role, company_name in DEMO_USERS:
        if await accounts.get_user_by_email(email) is None:
            await accounts.register_user({
                "email": email,
                "role": role,
                "company_id": companies[company_name].id,
            })
            result.users_created += 1

    async def add_projects(ctx: AccessContext) -> int:
        created = 0
        for company_name, projects in DEMO_PROJECTS.items():
            company_id = companies[company_name].id
            for name, description in projects:
                existing = await ctx.session.scalar(
                    select(Project.id).where(
                        Project.company_id == company_id,
                        Project.name == name,
                    )
                )
                if existing is None:
                    ctx.session.add(Project(company_id=company_id, name=name, description=description))
                    created += 1
        return created

    result.projects_created = await executor.run_with_admin_context(add_projects)

    logger.info(
        "demo_data_seeded",
        companies_created=result.companies_created,
        users_created=result.users_created,
        projects_created=result.projects_created,
    )
    return result
