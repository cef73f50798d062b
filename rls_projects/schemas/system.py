"""
System-wide reporting schemas.
"""

from uuid import UUID
from pydantic import BaseModel, Field


class SystemStats(BaseModel):
    """Counts across every company."""
    total_companies: int
    total_users: int
    total_projects: int
    users_per_company: float


class CompanyProjectCount(BaseModel):
    company_id: UUID
    company_name: str
    project_count: int


class CompanyAccessResult(BaseModel):
    """Reachability of another user's company projects from one scope."""
    target_user: str
    target_company: str
    access_type: str  # "same_company" or "cross_company"
    target_projects: int
    accessible_projects: int


class UserIsolationReport(BaseModel):
    """Cross-company access check for one user."""
    user: str
    company: str
    role: str
    is_admin: bool
    own_projects: int
    total_accessible_projects: int
    security_breaches: int
    results: list[CompanyAccessResult] = Field(default_factory=list)
