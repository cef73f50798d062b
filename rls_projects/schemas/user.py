"""
User schemas.
"""

from uuid import UUID
from pydantic import BaseModel, Field

from rls_projects.core.rls.roles import Role


class UserCreate(BaseModel):
    """User registration schema (identity only, no credentials)."""
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    name: str | None = Field(None, max_length=255)
    role: Role = Role.USER
    company_id: UUID
