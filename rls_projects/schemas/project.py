"""
Project schemas.
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID
from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator

# Blank names strip to "" and fail min_length
ProjectName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]


class ProjectCreate(BaseModel):
    """
    Project creation schema.

    Unknown keys are dropped; in particular a client-supplied company_id
    never reaches storage, the owning company comes from the scope.
    """
    model_config = ConfigDict(extra="ignore")

    name: ProjectName
    description: str | None = None


class ProjectUpdate(BaseModel):
    """Project update schema. The owning company cannot be changed."""
    model_config = ConfigDict(extra="ignore")

    name: ProjectName | None = None
    description: str | None = None

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str | None) -> str:
        # Only runs when name was given; omitting it leaves the name as is
        if v is None:
            raise ValueError("can't be blank")
        return v

    def changes(self) -> dict:
        """Fields explicitly provided by the caller."""
        return self.model_dump(exclude_unset=True)


class ProjectResponse(BaseModel):
    """Project response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    name: str
    description: str | None = None
    created_at: datetime
    updated_at: datetime


class ProjectListResponse(BaseModel):
    """Project list response."""
    projects: list[ProjectResponse]
    total: int


class ProjectCountResponse(BaseModel):
    count: int
