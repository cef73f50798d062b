"""
Project model.
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, CompanyOwnedMixin, TimestampMixin, UUIDMixin


class Project(Base, UUIDMixin, CompanyOwnedMixin, TimestampMixin):
    """Project model. Tenant-owned; see CompanyOwnedMixin."""

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Project {self.name}>"
