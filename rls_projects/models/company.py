"""
Company model.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDMixin


class Company(Base, UUIDMixin, TimestampMixin):
    """
    Company model.

    Each company is a tenant: its users and projects are isolated from
    other companies by row-level security.
    """

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Company {self.name}>"
