"""
Database models.
"""

from .base import (
    Base,
    TimestampMixin,
    UUIDMixin,
    CompanyOwnedMixin,
)
from .company import Company
from .user import User
from .project import Project

__all__ = [
    # Base
    "Base",
    # Mixins
    "TimestampMixin",
    "UUIDMixin",
    "CompanyOwnedMixin",
    # Models
    "Company",
    "User",
    "Project",
]
