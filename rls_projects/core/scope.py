"""
Caller scope.

A Scope says who is asking: the user, their company and (through the user)
their role. Every tenant-owned operation takes one as its first argument.

Usage:
    scope = Scope.for_user(user)   # None when the user has no company
    projects = await project_service.list_projects(scope)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class ScopeUser:
    """Identity of the calling user."""

    id: UUID
    email: str
    role: str
    company_id: UUID


@dataclass(frozen=True)
class ScopeTenant:
    """The calling user's company."""

    id: UUID
    name: str


@dataclass(frozen=True)
class Scope:
    """
    Immutable caller scope.

    A scope may carry a tenant without a user, but never a user without a
    tenant: an incomplete identity resolves to "no scope" (``for_user``
    returns None) instead of a half-populated value.
    """

    user: ScopeUser | None = None
    tenant: ScopeTenant | None = None

    def __post_init__(self) -> None:
        if self.user is not None and self.tenant is None:
            raise ValueError("A scope with a user must also carry the user's company")
        if (
            self.user is not None
            and self.tenant is not None
            and self.user.company_id != self.tenant.id
        ):
            raise ValueError("Scope user does not belong to the scope company")

    @classmethod
    def for_user(cls, user: Any | None) -> Scope | None:
        """
        Build a scope from a resolved user record.

        The record needs ``id``, ``email``, ``role`` and a loaded ``company``
        (``id``, ``name``). Returns None for a missing user or a user
        without a company.
        """
        if user is None:
            return None

        company = getattr(user, "company", None)
        if company is None or getattr(company, "id", None) is None:
            return None

        tenant = ScopeTenant(id=company.id, name=company.name)
        return cls(
            user=ScopeUser(
                id=user.id,
                email=user.email,
                role=user.role,
                company_id=company.id,
            ),
            tenant=tenant,
        )

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.role == "admin"

    @property
    def user_id(self) -> UUID | None:
        return self.user.id if self.user else None

    @property
    def tenant_id(self) -> UUID | None:
        return self.tenant.id if self.tenant else None
