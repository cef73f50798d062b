"""
Per-transaction access context.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class AccessContext:
    """
    The security context an operation runs under.

    Created by the executor after the session parameters and principal have
    been applied, handed to the operation, and dead once the transaction
    ends. ``session`` is the only handle to the configured transaction;
    operations must not keep it.
    """

    role: str
    principal: str
    session: AsyncSession = field(repr=False, compare=False)
    user_id: UUID | None = None
    tenant_id: UUID | None = None

    @property
    def is_admin_context(self) -> bool:
        """True for run_with_admin_context (no user, system-wide)."""
        return self.user_id is None
