"""
Role to database principal mapping.

Every application role maps to exactly one NOLOGIN database role (the
principal) that the executor switches to for the length of a transaction.
Adding a role means adding it to ``Role`` and to the mapping; nothing else
branches on role names.
"""

from __future__ import annotations

import re
from enum import Enum
from types import MappingProxyType
from collections.abc import Iterator, Mapping

from rls_projects.core.config import RLSSettings
from rls_projects.core.exceptions import ContextSetupFailure

# Lower-case SQL identifiers only, within PostgreSQL's 63 byte limit
_IDENTIFIER_RE = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")


class Role(str, Enum):
    """Application roles."""
    ADMIN = "admin"
    USER = "user"
    READONLY = "readonly"


def quote_identifier(name: str) -> str:
    """
    Validate and double-quote a role identifier for raw SQL.

    SET ROLE and the policy DDL cannot take bound parameters, so principal
    names are checked against an allowlist pattern and quoted.
    """
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise ContextSetupFailure(f"Invalid database role identifier: {name!r}")
    return '"' + name.replace('"', '""') + '"'


class PrincipalMap(Mapping[Role, str]):
    """
    Immutable Role -> principal mapping.

    Usage:
        principals = PrincipalMap({Role.ADMIN: "app_admin", ...})
        principals.principal_for("user")   # "app_user"
        principals.principal_for("owner")  # ContextSetupFailure
    """

    def __init__(self, mapping: Mapping[Role | str, str]):
        try:
            resolved = {Role(role): principal for role, principal in mapping.items()}
        except ValueError as exc:
            raise ContextSetupFailure(f"Unknown role in principal mapping: {exc}") from exc

        missing = [role.value for role in Role if role not in resolved]
        if missing:
            raise ContextSetupFailure(f"No principal mapped for roles: {', '.join(missing)}")

        for principal in resolved.values():
            quote_identifier(principal)

        self._mapping = MappingProxyType(resolved)

    def __getitem__(self, role: Role) -> str:
        return self._mapping[role]

    def __iter__(self) -> Iterator[Role]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:
        pairs = ", ".join(f"{role.value}={name}" for role, name in self._mapping.items())
        return f"PrincipalMap({pairs})"

    def principal_for(self, role: str) -> str:
        """Principal for a raw role string. Unknown roles are a configuration error."""
        try:
            return self._mapping[Role(role)]
        except ValueError:
            raise ContextSetupFailure(
                f"Invalid role {role!r}; must be one of: {', '.join(r.value for r in Role)}"
            ) from None

    @property
    def admin(self) -> str:
        return self._mapping[Role.ADMIN]

    @property
    def names(self) -> list[str]:
        """Distinct principal names in role order."""
        return list(dict.fromkeys(self._mapping.values()))

    @classmethod
    def from_settings(cls, rls: RLSSettings) -> PrincipalMap:
        return cls({
            Role.ADMIN: rls.admin_principal,
            Role.USER: rls.user_principal,
            Role.READONLY: rls.readonly_principal,
        })


DEFAULT_PRINCIPALS = PrincipalMap({
    Role.ADMIN: "app_admin",
    Role.USER: "app_user",
    Role.READONLY: "app_readonly",
})
