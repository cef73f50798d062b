"""
Scoped access context: executor, role mapping and policy layer.
"""

from .context import AccessContext
from .executor import AccessContextExecutor, scope_tenant
from .roles import DEFAULT_PRINCIPALS, PrincipalMap, Role, quote_identifier

__all__ = [
    "AccessContext",
    "AccessContextExecutor",
    "scope_tenant",
    "DEFAULT_PRINCIPALS",
    "PrincipalMap",
    "Role",
    "quote_identifier",
]
