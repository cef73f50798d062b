"""Request dependencies."""

from .auth import CurrentScope, OptionalScope, get_current_scope, get_current_scope_optional
from .services import Accounts, Projects, get_accounts_service, get_event_bus, get_executor, get_project_service

__all__ = [
    "CurrentScope",
    "OptionalScope",
    "get_current_scope",
    "get_current_scope_optional",
    "Accounts",
    "Projects",
    "get_accounts_service",
    "get_event_bus",
    "get_executor",
    "get_project_service",
]
