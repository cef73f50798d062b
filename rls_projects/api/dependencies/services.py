"""
Service dependencies.

The executor, event bus and services are built once in the application
lifespan and stored on app.state; handlers receive them from here.
"""

from typing import Annotated

from fastapi import Depends, Request

from rls_projects.core.interfaces.events import EventBus
from rls_projects.core.rls import AccessContextExecutor
from rls_projects.services.accounts import AccountsService
from rls_projects.services.project import ProjectService


def get_executor(request: Request) -> AccessContextExecutor:
    """Get the access-context executor."""
    return request.app.state.executor


def get_event_bus(request: Request) -> EventBus:
    """Get the notification bus."""
    return request.app.state.event_bus


def get_project_service(
    executor: AccessContextExecutor = Depends(get_executor),
    events: EventBus = Depends(get_event_bus),
) -> ProjectService:
    """Get project service instance."""
    return ProjectService(executor, events)


def get_accounts_service(
    executor: AccessContextExecutor = Depends(get_executor),
) -> AccountsService:
    """Get accounts service instance."""
    return AccountsService(executor)


Projects = Annotated[ProjectService, Depends(get_project_service)]
Accounts = Annotated[AccountsService, Depends(get_accounts_service)]
