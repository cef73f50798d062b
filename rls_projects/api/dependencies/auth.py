"""
Caller identity dependencies.

Authentication happens upstream: the gateway forwards the authenticated
user's id in the X-User-ID header. Here it is only resolved to a Scope.

Usage:
    @router.get("/projects")
    async def handler(scope: CurrentScope, projects: Projects):
        return await projects.list_projects(scope)
"""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import Depends, Header

from rls_projects.core.exceptions import NoUserInScope
from rls_projects.core.scope import Scope
from rls_projects.services.accounts import AccountsService

from .services import get_accounts_service

logger = structlog.get_logger()

USER_ID_HEADER = "X-User-ID"


async def get_current_scope_optional(
    user_id: str | None = Header(None, alias=USER_ID_HEADER),
    accounts: AccountsService = Depends(get_accounts_service),
) -> Scope | None:
    """
    Scope of the calling user, None when the header is missing, malformed
    or names an unknown user.
    """
    if not user_id:
        return None

    try:
        parsed = UUID(user_id)
    except ValueError:
        logger.info("malformed_user_header", value=user_id[:64])
        return None

    scope = await accounts.scope_for_user(parsed)
    if scope is None:
        logger.info("unknown_user", user_id=str(parsed))
    return scope


async def get_current_scope(
    scope: Scope | None = Depends(get_current_scope_optional),
) -> Scope:
    """
    Scope of the calling user.

    Raises:
        NoUserInScope: Rendered as 401 by the application error handlers.
    """
    if scope is None:
        raise NoUserInScope("Not authenticated")
    return scope


CurrentScope = Annotated[Scope, Depends(get_current_scope)]
OptionalScope = Annotated[Scope | None, Depends(get_current_scope_optional)]
