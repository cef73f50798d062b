"""
Project service.

Every tenant-facing method takes the caller's Scope and runs its statements
through the access-context executor; none of them filters by company in
SQL. Row visibility and write checks come from the database policies.
"""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy import delete, func, select, update

from rls_projects.core.exceptions import NoTenantInScope, NoUserInScope, NotFound, ValidationFailure
from rls_projects.core.interfaces.events import Event, EventBus, EventHandler, Subscription
from rls_projects.core.rls import AccessContext, AccessContextExecutor
from rls_projects.core.scope import Scope
from rls_projects.models.project import Project
from rls_projects.schemas.project import ProjectCreate, ProjectResponse, ProjectUpdate

logger = structlog.get_logger()

PROJECT_CREATED = "project_created"
PROJECT_UPDATED = "project_updated"
PROJECT_DELETED = "project_deleted"


def project_topic(company_id: UUID | str) -> str:
    """Notification channel of one company's projects."""
    return f"projects:{company_id}"


def _validate(schema: type[BaseModel], data: BaseModel | Mapping[str, Any]) -> Any:
    if isinstance(data, schema):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return schema.model_validate(dict(data))
    except ValidationError as e:
        raise ValidationFailure.from_pydantic(e) from None


def _project_id(project: Project | UUID) -> UUID:
    return project.id if isinstance(project, Project) else project


class ProjectService:
    """Tenant-scoped project operations."""

    def __init__(self, executor: AccessContextExecutor, events: EventBus | None = None):
        self.executor = executor
        self.events = events

    # ============================================================
    # READS
    # ============================================================

    async def list_projects(self, scope: Scope | None) -> list[Project]:
        """Projects visible to the scope, oldest first. Empty without a user."""

        async def op(ctx: AccessContext) -> list[Project]:
            result = await ctx.session.execute(
                select(Project).order_by(Project.created_at, Project.id)
            )
            return list(result.scalars().all())

        try:
            return await self.executor.run_with_user_context(scope, op)
        except NoUserInScope:
            return []

    async def get_project(self, scope: Scope | None, project_id: UUID) -> Project | None:
        """
        Get a project by id.

        Returns None when the project does not exist, belongs to another
        company, or the scope has no user. The three cases are
        indistinguishable to the caller.
        """

        async def op(ctx: AccessContext) -> Project | None:
            result = await ctx.session.execute(select(Project).where(Project.id == project_id))
            return result.scalar_one_or_none()

        try:
            return await self.executor.run_with_user_context(scope, op)
        except NoUserInScope:
            return None

    async def get_project_or_fail(self, scope: Scope | None, project_id: UUID) -> Project:
        """Like get_project, but raises NotFound instead of returning None."""

        async def op(ctx: AccessContext) -> Project | None:
            result = await ctx.session.execute(select(Project).where(Project.id == project_id))
            return result.scalar_one_or_none()

        try:
            project = await self.executor.run_with_user_context(scope, op)
        except NoUserInScope:
            logger.info("project_lookup_denied", project_id=str(project_id), reason="no_user_in_scope")
            raise NotFound("Project not found") from None

        if project is None:
            logger.info(
                "project_lookup_denied",
                project_id=str(project_id),
                reason="missing_or_foreign",
                user_id=str(scope.user_id),
            )
            raise NotFound("Project not found")
        return project

    async def count_projects(self, scope: Scope | None) -> int:
        """Number of projects visible to the scope. Zero without a user."""

        async def op(ctx: AccessContext) -> int:
            return await ctx.session.scalar(select(func.count()).select_from(Project)) or 0

        try:
            return await self.executor.run_with_user_context(scope, op)
        except NoUserInScope:
            return 0

    # ============================================================
    # WRITES
    # ============================================================

    def change_project(
        self,
        project: Project | None = None,
        data: ProjectUpdate | Mapping[str, Any] | None = None,
    ) -> ProjectUpdate:
        """
        Validate prospective changes without touching storage.

        When ``project`` is given, the project as it would look after the
        changes must also be valid.

        Raises:
            ValidationFailure: With per-field messages.
        """
        change = _validate(ProjectUpdate, data or {})
        if project is not None:
            current = {"name": project.name, "description": project.description}
            _validate(ProjectCreate, {**current, **change.changes()})
        return change

    async def create_project(
        self,
        scope: Scope | None,
        data: ProjectCreate | Mapping[str, Any],
    ) -> Project:
        """
        Create a project in the scope's company.

        The company is taken from the scope; a company_id in ``data`` is
        ignored.

        Raises:
            NoTenantInScope: Scope has no company. Nothing was written.
            ValidationFailure: Invalid attributes. Nothing was written.
            NoUserInScope: Scope has no user.
        """
        if scope is None or scope.tenant is None:
            raise NoTenantInScope()

        payload = _validate(ProjectCreate, data)
        company_id = scope.tenant.id

        async def op(ctx: AccessContext) -> Project:
            project = Project(company_id=company_id, **payload.model_dump())
            ctx.session.add(project)
            await ctx.session.flush()
            await ctx.session.refresh(project)
            return project

        project = await self.executor.run_with_user_context(scope, op)
        logger.info("project_created", project_id=str(project.id), company_id=str(company_id))

        await self.broadcast_project_event(PROJECT_CREATED, project)
        return project

    async def update_project(
        self,
        scope: Scope | None,
        project: Project | UUID,
        data: ProjectUpdate | Mapping[str, Any],
    ) -> Project:
        """
        Apply changes to a visible project.

        The UPDATE is issued by id only; the policies decide whether the row
        is reachable. Zero affected rows means the project is missing or
        belongs to another company.

        Raises:
            ValidationFailure: Invalid attributes. Nothing was written.
            NotFound: Project missing or outside the scope's company.
            NoUserInScope: Scope has no user.
        """
        changes = _validate(ProjectUpdate, data).changes()
        project_id = _project_id(project)

        async def op(ctx: AccessContext) -> Project | None:
            if not changes:
                result = await ctx.session.execute(select(Project).where(Project.id == project_id))
                return result.scalar_one_or_none()

            result = await ctx.session.execute(
                update(Project)
                .where(Project.id == project_id)
                .values(**changes)
                .returning(Project)
            )
            return result.scalar_one_or_none()

        updated = await self.executor.run_with_user_context(scope, op)
        if updated is None:
            raise NotFound("Project not found")

        if changes:
            logger.info("project_updated", project_id=str(project_id), fields=sorted(changes))
            await self.broadcast_project_event(PROJECT_UPDATED, updated)
        return updated

    async def delete_project(self, scope: Scope | None, project: Project | UUID) -> Project:
        """
        Delete a visible project and return it as it was.

        Raises:
            NotFound: Project missing or outside the scope's company.
            NoUserInScope: Scope has no user.
        """
        project_id = _project_id(project)

        async def op(ctx: AccessContext) -> Project | None:
            result = await ctx.session.execute(
                delete(Project).where(Project.id == project_id).returning(Project)
            )
            return result.scalar_one_or_none()

        deleted = await self.executor.run_with_user_context(scope, op)
        if deleted is None:
            raise NotFound("Project not found")

        logger.info("project_deleted", project_id=str(project_id))
        await self.broadcast_project_event(PROJECT_DELETED, deleted)
        return deleted

    # ============================================================
    # NOTIFICATIONS
    # ============================================================

    async def subscribe_projects(self, scope: Scope | None, handler: EventHandler) -> Subscription:
        """
        Subscribe to change notifications of the scope's company.

        Raises:
            NoTenantInScope: Scope has no company.
        """
        if scope is None or scope.tenant is None:
            raise NoTenantInScope()
        if self.events is None:
            raise RuntimeError("ProjectService has no event bus configured")
        return await self.events.subscribe(project_topic(scope.tenant.id), handler)

    async def unsubscribe_projects(self, subscription: Subscription | str) -> bool:
        if self.events is None:
            return False
        subscription_id = subscription.id if isinstance(subscription, Subscription) else subscription
        return await self.events.unsubscribe(subscription_id)

    async def broadcast_project_event(self, kind: str, project: Project) -> None:
        """
        Publish a change notification on the project's company channel.

        Best effort: the change is already committed, so a publish failure is
        logged and dropped.
        """
        if self.events is None:
            return

        event = Event(
            type=kind,
            data={"project": ProjectResponse.model_validate(project).model_dump(mode="json")},
        )
        try:
            await self.events.publish(project_topic(project.company_id), event)
        except Exception:
            logger.exception(
                "project_event_publish_failed",
                kind=kind,
                project_id=str(project.id),
            )

    # ============================================================
    # PRIVILEGED (operators and maintenance only)
    # ============================================================

    async def count_all_projects(self) -> int:
        """Projects across every company."""

        async def op(ctx: AccessContext) -> int:
            return await ctx.session.scalar(select(func.count()).select_from(Project)) or 0

        return await self.executor.run_with_admin_context(op)

    async def count_projects_for_company(self, company_id: UUID) -> int:
        async def op(ctx: AccessContext) -> int:
            return await ctx.session.scalar(
                select(func.count()).select_from(Project).where(Project.company_id == company_id)
            ) or 0

        return await self.executor.run_with_admin_context(op)
