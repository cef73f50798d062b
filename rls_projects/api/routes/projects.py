"""
Project routes.

Every handler passes the caller's scope straight to ProjectService; no
handler filters by company itself.
"""

import asyncio
from uuid import UUID

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import StreamingResponse

from rls_projects.api.dependencies import CurrentScope, Projects
from rls_projects.api.sse import sse_comment, sse_event
from rls_projects.core.interfaces.events import Event
from rls_projects.schemas.project import (
    ProjectCountResponse,
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectUpdate,
)

logger = structlog.get_logger()

router = APIRouter()

KEEPALIVE_SECONDS = 15.0
EVENT_QUEUE_SIZE = 100


@router.get("", response_model=ProjectListResponse)
async def list_projects(scope: CurrentScope, projects: Projects):
    """List projects of the caller's company."""
    items = await projects.list_projects(scope)
    return ProjectListResponse(
        projects=[ProjectResponse.model_validate(p) for p in items],
        total=len(items),
    )


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(data: ProjectCreate, scope: CurrentScope, projects: Projects):
    """Create a project in the caller's company."""
    project = await projects.create_project(scope, data)
    return ProjectResponse.model_validate(project)


@router.get("/count", response_model=ProjectCountResponse)
async def count_projects(scope: CurrentScope, projects: Projects):
    """Number of projects visible to the caller."""
    return ProjectCountResponse(count=await projects.count_projects(scope))


@router.get("/events")
async def project_events(request: Request, scope: CurrentScope, projects: Projects):
    """
    Stream change notifications of the caller's company.

    Events only say that something changed; clients re-fetch through the
    regular endpoints.
    """
    queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=EVENT_QUEUE_SIZE)

    async def enqueue(event: Event) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("sse_event_dropped", event_type=event.type, user_id=str(scope.user_id))

    subscription = await projects.subscribe_projects(scope, enqueue)

    async def event_stream():
        try:
            yield sse_event("ready", {"company_id": str(scope.tenant_id)})
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    if await request.is_disconnected():
                        break
                    yield sse_comment()
                    continue
                yield sse_event(event.type, event.data)
        finally:
            await projects.unsubscribe_projects(subscription)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: UUID, scope: CurrentScope, projects: Projects):
    """Get project by ID. 404 for missing and foreign projects alike."""
    project = await projects.get_project_or_fail(scope, project_id)
    return ProjectResponse.model_validate(project)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: UUID,
    data: ProjectUpdate,
    scope: CurrentScope,
    projects: Projects,
):
    """Update project."""
    project = await projects.update_project(scope, project_id, data)
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(project_id: UUID, scope: CurrentScope, projects: Projects):
    """Delete project."""
    await projects.delete_project(scope, project_id)
