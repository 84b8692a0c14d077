"""Tasks router – task CRUD and assignment scoped to a community."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from app.dependencies import get_actor, get_task_service
from app.models.task import TaskPriority, TaskStatus
from app.schemas.task import TaskAssign, TaskCreate, TaskOut, TaskPage, TaskUpdate
from app.services.membership import AuthenticatedActor
from app.services.tasks import TaskService

router = APIRouter(prefix="/communities/{community_id}/tasks", tags=["tasks"])


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(
    community_id: int,
    payload: TaskCreate,
    actor: AuthenticatedActor = Depends(get_actor),
    service: TaskService = Depends(get_task_service),
):
    return await service.create_task(actor, community_id, **payload.model_dump())


@router.get("", response_model=TaskPage)
async def list_tasks(
    community_id: int,
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = None,
    project_id: Optional[int] = None,
    assigned_to: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: AuthenticatedActor = Depends(get_actor),
    service: TaskService = Depends(get_task_service),
):
    result = await service.list_tasks(
        actor,
        community_id,
        status=status_filter,
        priority=priority,
        project_id=project_id,
        assigned_to=assigned_to,
        page=page,
        limit=limit,
    )
    return TaskPage(
        tasks=[TaskOut.model_validate(t) for t in result.items],
        total=result.total,
        page=result.page,
        total_pages=result.total_pages,
    )


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(
    community_id: int,
    task_id: int,
    actor: AuthenticatedActor = Depends(get_actor),
    service: TaskService = Depends(get_task_service),
):
    return await service.get_task(actor, community_id, task_id)


@router.patch("/{task_id}", response_model=TaskOut)
async def update_task(
    community_id: int,
    task_id: int,
    payload: TaskUpdate,
    actor: AuthenticatedActor = Depends(get_actor),
    service: TaskService = Depends(get_task_service),
):
    return await service.update_task(
        actor, community_id, task_id, payload.model_dump(exclude_unset=True)
    )


@router.put("/{task_id}/assign", response_model=TaskOut)
async def assign_task(
    community_id: int,
    task_id: int,
    payload: TaskAssign,
    actor: AuthenticatedActor = Depends(get_actor),
    service: TaskService = Depends(get_task_service),
):
    return await service.assign_task(actor, community_id, task_id, payload.assigned_to)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    community_id: int,
    task_id: int,
    actor: AuthenticatedActor = Depends(get_actor),
    service: TaskService = Depends(get_task_service),
):
    await service.delete_task(actor, community_id, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
