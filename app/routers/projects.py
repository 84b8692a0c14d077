"""Projects router – project CRUD scoped to a community."""

from fastapi import APIRouter, Depends, Query, Response, status

from app.dependencies import get_actor, get_project_service
from app.schemas.project import ProjectCreate, ProjectOut, ProjectPage, ProjectUpdate
from app.services.membership import AuthenticatedActor
from app.services.projects import ProjectService

router = APIRouter(prefix="/communities/{community_id}/projects", tags=["projects"])


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
async def create_project(
    community_id: int,
    payload: ProjectCreate,
    actor: AuthenticatedActor = Depends(get_actor),
    service: ProjectService = Depends(get_project_service),
):
    return await service.create_project(
        actor, community_id, payload.name, payload.description, payload.emoji
    )


@router.get("", response_model=ProjectPage)
async def list_projects(
    community_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: AuthenticatedActor = Depends(get_actor),
    service: ProjectService = Depends(get_project_service),
):
    result = await service.list_projects(actor, community_id, page, limit)
    return ProjectPage(
        projects=[ProjectOut.model_validate(p) for p in result.items],
        total=result.total,
        page=result.page,
        total_pages=result.total_pages,
    )


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(
    community_id: int,
    project_id: int,
    actor: AuthenticatedActor = Depends(get_actor),
    service: ProjectService = Depends(get_project_service),
):
    return await service.get_project(actor, community_id, project_id)


@router.patch("/{project_id}", response_model=ProjectOut)
async def update_project(
    community_id: int,
    project_id: int,
    payload: ProjectUpdate,
    actor: AuthenticatedActor = Depends(get_actor),
    service: ProjectService = Depends(get_project_service),
):
    return await service.update_project(
        actor, community_id, project_id, payload.model_dump(exclude_unset=True)
    )


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    community_id: int,
    project_id: int,
    actor: AuthenticatedActor = Depends(get_actor),
    service: ProjectService = Depends(get_project_service),
):
    await service.delete_project(actor, community_id, project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
