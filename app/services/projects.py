"""Project service — CRUD inside a community, gated by the member's role."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import ForbiddenError, NotFoundError
from app.models.project import Project
from app.models.task import Task
from app.services.base import Page, TransactionalService
from app.services.membership import AuthenticatedActor, get_membership_role
from app.services.permissions import NOT_A_MEMBER, Permission, require

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {"name", "description", "emoji"}


async def get_community_project(session: AsyncSession, community_id: int, project_id: int) -> Project:
    result = await session.execute(
        select(Project).where(Project.id == project_id, Project.community_id == community_id)
    )
    project = result.scalar_one_or_none()
    if project is None:
        raise NotFoundError("Project not found or does not belong to this community")
    return project


class ProjectService(TransactionalService):

    async def create_project(
        self,
        actor: AuthenticatedActor,
        community_id: int,
        name: str,
        description: Optional[str] = None,
        emoji: Optional[str] = None,
    ) -> Project:
        async with self._transaction() as session:
            role = await get_membership_role(session, actor.user_id, community_id)
            require(role, {Permission.CREATE_PROJECT})

            project = Project(
                community_id=community_id,
                name=name,
                description=description,
                emoji=emoji,
                created_by=actor.user_id,
            )
            session.add(project)

        logger.info(f"Project {project.id} created in community {community_id} by user {actor.user_id}")
        return project

    async def list_projects(
        self, actor: AuthenticatedActor, community_id: int, page: int = 1, limit: int = 10
    ) -> Page[Project]:
        async with self._read() as session:
            if await get_membership_role(session, actor.user_id, community_id) is None:
                raise ForbiddenError(NOT_A_MEMBER)

            result = await session.execute(
                select(Project)
                .where(Project.community_id == community_id)
                .order_by(Project.created_at.desc(), Project.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            total = (
                await session.execute(
                    select(func.count(Project.id)).where(Project.community_id == community_id)
                )
            ).scalar() or 0
            return Page(items=list(result.scalars().all()), total=total, page=page, limit=limit)

    async def get_project(self, actor: AuthenticatedActor, community_id: int, project_id: int) -> Project:
        async with self._read() as session:
            if await get_membership_role(session, actor.user_id, community_id) is None:
                raise ForbiddenError(NOT_A_MEMBER)
            return await get_community_project(session, community_id, project_id)

    async def update_project(
        self,
        actor: AuthenticatedActor,
        community_id: int,
        project_id: int,
        changes: Dict[str, Any],
    ) -> Project:
        async with self._transaction() as session:
            role = await get_membership_role(session, actor.user_id, community_id)
            require(role, {Permission.EDIT_PROJECT})

            project = await get_community_project(session, community_id, project_id)
            for field, value in changes.items():
                if field in EDITABLE_FIELDS and not (field == "name" and value is None):
                    setattr(project, field, value)

        logger.info(f"Project {project_id} updated by user {actor.user_id}")
        return project

    async def delete_project(self, actor: AuthenticatedActor, community_id: int, project_id: int) -> None:
        """Delete a project together with the tasks filed under it."""
        async with self._transaction() as session:
            role = await get_membership_role(session, actor.user_id, community_id)
            require(role, {Permission.DELETE_PROJECT})

            project = await get_community_project(session, community_id, project_id)
            await session.execute(Task.__table__.delete().where(Task.project_id == project.id))
            await session.delete(project)

        logger.info(f"Project {project_id} deleted by user {actor.user_id}")
