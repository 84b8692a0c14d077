"""Task service — CRUD and assignment, gated by the member's role."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import ForbiddenError, NotFoundError
from app.models.task import Task, TaskPriority, TaskStatus
from app.services.base import Page, TransactionalService
from app.services.membership import AuthenticatedActor, get_membership_role
from app.services.permissions import NOT_A_MEMBER, Permission, require
from app.services.projects import get_community_project

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {"title", "description", "status", "priority", "project_id", "assigned_to", "due_date"}
REQUIRED_FIELDS = {"title", "status", "priority"}


async def _check_assignee(session: AsyncSession, community_id: int, user_id: Optional[int]) -> None:
    if user_id is None:
        return
    if await get_membership_role(session, user_id, community_id) is None:
        raise NotFoundError("Assigned user is not a member of this community")


async def _get_task(session: AsyncSession, community_id: int, task_id: int) -> Task:
    result = await session.execute(
        select(Task).where(Task.id == task_id, Task.community_id == community_id)
    )
    task = result.scalar_one_or_none()
    if task is None:
        raise NotFoundError("Task not found or does not belong to this community")
    return task


class TaskService(TransactionalService):

    async def create_task(
        self,
        actor: AuthenticatedActor,
        community_id: int,
        title: str,
        description: Optional[str] = None,
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
        project_id: Optional[int] = None,
        assigned_to: Optional[int] = None,
        due_date: Optional[datetime] = None,
    ) -> Task:
        async with self._transaction() as session:
            role = await get_membership_role(session, actor.user_id, community_id)
            required = {Permission.CREATE_TASK}
            if assigned_to is not None:
                required.add(Permission.ASSIGN_TASK)
            require(role, required)

            if project_id is not None:
                await get_community_project(session, community_id, project_id)
            await _check_assignee(session, community_id, assigned_to)

            task = Task(
                community_id=community_id,
                project_id=project_id,
                title=title,
                description=description,
                status=status or TaskStatus.TODO,
                priority=priority or TaskPriority.MEDIUM,
                assigned_to=assigned_to,
                created_by=actor.user_id,
                due_date=due_date,
            )
            session.add(task)

        logger.info(f"Task {task.id} created in community {community_id} by user {actor.user_id}")
        return task

    async def list_tasks(
        self,
        actor: AuthenticatedActor,
        community_id: int,
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
        project_id: Optional[int] = None,
        assigned_to: Optional[int] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page[Task]:
        async with self._read() as session:
            if await get_membership_role(session, actor.user_id, community_id) is None:
                raise ForbiddenError(NOT_A_MEMBER)

            conditions = [Task.community_id == community_id]
            if status is not None:
                conditions.append(Task.status == status)
            if priority is not None:
                conditions.append(Task.priority == priority)
            if project_id is not None:
                conditions.append(Task.project_id == project_id)
            if assigned_to is not None:
                conditions.append(Task.assigned_to == assigned_to)

            result = await session.execute(
                select(Task)
                .where(*conditions)
                .order_by(Task.created_at.desc(), Task.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            total = (await session.execute(select(func.count(Task.id)).where(*conditions))).scalar() or 0
            return Page(items=list(result.scalars().all()), total=total, page=page, limit=limit)

    async def get_task(self, actor: AuthenticatedActor, community_id: int, task_id: int) -> Task:
        async with self._read() as session:
            if await get_membership_role(session, actor.user_id, community_id) is None:
                raise ForbiddenError(NOT_A_MEMBER)
            return await _get_task(session, community_id, task_id)

    async def update_task(
        self,
        actor: AuthenticatedActor,
        community_id: int,
        task_id: int,
        changes: Dict[str, Any],
    ) -> Task:
        changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}

        async with self._transaction() as session:
            role = await get_membership_role(session, actor.user_id, community_id)
            required = {Permission.EDIT_TASK}
            if "assigned_to" in changes:
                required.add(Permission.ASSIGN_TASK)
            require(role, required)

            task = await _get_task(session, community_id, task_id)
            if changes.get("project_id") is not None:
                await get_community_project(session, community_id, changes["project_id"])
            await _check_assignee(session, community_id, changes.get("assigned_to"))

            for field, value in changes.items():
                if value is None and field in REQUIRED_FIELDS:
                    continue
                setattr(task, field, value)

        logger.info(f"Task {task_id} updated by user {actor.user_id}")
        return task

    async def assign_task(
        self,
        actor: AuthenticatedActor,
        community_id: int,
        task_id: int,
        assignee_id: Optional[int],
    ) -> Task:
        """Assign (or with ``None``, unassign) a task."""
        async with self._transaction() as session:
            role = await get_membership_role(session, actor.user_id, community_id)
            require(role, {Permission.ASSIGN_TASK})

            task = await _get_task(session, community_id, task_id)
            await _check_assignee(session, community_id, assignee_id)
            task.assigned_to = assignee_id

        logger.info(f"Task {task_id} assigned to {assignee_id} by user {actor.user_id}")
        return task

    async def delete_task(self, actor: AuthenticatedActor, community_id: int, task_id: int) -> None:
        async with self._transaction() as session:
            role = await get_membership_role(session, actor.user_id, community_id)
            require(role, {Permission.DELETE_TASK})

            task = await _get_task(session, community_id, task_id)
            await session.delete(task)

        logger.info(f"Task {task_id} deleted by user {actor.user_id}")
