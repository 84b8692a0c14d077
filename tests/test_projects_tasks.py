"""
Project and task operations gated through the community role table.
"""

import pytest

from app.errors import ForbiddenError, NotFoundError
from app.models.community_membership import CommunityRole
from app.models.task import TaskPriority, TaskStatus


@pytest.fixture
async def community(manager, alice, bob, carol):
    """alice owns it; bob is a MANAGER; carol is a VIEWER."""
    community = await manager.create_community(alice, "Platform", "Platform engineering team")
    await manager.join(bob, community.id)
    await manager.join(carol, community.id)
    await manager.update_member_role(alice, community.id, bob.user_id, CommunityRole.MANAGER)
    return community


@pytest.fixture
async def project(project_service, alice, community):
    return await project_service.create_project(alice, community.id, "Migrations", "Schema work", "🛠️")


class TestProjects:

    async def test_manager_creates_project(self, project_service, bob, community):
        project = await project_service.create_project(bob, community.id, "Docs")
        assert project.community_id == community.id
        assert project.created_by == bob.user_id

    async def test_viewer_cannot_create_project(self, project_service, carol, community):
        with pytest.raises(ForbiddenError):
            await project_service.create_project(carol, community.id, "Nope")

    async def test_non_member_cannot_list(self, project_service, dave, community, project):
        with pytest.raises(ForbiddenError):
            await project_service.list_projects(dave, community.id)

    async def test_member_lists_projects(self, project_service, carol, community, project):
        page = await project_service.list_projects(carol, community.id)
        assert page.total == 1
        assert page.items[0].id == project.id
        assert page.total_pages == 1

    async def test_project_from_other_community_is_not_found(self, manager, project_service, alice, community, project):
        other = await manager.create_community(alice, "Elsewhere", "A different community")
        with pytest.raises(NotFoundError):
            await project_service.get_project(alice, other.id, project.id)

    async def test_update_ignores_null_name(self, project_service, bob, community, project):
        updated = await project_service.update_project(
            bob, community.id, project.id, {"name": None, "emoji": "🚀"}
        )
        assert updated.name == "Migrations"
        assert updated.emoji == "🚀"

    async def test_manager_cannot_delete_project(self, project_service, bob, community, project):
        with pytest.raises(ForbiddenError):
            await project_service.delete_project(bob, community.id, project.id)

    async def test_delete_removes_its_tasks(self, project_service, task_service, alice, community, project):
        await task_service.create_task(alice, community.id, "Backfill", project_id=project.id)
        loose = await task_service.create_task(alice, community.id, "Unfiled")

        await project_service.delete_project(alice, community.id, project.id)

        page = await task_service.list_tasks(alice, community.id)
        assert [t.id for t in page.items] == [loose.id]


class TestTasks:

    async def test_viewer_creates_task_with_defaults(self, task_service, carol, community):
        task = await task_service.create_task(carol, community.id, "Write tests")
        assert task.status is TaskStatus.TODO
        assert task.priority is TaskPriority.MEDIUM
        assert task.assigned_to is None

    async def test_non_member_cannot_create(self, task_service, dave, community):
        with pytest.raises(ForbiddenError):
            await task_service.create_task(dave, community.id, "Sneaky")

    async def test_viewer_cannot_assign_on_create(self, task_service, carol, community):
        with pytest.raises(ForbiddenError):
            await task_service.create_task(carol, community.id, "Delegate", assigned_to=carol.user_id)

    async def test_manager_assigns_member(self, task_service, bob, carol, community):
        task = await task_service.create_task(bob, community.id, "Review PR", assigned_to=carol.user_id)
        assert task.assigned_to == carol.user_id

    async def test_assignee_must_be_member(self, task_service, bob, dave, community):
        with pytest.raises(NotFoundError):
            await task_service.create_task(bob, community.id, "Outsourced", assigned_to=dave.user_id)

    async def test_project_must_belong_to_community(self, manager, project_service, task_service,
                                                    alice, community):
        other = await manager.create_community(alice, "Elsewhere", "A different community")
        foreign = await project_service.create_project(alice, other.id, "Foreign")
        with pytest.raises(NotFoundError):
            await task_service.create_task(alice, community.id, "Misfiled", project_id=foreign.id)

    async def test_filters(self, task_service, alice, carol, community, project):
        await task_service.create_task(alice, community.id, "A", project_id=project.id,
                                       priority=TaskPriority.HIGH)
        await task_service.create_task(alice, community.id, "B", status=TaskStatus.DONE)
        await task_service.create_task(alice, community.id, "C", assigned_to=carol.user_id)

        high = await task_service.list_tasks(carol, community.id, priority=TaskPriority.HIGH)
        assert [t.title for t in high.items] == ["A"]
        done = await task_service.list_tasks(carol, community.id, status=TaskStatus.DONE)
        assert [t.title for t in done.items] == ["B"]
        mine = await task_service.list_tasks(carol, community.id, assigned_to=carol.user_id)
        assert [t.title for t in mine.items] == ["C"]
        in_project = await task_service.list_tasks(carol, community.id, project_id=project.id)
        assert in_project.total == 1

    async def test_viewer_edits_but_cannot_reassign(self, task_service, alice, carol, community):
        task = await task_service.create_task(alice, community.id, "Polish")
        updated = await task_service.update_task(
            carol, community.id, task.id, {"status": TaskStatus.IN_PROGRESS, "title": None}
        )
        assert updated.status is TaskStatus.IN_PROGRESS
        assert updated.title == "Polish"

        with pytest.raises(ForbiddenError):
            await task_service.update_task(carol, community.id, task.id, {"assigned_to": carol.user_id})

    async def test_assign_and_unassign(self, task_service, bob, carol, community):
        task = await task_service.create_task(bob, community.id, "Rotate keys")
        assigned = await task_service.assign_task(bob, community.id, task.id, carol.user_id)
        assert assigned.assigned_to == carol.user_id
        unassigned = await task_service.assign_task(bob, community.id, task.id, None)
        assert unassigned.assigned_to is None

    async def test_viewer_cannot_delete(self, task_service, alice, carol, community):
        task = await task_service.create_task(alice, community.id, "Keep me")
        with pytest.raises(ForbiddenError):
            await task_service.delete_task(carol, community.id, task.id)

    async def test_developer_ii_deletes(self, manager, task_service, alice, carol, community):
        await manager.update_member_role(alice, community.id, carol.user_id, CommunityRole.DEVELOPER_II)
        task = await task_service.create_task(alice, community.id, "Delete me")
        await task_service.delete_task(carol, community.id, task.id)
        with pytest.raises(NotFoundError):
            await task_service.get_task(carol, community.id, task.id)
