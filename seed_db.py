"""Seed a local database with a few users, communities, projects and tasks.

Run with:
    python seed_db.py
"""

import asyncio

from app import models  # noqa: F401
from app.database import Base, async_session, engine
from app.models.community_membership import CommunityRole
from app.models.user import User
from app.routers.auth import hash_password
from app.services.membership import AuthenticatedActor, MembershipManager
from app.services.projects import ProjectService
from app.services.tasks import TaskService


async def async_main():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    password = hash_password("password123")

    async with async_session() as session:
        users = [
            User(email="alice@example.com", full_name="Alice Builder", password_hash=password),
            User(email="bob@example.com", full_name="Bob Designer", password_hash=password),
            User(email="charlie@example.com", full_name="Charlie Research", password_hash=password),
            User(email="diana@example.com", full_name="Diana Communicator", password_hash=password),
        ]
        session.add_all(users)
        await session.commit()

    alice, bob, charlie, diana = (AuthenticatedActor(u.id) for u in users)
    manager = MembershipManager(async_session)
    projects = ProjectService(async_session)
    tasks = TaskService(async_session)

    # Public community: Bob and Charlie join, Bob is promoted to MANAGER
    open_source = await manager.create_community(
        alice, "Open Source Guild", "Maintainers of shared campus tooling."
    )
    await manager.join(bob, open_source.id)
    await manager.join(charlie, open_source.id)
    await manager.update_member_role(alice, open_source.id, bob.user_id, CommunityRole.MANAGER)

    board = await projects.create_project(bob, open_source.id, "Issue Board", "Triage backlog", "🗂️")
    await tasks.create_task(bob, open_source.id, "Label stale issues", project_id=board.id,
                            assigned_to=charlie.user_id)
    await tasks.create_task(charlie, open_source.id, "Write contributor guide", project_id=board.id)

    # Private community: Diana joins through an invite
    research = await manager.create_community(
        charlie, "ML Reading Group", "Weekly paper discussions, invite only.", is_private=True
    )
    invite = await manager.issue_invite(charlie, research.id)
    await manager.join_with_invite(diana, invite.token)

    print("Seeding complete!")
    print("  Sign in with any seeded email and password123")
    print(f"  Invite link for '{research.name}': {invite.link}")


if __name__ == "__main__":
    asyncio.run(async_main())
