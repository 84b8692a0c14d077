"""
Membership lifecycle manager — the only write path for communities and
their memberships.

Each public operation runs in exactly one transaction.  The first
statement locks the community row, so concurrent writers against the same
community queue up behind each other and every aggregate check (admin
count, remaining members) is evaluated against current data right before
the write that depends on it.  Raising any ``CommunityError`` inside the
transaction rolls it back, leaving state untouched.
"""

import enum
import functools
import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.errors import CommunityError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models.community import Community
from app.models.community_invite import CommunityInvite
from app.models.community_membership import CommunityMember, CommunityRole
from app.models.project import Project
from app.models.task import Task
from app.services.base import TransactionalService
from app.services.invites import InviteIssuer, IssuedInvite
from app.services.permissions import NOT_A_MEMBER, Permission, require

logger = logging.getLogger(__name__)

NAME_MIN, NAME_MAX = 3, 50
DESCRIPTION_MIN, DESCRIPTION_MAX = 10, 500

JOIN_ROLE = CommunityRole.VIEWER


@dataclass(frozen=True)
class AuthenticatedActor:
    """The caller of a core operation, already authenticated upstream."""
    user_id: int


class LeaveOutcome(str, enum.Enum):
    LEFT = "left"
    COMMUNITY_DELETED = "community_deleted"


def _check_length(field: str, value: Optional[str], low: int, high: int) -> str:
    if value is None or not low <= len(value.strip()) <= high:
        raise ValidationError(f"{field} must be between {low} and {high} characters")
    return value.strip()


def _as_role(value: Union[CommunityRole, str]) -> CommunityRole:
    try:
        return CommunityRole(value)
    except ValueError:
        raise ValidationError(f"Unknown role: {value}") from None


def _audited(operation: str):
    """Log rejected attempts of ``operation`` before re-raising."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, actor: AuthenticatedActor, *args, **kwargs):
            try:
                return await func(self, actor, *args, **kwargs)
            except CommunityError as exc:
                logger.warning(
                    f"{operation} by user {actor.user_id} rejected "
                    f"({exc.kind.value}): {exc.reason}"
                )
                raise
        return wrapper

    return decorator


async def get_membership_role(
    session: AsyncSession, user_id: int, community_id: int
) -> Optional[CommunityRole]:
    """Role of ``user_id`` in ``community_id``, or None for non-members."""
    result = await session.execute(
        select(CommunityMember.role).where(
            CommunityMember.community_id == community_id,
            CommunityMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


class MembershipManager(TransactionalService):
    """Orchestrates create / join / leave / role changes / deletion."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        invites: Optional[InviteIssuer] = None,
    ):
        super().__init__(session_factory)
        self.invites = invites or InviteIssuer()

    # ═══════════════════════════════════════════════════════════════
    #  Transaction & row helpers
    # ═══════════════════════════════════════════════════════════════

    @staticmethod
    async def _lock_community(session: AsyncSession, community_id: int) -> Community:
        result = await session.execute(
            select(Community).where(Community.id == community_id).with_for_update()
        )
        community = result.scalar_one_or_none()
        if community is None:
            raise NotFoundError("Community not found")
        return community

    @staticmethod
    async def _membership(
        session: AsyncSession, community_id: int, user_id: int, lock: bool = False
    ) -> Optional[CommunityMember]:
        stmt = select(CommunityMember).where(
            CommunityMember.community_id == community_id,
            CommunityMember.user_id == user_id,
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def _actor_role(
        self, session: AsyncSession, community_id: int, actor: AuthenticatedActor
    ) -> Optional[CommunityRole]:
        membership = await self._membership(session, community_id, actor.user_id, lock=True)
        return membership.role if membership else None

    @staticmethod
    async def _admin_count(session: AsyncSession, community_id: int) -> int:
        # Row locks rather than COUNT(*): aggregates cannot take FOR UPDATE.
        result = await session.execute(
            select(CommunityMember.user_id)
            .where(
                CommunityMember.community_id == community_id,
                CommunityMember.role == CommunityRole.ADMIN,
            )
            .with_for_update()
        )
        return len(result.all())

    @staticmethod
    async def _member_count(session: AsyncSession, community_id: int) -> int:
        result = await session.execute(
            select(func.count(CommunityMember.user_id)).where(
                CommunityMember.community_id == community_id
            )
        )
        return result.scalar() or 0

    @staticmethod
    async def _cascade_delete(session: AsyncSession, community: Community) -> None:
        """Remove the community and everything hanging off it."""
        community_id = community.id
        await session.execute(Task.__table__.delete().where(Task.community_id == community_id))
        await session.execute(Project.__table__.delete().where(Project.community_id == community_id))
        await session.execute(
            CommunityMember.__table__.delete().where(CommunityMember.community_id == community_id)
        )
        await session.execute(
            CommunityInvite.__table__.delete().where(CommunityInvite.community_id == community_id)
        )
        await session.delete(community)
        await session.flush()

    # ═══════════════════════════════════════════════════════════════
    #  Community lifecycle
    # ═══════════════════════════════════════════════════════════════

    @_audited("create_community")
    async def create_community(
        self,
        actor: AuthenticatedActor,
        name: str,
        description: str,
        is_private: bool = False,
    ) -> Community:
        """Create a community with ``actor`` as its OWNER."""
        name = _check_length("name", name, NAME_MIN, NAME_MAX)
        description = _check_length("description", description, DESCRIPTION_MIN, DESCRIPTION_MAX)

        async with self._transaction() as session:
            community = Community(
                name=name,
                description=description,
                is_private=is_private,
                created_by=actor.user_id,
            )
            session.add(community)
            await session.flush()  # to get community.id

            session.add(CommunityMember(
                community_id=community.id,
                user_id=actor.user_id,
                role=CommunityRole.OWNER,
            ))

        logger.info(f"Community {community.id} created by user {actor.user_id}")
        return community

    @_audited("update_community")
    async def update_community(
        self,
        actor: AuthenticatedActor,
        community_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        is_private: Optional[bool] = None,
    ) -> Community:
        async with self._transaction() as session:
            community = await self._lock_community(session, community_id)
            require(await self._actor_role(session, community_id, actor), {Permission.EDIT_COMMUNITY})

            if name is not None:
                community.name = _check_length("name", name, NAME_MIN, NAME_MAX)
            if description is not None:
                community.description = _check_length(
                    "description", description, DESCRIPTION_MIN, DESCRIPTION_MAX
                )
            if is_private is not None:
                community.is_private = is_private

        logger.info(f"Community {community_id} updated by user {actor.user_id}")
        return community

    @_audited("delete_community")
    async def delete_community(self, actor: AuthenticatedActor, community_id: int) -> None:
        """Cascade-delete the community; NotFound if it is already gone."""
        async with self._transaction() as session:
            community = await self._lock_community(session, community_id)
            require(await self._actor_role(session, community_id, actor), {Permission.DELETE_COMMUNITY})
            await self._cascade_delete(session, community)

        logger.info(f"Community {community_id} deleted by user {actor.user_id}")

    # ═══════════════════════════════════════════════════════════════
    #  Joining & leaving
    # ═══════════════════════════════════════════════════════════════

    async def _join(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        community_id: int,
        invite_token: Optional[str],
    ) -> CommunityMember:
        community = await self._lock_community(session, community_id)

        if await self._membership(session, community_id, actor.user_id):
            raise ConflictError("You are already a member of this community")

        if community.is_private:
            if not invite_token:
                raise ForbiddenError("Cannot join private community without invite")
            invite = await self.invites.resolve(session, invite_token)
            if invite is None or invite.community_id != community_id:
                raise ForbiddenError("Invite is invalid or has expired")

        membership = CommunityMember(
            community_id=community_id,
            user_id=actor.user_id,
            role=JOIN_ROLE,
        )
        try:
            async with session.begin_nested():
                session.add(membership)
        except IntegrityError:
            # A concurrent join for the same pair won the insert.
            raise ConflictError("You are already a member of this community") from None
        return membership

    @_audited("join")
    async def join(
        self,
        actor: AuthenticatedActor,
        community_id: int,
        invite_token: Optional[str] = None,
    ) -> CommunityMember:
        """Join as the lowest role; private communities need a live invite."""
        async with self._transaction() as session:
            membership = await self._join(session, actor, community_id, invite_token)

        logger.info(f"User {actor.user_id} joined community {community_id}")
        return membership

    @_audited("join_with_invite")
    async def join_with_invite(self, actor: AuthenticatedActor, token: str) -> CommunityMember:
        """Join whichever community ``token`` was issued for."""
        async with self._transaction() as session:
            invite = await self.invites.resolve(session, token)
            if invite is None:
                raise NotFoundError("Invite not found or expired")
            community_id = invite.community_id
            membership = await self._join(session, actor, community_id, token)

        logger.info(f"User {actor.user_id} joined community {community_id} via invite")
        return membership

    @_audited("leave")
    async def leave(self, actor: AuthenticatedActor, community_id: int) -> LeaveOutcome:
        """Leave a community.

        The owner leaving takes the whole community down with them; the last
        admin may not leave; and whoever turns out to be the final member
        leaving also triggers deletion.
        """
        async with self._transaction() as session:
            community = await self._lock_community(session, community_id)
            membership = await self._membership(session, community_id, actor.user_id, lock=True)
            if membership is None:
                raise NotFoundError(NOT_A_MEMBER)

            if membership.role == CommunityRole.OWNER:
                await self._cascade_delete(session, community)
                outcome = LeaveOutcome.COMMUNITY_DELETED
            else:
                if membership.role == CommunityRole.ADMIN:
                    if await self._admin_count(session, community_id) <= 1:
                        raise ConflictError("Cannot leave as the last admin")

                await session.delete(membership)
                await session.flush()

                if await self._member_count(session, community_id) == 0:
                    await self._cascade_delete(session, community)
                    outcome = LeaveOutcome.COMMUNITY_DELETED
                else:
                    outcome = LeaveOutcome.LEFT

        if outcome is LeaveOutcome.COMMUNITY_DELETED:
            logger.info(f"Community {community_id} deleted as user {actor.user_id} left")
        else:
            logger.info(f"User {actor.user_id} left community {community_id}")
        return outcome

    # ═══════════════════════════════════════════════════════════════
    #  Roles
    # ═══════════════════════════════════════════════════════════════

    @_audited("update_member_role")
    async def update_member_role(
        self,
        actor: AuthenticatedActor,
        community_id: int,
        target_user_id: int,
        new_role: Union[CommunityRole, str],
    ) -> CommunityMember:
        """Change a member's role.  OWNER is never granted or revoked here."""
        new_role = _as_role(new_role)

        async with self._transaction() as session:
            await self._lock_community(session, community_id)
            require(await self._actor_role(session, community_id, actor), {Permission.CHANGE_MEMBER_ROLE})

            target = await self._membership(session, community_id, target_user_id, lock=True)
            if target is None:
                raise NotFoundError("User is not a member of this community")
            if target.role == CommunityRole.OWNER:
                raise ForbiddenError("The owner's role can only change through an ownership transfer")
            if new_role == CommunityRole.OWNER:
                raise ForbiddenError("Ownership can only be granted through an ownership transfer")

            if target.role == CommunityRole.ADMIN and new_role != CommunityRole.ADMIN:
                if await self._admin_count(session, community_id) <= 1:
                    raise ConflictError("Cannot demote the last admin")

            old_role = target.role
            target.role = new_role

        logger.info(
            f"User {actor.user_id} changed role of user {target_user_id} in community "
            f"{community_id}: {old_role.value} -> {new_role.value}"
        )
        return target

    @_audited("transfer_ownership")
    async def transfer_ownership(
        self, actor: AuthenticatedActor, community_id: int, target_user_id: int
    ) -> CommunityMember:
        """Hand OWNER to another member; the previous owner becomes ADMIN."""
        async with self._transaction() as session:
            await self._lock_community(session, community_id)
            owner = await self._membership(session, community_id, actor.user_id, lock=True)
            require(owner.role if owner else None, {Permission.TRANSFER_OWNERSHIP})

            if target_user_id == actor.user_id:
                raise ValidationError("You already own this community")
            target = await self._membership(session, community_id, target_user_id, lock=True)
            if target is None:
                raise NotFoundError("User is not a member of this community")

            target.role = CommunityRole.OWNER
            owner.role = CommunityRole.ADMIN

        logger.info(
            f"Ownership of community {community_id} transferred from user "
            f"{actor.user_id} to user {target_user_id}"
        )
        return target

    @_audited("remove_member")
    async def remove_member(
        self, actor: AuthenticatedActor, community_id: int, target_user_id: int
    ) -> None:
        async with self._transaction() as session:
            await self._lock_community(session, community_id)
            require(await self._actor_role(session, community_id, actor), {Permission.REMOVE_MEMBER})

            target = await self._membership(session, community_id, target_user_id, lock=True)
            if target is None:
                raise NotFoundError("User is not a member of this community")
            if target_user_id == actor.user_id:
                raise ConflictError("Use leave to remove yourself from a community")
            if target.role == CommunityRole.OWNER:
                raise ForbiddenError("The owner cannot be removed")
            if target.role == CommunityRole.ADMIN:
                if await self._admin_count(session, community_id) <= 1:
                    raise ConflictError("Cannot remove the last admin")

            await session.delete(target)

        logger.info(f"User {actor.user_id} removed user {target_user_id} from community {community_id}")

    # ═══════════════════════════════════════════════════════════════
    #  Invites & lookups
    # ═══════════════════════════════════════════════════════════════

    @_audited("issue_invite")
    async def issue_invite(self, actor: AuthenticatedActor, community_id: int) -> IssuedInvite:
        async with self._transaction() as session:
            await self._lock_community(session, community_id)
            require(await self._actor_role(session, community_id, actor), {Permission.ADD_MEMBER})
            issued = await self.invites.issue(session, community_id, actor.user_id)

        logger.info(f"Invite issued for community {community_id} by user {actor.user_id}")
        return issued

    async def get_membership_role(self, user_id: int, community_id: int) -> Optional[CommunityRole]:
        async with self._read() as session:
            return await get_membership_role(session, user_id, community_id)
