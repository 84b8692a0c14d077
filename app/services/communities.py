"""Read-only community queries: browse, "my communities", detail, members.

None of these go through the authorization guard; membership-scoped reads
filter on membership existence instead.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import ForbiddenError, NotFoundError
from app.models.community import Community
from app.models.community_membership import CommunityMember, CommunityRole
from app.models.user import User
from app.services.base import Page
from app.services.membership import get_membership_role
from app.services.permissions import NOT_A_MEMBER

SORTABLE = {"name", "created_at", "member_count"}


@dataclass
class CommunitySummary:
    community: Community
    member_count: int
    role: Optional[CommunityRole] = None


def _member_count_column():
    return (
        select(func.count(CommunityMember.user_id))
        .where(CommunityMember.community_id == Community.id)
        .correlate(Community)
        .scalar_subquery()
        .label("member_count")
    )


def _search_filter(search: Optional[str]):
    if not search:
        return None
    pattern = f"%{search}%"
    return or_(Community.name.ilike(pattern), Community.description.ilike(pattern))


def _ordering(sort_by: str, sort_order: str, member_count):
    if sort_by not in SORTABLE:
        sort_by = "created_at"
    column = member_count if sort_by == "member_count" else getattr(Community, sort_by)
    direction = asc if sort_order == "asc" else desc
    return direction(column), Community.id


async def list_communities(
    session: AsyncSession,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Page[CommunitySummary]:
    """Public browse across every community."""
    member_count = _member_count_column()
    stmt = select(Community, member_count)
    count_stmt = select(func.count(Community.id))

    condition = _search_filter(search)
    if condition is not None:
        stmt = stmt.where(condition)
        count_stmt = count_stmt.where(condition)

    stmt = stmt.order_by(*_ordering(sort_by, sort_order, member_count))
    stmt = stmt.offset((page - 1) * limit).limit(limit)

    rows = (await session.execute(stmt)).all()
    total = (await session.execute(count_stmt)).scalar() or 0
    return Page(
        items=[CommunitySummary(community=c, member_count=n) for c, n in rows],
        total=total,
        page=page,
        limit=limit,
    )


async def list_user_communities(
    session: AsyncSession,
    user_id: int,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Page[CommunitySummary]:
    """Communities ``user_id`` belongs to, each with the user's role."""
    member_count = _member_count_column()
    stmt = (
        select(Community, member_count, CommunityMember.role)
        .join(CommunityMember, CommunityMember.community_id == Community.id)
        .where(CommunityMember.user_id == user_id)
    )
    count_stmt = (
        select(func.count(Community.id))
        .join(CommunityMember, CommunityMember.community_id == Community.id)
        .where(CommunityMember.user_id == user_id)
    )

    condition = _search_filter(search)
    if condition is not None:
        stmt = stmt.where(condition)
        count_stmt = count_stmt.where(condition)

    stmt = stmt.order_by(*_ordering(sort_by, sort_order, member_count))
    stmt = stmt.offset((page - 1) * limit).limit(limit)

    rows = (await session.execute(stmt)).all()
    total = (await session.execute(count_stmt)).scalar() or 0
    return Page(
        items=[CommunitySummary(community=c, member_count=n, role=r) for c, n, r in rows],
        total=total,
        page=page,
        limit=limit,
    )


async def get_community(session: AsyncSession, community_id: int) -> CommunitySummary:
    result = await session.execute(
        select(Community, _member_count_column()).where(Community.id == community_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError("Community not found")
    community, member_count = row
    return CommunitySummary(community=community, member_count=member_count)


async def list_members(
    session: AsyncSession,
    user_id: int,
    community_id: int,
    page: int = 1,
    limit: int = 10,
) -> Page[Tuple[CommunityMember, User]]:
    """Members of a community; only visible to its own members."""
    exists = await session.execute(select(Community.id).where(Community.id == community_id))
    if exists.scalar_one_or_none() is None:
        raise NotFoundError("Community not found")
    if await get_membership_role(session, user_id, community_id) is None:
        raise ForbiddenError(NOT_A_MEMBER)

    result = await session.execute(
        select(CommunityMember, User)
        .join(User, CommunityMember.user_id == User.id)
        .where(CommunityMember.community_id == community_id)
        .order_by(CommunityMember.joined_at, CommunityMember.user_id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    total = (
        await session.execute(
            select(func.count(CommunityMember.user_id)).where(
                CommunityMember.community_id == community_id
            )
        )
    ).scalar() or 0
    return Page(items=[tuple(row) for row in result.all()], total=total, page=page, limit=limit)
