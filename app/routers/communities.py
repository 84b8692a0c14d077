"""Communities router – community CRUD, membership, roles and invites."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_actor, get_membership_manager
from app.models.community_membership import CommunityRole
from app.models.user import User
from app.routers.auth import get_current_user
from app.schemas.community import (
    CommunityCreate,
    CommunityOut,
    CommunityPage,
    CommunityUpdate,
    InviteOut,
    JoinRequest,
    LeaveOut,
    MemberOut,
    MemberPage,
    MembershipOut,
    OwnershipTransfer,
    RoleUpdate,
)
from app.services import communities as queries
from app.services.base import Page
from app.services.communities import CommunitySummary
from app.services.membership import AuthenticatedActor, LeaveOutcome, MembershipManager, get_membership_role

router = APIRouter(prefix="/communities", tags=["communities"])

SortBy = Literal["name", "created_at", "member_count"]
SortOrder = Literal["asc", "desc"]


def _community_out(summary: CommunitySummary) -> CommunityOut:
    out = CommunityOut.model_validate(summary.community)
    out.member_count = summary.member_count
    out.role = summary.role
    return out


def _community_page(page: Page) -> CommunityPage:
    return CommunityPage(
        communities=[_community_out(s) for s in page.items],
        total=page.total,
        page=page.page,
        total_pages=page.total_pages,
    )


# ═══════════════════════════════════════════════════════════════
#  Browse & read
# ═══════════════════════════════════════════════════════════════

@router.get("", response_model=CommunityPage)
async def list_communities(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: SortBy = "created_at",
    sort_order: SortOrder = "desc",
    db: AsyncSession = Depends(get_db),
):
    """Browse every community."""
    result = await queries.list_communities(db, search, page, limit, sort_by, sort_order)
    return _community_page(result)


@router.get("/mine", response_model=CommunityPage)
async def list_my_communities(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: SortBy = "created_at",
    sort_order: SortOrder = "desc",
    actor: AuthenticatedActor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Communities the caller belongs to, with the caller's role."""
    result = await queries.list_user_communities(
        db, actor.user_id, search, page, limit, sort_by, sort_order
    )
    return _community_page(result)


@router.get("/{community_id}", response_model=CommunityOut)
async def get_community(
    community_id: int,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Public detail; ``role`` is filled in for a signed-in member."""
    summary = await queries.get_community(db, community_id)
    if current_user is not None:
        summary.role = await get_membership_role(db, current_user.id, community_id)
    return _community_out(summary)


@router.get("/{community_id}/members", response_model=MemberPage)
async def list_members(
    community_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: AuthenticatedActor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await queries.list_members(db, actor.user_id, community_id, page, limit)
    return MemberPage(
        members=[
            MemberOut(
                community_id=m.community_id,
                user_id=m.user_id,
                role=m.role,
                joined_at=m.joined_at,
                full_name=u.full_name,
                email=u.email,
            )
            for m, u in result.items
        ],
        total=result.total,
        page=result.page,
        total_pages=result.total_pages,
    )


# ═══════════════════════════════════════════════════════════════
#  Community lifecycle
# ═══════════════════════════════════════════════════════════════

@router.post("", response_model=CommunityOut, status_code=status.HTTP_201_CREATED)
async def create_community(
    payload: CommunityCreate,
    actor: AuthenticatedActor = Depends(get_actor),
    manager: MembershipManager = Depends(get_membership_manager),
):
    """Create a community; the caller becomes its OWNER."""
    community = await manager.create_community(
        actor, payload.name, payload.description, payload.is_private
    )
    return _community_out(CommunitySummary(community=community, member_count=1, role=CommunityRole.OWNER))


@router.patch("/{community_id}", response_model=CommunityOut)
async def update_community(
    community_id: int,
    payload: CommunityUpdate,
    actor: AuthenticatedActor = Depends(get_actor),
    manager: MembershipManager = Depends(get_membership_manager),
):
    community = await manager.update_community(actor, community_id, **payload.model_dump(exclude_unset=True))
    return CommunityOut.model_validate(community)


@router.delete("/{community_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_community(
    community_id: int,
    actor: AuthenticatedActor = Depends(get_actor),
    manager: MembershipManager = Depends(get_membership_manager),
):
    await manager.delete_community(actor, community_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ═══════════════════════════════════════════════════════════════
#  Membership
# ═══════════════════════════════════════════════════════════════

@router.post("/{community_id}/join", response_model=MembershipOut, status_code=status.HTTP_201_CREATED)
async def join_community(
    community_id: int,
    payload: Optional[JoinRequest] = None,
    actor: AuthenticatedActor = Depends(get_actor),
    manager: MembershipManager = Depends(get_membership_manager),
):
    token = payload.invite_token if payload else None
    return await manager.join(actor, community_id, token)


@router.post("/invites/{token}/join", response_model=MembershipOut, status_code=status.HTTP_201_CREATED)
async def join_with_invite(
    token: str,
    actor: AuthenticatedActor = Depends(get_actor),
    manager: MembershipManager = Depends(get_membership_manager),
):
    """Redeem a shared invite link."""
    return await manager.join_with_invite(actor, token)


@router.post("/{community_id}/leave", response_model=LeaveOut)
async def leave_community(
    community_id: int,
    actor: AuthenticatedActor = Depends(get_actor),
    manager: MembershipManager = Depends(get_membership_manager),
):
    outcome = await manager.leave(actor, community_id)
    if outcome is LeaveOutcome.COMMUNITY_DELETED:
        return LeaveOut(message="Community deleted as you left", community_deleted=True)
    return LeaveOut(message="Left the community successfully", community_deleted=False)


@router.put("/{community_id}/members/{user_id}/role", response_model=MembershipOut)
async def update_member_role(
    community_id: int,
    user_id: int,
    payload: RoleUpdate,
    actor: AuthenticatedActor = Depends(get_actor),
    manager: MembershipManager = Depends(get_membership_manager),
):
    return await manager.update_member_role(actor, community_id, user_id, payload.role)


@router.delete("/{community_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    community_id: int,
    user_id: int,
    actor: AuthenticatedActor = Depends(get_actor),
    manager: MembershipManager = Depends(get_membership_manager),
):
    await manager.remove_member(actor, community_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{community_id}/transfer-ownership", response_model=MembershipOut)
async def transfer_ownership(
    community_id: int,
    payload: OwnershipTransfer,
    actor: AuthenticatedActor = Depends(get_actor),
    manager: MembershipManager = Depends(get_membership_manager),
):
    return await manager.transfer_ownership(actor, community_id, payload.user_id)


@router.post("/{community_id}/invite", response_model=InviteOut, status_code=status.HTTP_201_CREATED)
async def issue_invite(
    community_id: int,
    actor: AuthenticatedActor = Depends(get_actor),
    manager: MembershipManager = Depends(get_membership_manager),
):
    issued = await manager.issue_invite(actor, community_id)
    return InviteOut(
        community_id=issued.community_id,
        token=issued.token,
        invite_link=issued.link,
        expires_at=issued.expires_at,
    )
