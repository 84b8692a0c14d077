"""Community Pydantic schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.community_membership import CommunityRole


class CommunityCreate(BaseModel):
    name: str = Field(min_length=3, max_length=50)
    description: str = Field(min_length=10, max_length=500)
    is_private: bool = False


class CommunityUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=50)
    description: Optional[str] = Field(None, min_length=10, max_length=500)
    is_private: Optional[bool] = None


class CommunityOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_private: bool
    created_by: int
    created_at: Optional[datetime] = None
    member_count: Optional[int] = None
    role: Optional[CommunityRole] = None

    model_config = {"from_attributes": True}


class CommunityPage(BaseModel):
    communities: List[CommunityOut]
    total: int
    page: int
    total_pages: int


class JoinRequest(BaseModel):
    invite_token: Optional[str] = None


class LeaveOut(BaseModel):
    message: str
    community_deleted: bool


class MembershipOut(BaseModel):
    community_id: int
    user_id: int
    role: CommunityRole
    joined_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MemberOut(MembershipOut):
    full_name: str
    email: str


class MemberPage(BaseModel):
    members: List[MemberOut]
    total: int
    page: int
    total_pages: int


class RoleUpdate(BaseModel):
    role: CommunityRole


class OwnershipTransfer(BaseModel):
    user_id: int


class InviteOut(BaseModel):
    community_id: int
    token: str
    invite_link: str
    expires_at: datetime
