"""Community Membership model — one role per (community, user) pair."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.utils.clock import utcnow


class CommunityRole(str, enum.Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    DEVELOPER_III = "DEVELOPER_III"
    DEVELOPER_II = "DEVELOPER_II"
    DEVELOPER_I = "DEVELOPER_I"
    VIEWER = "VIEWER"  # joins land here; same permissions as DEVELOPER_I


class CommunityMember(Base):
    __tablename__ = "community_members"

    # Composite key doubles as the one-role-per-pair constraint.
    community_id: Mapped[int] = mapped_column(ForeignKey("communities.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    role: Mapped[CommunityRole] = mapped_column(Enum(CommunityRole), default=CommunityRole.VIEWER, nullable=False)

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
