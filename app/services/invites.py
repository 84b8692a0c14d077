"""Invite issuing and resolution for private communities."""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.community_invite import CommunityInvite
from app.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

# 32 random bytes -> 256 bits, url-safe base64.
TOKEN_BYTES = 32


def new_invite_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


class InviteTokenCollisionError(RuntimeError):
    """Two consecutive generated tokens already existed."""


@dataclass(frozen=True)
class IssuedInvite:
    community_id: int
    token: str
    link: str
    expires_at: datetime


class InviteIssuer:
    """Generates and looks up time-boxed invite tokens.

    Holds no session of its own: the membership manager passes in the
    session of the transaction the invite belongs to.
    """

    def __init__(
        self,
        ttl: Optional[timedelta] = None,
        base_url: Optional[str] = None,
        token_factory: Callable[[], str] = new_invite_token,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ttl = ttl if ttl is not None else timedelta(days=settings.INVITE_TTL_DAYS)
        self.base_url = (base_url or settings.INVITE_BASE_URL).rstrip("/")
        self._token_factory = token_factory
        self._clock = clock

    def link_for(self, token: str) -> str:
        return f"{self.base_url}/{token}"

    async def issue(self, session: AsyncSession, community_id: int, issued_by: int) -> IssuedInvite:
        """Persist a fresh invite; regenerate once on a token collision."""
        expires_at = self._clock() + self.ttl
        for attempt in (1, 2):
            token = self._token_factory()
            invite = CommunityInvite(
                token=token,
                community_id=community_id,
                issued_by=issued_by,
                expires_at=expires_at,
            )
            try:
                async with session.begin_nested():
                    session.add(invite)
            except IntegrityError:
                logger.warning(f"Invite token collision for community {community_id} (attempt {attempt})")
                continue
            return IssuedInvite(
                community_id=community_id,
                token=token,
                link=self.link_for(token),
                expires_at=expires_at,
            )
        raise InviteTokenCollisionError("Could not generate a unique invite token")

    async def resolve(self, session: AsyncSession, token: str) -> Optional[CommunityInvite]:
        """Return the invite for ``token`` if it exists and has not expired."""
        result = await session.execute(
            select(CommunityInvite).where(CommunityInvite.token == token)
        )
        invite = result.scalar_one_or_none()
        if invite is None or as_utc(invite.expires_at) <= self._clock():
            return None
        return invite
