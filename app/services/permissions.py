"""
Role → permission table and the authorization guard built on it.

The table is the only place that knows what a role may do.  Callers ask
``authorize``/``require`` with the set of permissions an action needs;
nobody compares roles directly.
"""

import enum
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Union

from app.errors import ForbiddenError
from app.models.community_membership import CommunityRole


class Permission(str, enum.Enum):
    CREATE_COMMUNITY = "CREATE_COMMUNITY"
    EDIT_COMMUNITY = "EDIT_COMMUNITY"
    DELETE_COMMUNITY = "DELETE_COMMUNITY"
    MANAGE_COMMUNITY_SETTINGS = "MANAGE_COMMUNITY_SETTINGS"
    TRANSFER_OWNERSHIP = "TRANSFER_OWNERSHIP"
    ADD_MEMBER = "ADD_MEMBER"
    REMOVE_MEMBER = "REMOVE_MEMBER"
    CHANGE_MEMBER_ROLE = "CHANGE_MEMBER_ROLE"
    CREATE_PROJECT = "CREATE_PROJECT"
    EDIT_PROJECT = "EDIT_PROJECT"
    DELETE_PROJECT = "DELETE_PROJECT"
    CREATE_TASK = "CREATE_TASK"
    EDIT_TASK = "EDIT_TASK"
    DELETE_TASK = "DELETE_TASK"
    ASSIGN_TASK = "ASSIGN_TASK"
    VIEW_ONLY = "VIEW_ONLY"


# ── Nested permission sets, lowest tier first ──
_DEVELOPER_I = frozenset({
    Permission.VIEW_ONLY,
    Permission.CREATE_TASK,
    Permission.EDIT_TASK,
})
_DEVELOPER_II = _DEVELOPER_I | {Permission.DELETE_TASK}
_DEVELOPER_III = _DEVELOPER_II | {Permission.EDIT_PROJECT}
_MANAGER = _DEVELOPER_III | {
    Permission.CREATE_PROJECT,
    Permission.ASSIGN_TASK,
}
_ADMIN = _MANAGER | {
    Permission.DELETE_PROJECT,
    Permission.ADD_MEMBER,
    Permission.REMOVE_MEMBER,
    Permission.CHANGE_MEMBER_ROLE,
    Permission.EDIT_COMMUNITY,
    Permission.DELETE_COMMUNITY,
    Permission.MANAGE_COMMUNITY_SETTINGS,
}
_OWNER = _ADMIN | {
    Permission.CREATE_COMMUNITY,
    Permission.TRANSFER_OWNERSHIP,
}

ROLE_PERMISSIONS = {
    CommunityRole.OWNER: _OWNER,
    CommunityRole.ADMIN: _ADMIN,
    CommunityRole.MANAGER: _MANAGER,
    CommunityRole.DEVELOPER_III: _DEVELOPER_III,
    CommunityRole.DEVELOPER_II: _DEVELOPER_II,
    CommunityRole.DEVELOPER_I: _DEVELOPER_I,
    CommunityRole.VIEWER: _DEVELOPER_I,
}


def check_role_table(table) -> None:
    """Every role must resolve to a non-empty set."""
    if set(table) != set(CommunityRole):
        raise RuntimeError("role table is not total")
    if not all(table.values()):
        raise RuntimeError("role with an empty permission set")


check_role_table(ROLE_PERMISSIONS)


def permissions_of(role: Union[CommunityRole, str]) -> FrozenSet[Permission]:
    """Return the permission set for ``role``; unknown roles raise ValueError."""
    return ROLE_PERMISSIONS[CommunityRole(role)]


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = Decision(True)
NOT_A_MEMBER = "You are not a member of this community"


def authorize(role: Optional[CommunityRole], required: Iterable[Permission]) -> Decision:
    """Allow iff ``role`` is present and grants every permission in ``required``."""
    if role is None:
        return Decision(False, NOT_A_MEMBER)
    missing = set(required) - permissions_of(role)
    if missing:
        names = ", ".join(sorted(p.value for p in missing))
        return Decision(False, f"Insufficient permissions: requires {names}")
    return ALLOWED


def require(role: Optional[CommunityRole], required: Iterable[Permission]) -> None:
    """Like ``authorize`` but raises ForbiddenError on denial."""
    decision = authorize(role, required)
    if not decision:
        raise ForbiddenError(decision.reason)
