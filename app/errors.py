"""
Community Hub – domain error taxonomy.

Every membership, project and task operation reports failure by raising
one of these.  The HTTP layer maps ``kind`` onto a status code; the core
never deals in status codes itself.
"""

import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"
    CONFLICT = "Conflict"
    VALIDATION = "ValidationError"


class CommunityError(Exception):
    """Base error: a discriminant plus a human-readable reason."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, reason: str, kind: Optional[ErrorKind] = None):
        super().__init__(reason)
        self.reason = reason
        if kind is not None:
            self.kind = kind

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value}: {self.reason!r})"


class NotFoundError(CommunityError):
    kind = ErrorKind.NOT_FOUND


class ForbiddenError(CommunityError):
    kind = ErrorKind.FORBIDDEN


class ConflictError(CommunityError):
    kind = ErrorKind.CONFLICT


class ValidationError(CommunityError):
    kind = ErrorKind.VALIDATION
