"""
Community Hub – SQLAlchemy ORM models package.

Imports all model classes so the app can discover them for
``Base.metadata.create_all`` through a single ``import app.models``.
"""

from app.models.user import User                                   # noqa: F401
from app.models.community import Community                         # noqa: F401
from app.models.community_membership import CommunityMember        # noqa: F401
from app.models.community_invite import CommunityInvite            # noqa: F401
from app.models.project import Project                             # noqa: F401
from app.models.task import Task                                   # noqa: F401
