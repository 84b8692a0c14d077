"""
Per-request collaborators for the routers: the caller as an
``AuthenticatedActor`` and the services bound to the app's session factory.
"""

from fastapi import Depends, Request

from app.models.user import User
from app.routers.auth import require_user
from app.services.membership import AuthenticatedActor, MembershipManager
from app.services.projects import ProjectService
from app.services.tasks import TaskService


def get_actor(current_user: User = Depends(require_user)) -> AuthenticatedActor:
    return AuthenticatedActor(user_id=current_user.id)


def get_membership_manager(request: Request) -> MembershipManager:
    return request.app.state.membership_manager


def get_project_service(request: Request) -> ProjectService:
    return request.app.state.project_service


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service
