"""
Project presence API endpoints.

Read-only HTTP view of who is connected to a project room, for clients
that need the list without holding a socket open.
"""

from fastapi import APIRouter, Depends, Request
from pydantic import Field

from taskflow.exceptions import ForbiddenError
from taskflow.middleware.auth import get_current_identity
from taskflow.realtime.events import PresenceEntry, WireModel, project_room, utc_timestamp
from taskflow.services.auth import Identity

router = APIRouter(tags=["presence"])


class ProjectPresenceResponse(WireModel):
    """Connected users of a project room."""

    project_id: int = Field(alias="projectId")
    users: list[PresenceEntry]
    count: int
    timestamp: str


@router.get(
    "/projects/{project_id}/presence",
    response_model=ProjectPresenceResponse,
    response_model_by_alias=True,
)
async def get_project_presence(
    project_id: int,
    request: Request,
    identity: Identity = Depends(get_current_identity),
):
    """
    List users currently connected to a project.

    Only members of the project may see who is in it.
    """
    resolver = request.app.state.membership_resolver
    if not await resolver.is_member(project_id, identity.user_id):
        raise ForbiddenError("You do not have access to this project")

    users = request.app.state.registry.list_presence(project_room(project_id))
    return ProjectPresenceResponse(
        project_id=project_id,
        users=users,
        count=len(users),
        timestamp=utc_timestamp(),
    )
