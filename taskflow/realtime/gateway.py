"""
Event gateway for sending realtime updates from request handlers.

Usage in routers:
    from taskflow.realtime.gateway import EventGateway, get_event_gateway

    @router.put("/projects/{project_id}")
    async def update_project(
        ...,
        db: AsyncSession = Depends(get_db),
        gateway: EventGateway = Depends(get_event_gateway),
    ):
        ...
        await db.commit()

        # Only after the commit succeeded:
        await gateway.project_updated(project, project_id)

Notifications are best-effort: a failure to fan out is logged and never
raised into the request handler, whose mutation has already committed.
"""

import logging
from collections.abc import Mapping
from typing import Any

from fastapi import Request

from taskflow.models.project import Project
from taskflow.realtime.broadcaster import RoomBroadcaster
from taskflow.realtime.events import (
    MemberAdded,
    MemberRemoved,
    ProjectCreated,
    ProjectDeleted,
    ProjectMembershipJoined,
    ProjectMembershipLeft,
    ProjectUpdated,
)

logger = logging.getLogger(__name__)


def serialize_project(project: Project | Mapping[str, Any]) -> dict[str, Any]:
    """Wire representation of a project (ORM instance or already-built dict)."""
    if isinstance(project, Mapping):
        return dict(project)

    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "active": project.active,
        "createdBy": project.created_by,
        "createdAt": project.created_at,
        "updatedAt": project.updated_at,
    }


class EventGateway:
    """One coroutine per committed domain mutation."""

    def __init__(self, broadcaster: RoomBroadcaster):
        self.broadcaster = broadcaster

    async def project_created(self, project: Project | Mapping[str, Any], user_id: int) -> None:
        """Only the creator's own connections hear about a new project."""
        self.broadcaster.emit_to_user(
            user_id,
            ProjectCreated(project=serialize_project(project), emitted_by=user_id),
        )
        logger.info("Emitted project:created for user %s", user_id)

    async def project_updated(self, project: Project | Mapping[str, Any], project_id: int) -> None:
        await self._to_members(project_id, ProjectUpdated(project=serialize_project(project)))

    async def project_deleted(self, project_id: int, user_id: int) -> None:
        """
        Notify members of a deletion. Call before the membership rows are
        removed (or with soft delete) so the members can still be resolved.
        """
        await self._to_members(project_id, ProjectDeleted(project_id=project_id, emitted_by=user_id))
        self.broadcaster.evict_from_project_room(project_id)

    async def member_added(
        self, project_id: int, user_id: int, member: Mapping[str, Any]
    ) -> None:
        """
        Notify all members (the new one included) and send the new member a
        distinguished ``project:joined`` on their private room.
        """
        await self._to_members(project_id, MemberAdded(project_id=project_id, member=dict(member)))
        self.broadcaster.emit_to_user(
            user_id,
            ProjectMembershipJoined(project_id=project_id, project=dict(member)),
        )

    async def member_removed(self, project_id: int, user_id: int) -> None:
        """
        Notify remaining members, tell the removed user with ``project:left``
        and take their connections out of the project room.
        """
        await self._to_members(project_id, MemberRemoved(project_id=project_id, user_id=user_id))
        self.broadcaster.emit_to_user(user_id, ProjectMembershipLeft(project_id=project_id))
        self.broadcaster.evict_from_project_room(project_id, user_id=user_id)

    async def _to_members(self, project_id: int, event) -> None:
        try:
            await self.broadcaster.broadcast_to_project_members(project_id, event)
        except Exception:
            logger.exception("Failed to emit %s to members of project %s", event.event.value, project_id)


def get_event_gateway(request: Request) -> EventGateway:
    """FastAPI dependency returning the application's event gateway."""
    return request.app.state.event_gateway
