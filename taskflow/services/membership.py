"""
Membership resolver - answers "which projects does this user belong to?"

The realtime layer never caches these answers: every call reads the
database, so a connection's room memberships always reflect the
membership records as of the moment they were applied.
"""

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.database import get_db_context
from taskflow.models.project import Project, ProjectMember
from taskflow.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectSummary:
    """Project id and name, as needed by room join replies."""

    project_id: int
    project_name: str


@dataclass(frozen=True)
class Membership:
    """A user's membership in one project, with what the join protocol needs."""

    project_id: int
    project_name: str
    project_active: bool
    user_id: int
    user_profile: dict = field(default_factory=dict)


class MembershipResolver(Protocol):
    """Collaborator interface consumed by the room broadcaster."""

    async def list_active_projects_for(self, user_id: int) -> list[ProjectSummary]: ...

    async def is_member(self, project_id: int, user_id: int) -> bool: ...

    async def get_membership(self, project_id: int, user_id: int) -> Membership | None: ...

    async def list_member_ids(self, project_id: int) -> list[int]: ...


class SqlMembershipResolver:
    """
    Membership resolver backed by the project_members table.

    Opens a short-lived session per query so it can be called from
    long-lived WebSocket handlers without pinning a connection.
    """

    def __init__(
        self,
        session_context: Callable[[], AbstractAsyncContextManager[AsyncSession]] = get_db_context,
    ):
        self._session_context = session_context

    async def list_active_projects_for(self, user_id: int) -> list[ProjectSummary]:
        """Active projects the user is a member of, ordered by id."""
        async with self._session_context() as db:
            result = await db.execute(
                select(Project.id, Project.name)
                .join(ProjectMember, ProjectMember.project_id == Project.id)
                .where(ProjectMember.user_id == user_id)
                .where(Project.active.is_(True))
                .order_by(Project.id)
            )
            rows = result.all()

        logger.debug("User %s has %d active projects", user_id, len(rows))
        return [ProjectSummary(project_id=row.id, project_name=row.name) for row in rows]

    async def get_membership(self, project_id: int, user_id: int) -> Membership | None:
        """Membership record joined with its project and user, or None."""
        async with self._session_context() as db:
            result = await db.execute(
                select(Project, User)
                .join(ProjectMember, ProjectMember.project_id == Project.id)
                .join(User, User.id == ProjectMember.user_id)
                .where(ProjectMember.project_id == project_id)
                .where(ProjectMember.user_id == user_id)
            )
            row = result.first()

        if row is None:
            return None

        project, user = row
        return Membership(
            project_id=project.id,
            project_name=project.name,
            project_active=bool(project.active),
            user_id=user.id,
            user_profile=user.to_presence_dict(),
        )

    async def is_member(self, project_id: int, user_id: int) -> bool:
        async with self._session_context() as db:
            result = await db.execute(
                select(ProjectMember.id)
                .where(ProjectMember.project_id == project_id)
                .where(ProjectMember.user_id == user_id)
            )
            return result.scalar_one_or_none() is not None

    async def list_member_ids(self, project_id: int) -> list[int]:
        """All user ids with a membership record in the project."""
        async with self._session_context() as db:
            result = await db.execute(
                select(ProjectMember.user_id)
                .where(ProjectMember.project_id == project_id)
                .order_by(ProjectMember.user_id)
            )
            return list(result.scalars().all())
