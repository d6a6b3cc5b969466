"""
Room Broadcaster

Decides who receives what:
- auto-joins a new connection to the rooms of its active projects
- authorizes explicit join requests against the membership resolver
- computes presence snapshots for project rooms
- fans domain events out to project rooms and members' private rooms

Membership is always queried fresh. Every resolver call is a suspension
point during which the connection may have closed, so results are only
applied after re-checking that the registry still knows the connection.
"""

import logging

from taskflow.exceptions import AccessDeniedError, RealtimeError
from taskflow.realtime.events import (
    ConnectedUsers,
    ConnectionReady,
    ErrorEvent,
    JoinedProject,
    ProjectJoinReply,
    ProjectsJoined,
    RealtimeEvent,
    UserJoined,
    UserLeft,
    parse_project_room,
    project_room,
    user_room,
)
from taskflow.realtime.registry import Connection, ConnectionRegistry
from taskflow.services.membership import MembershipResolver

logger = logging.getLogger(__name__)


class RoomBroadcaster:
    """Join/leave, presence and fan-out on top of a ConnectionRegistry."""

    def __init__(self, registry: ConnectionRegistry, resolver: MembershipResolver):
        self.registry = registry
        self.resolver = resolver

    # ---------------------------------------------------------
    # Connection lifecycle
    # ---------------------------------------------------------

    def register(self, connection: Connection) -> Connection:
        """Register a freshly authenticated connection (joins its ``user:`` room)."""
        return self.registry.register(connection)

    async def connect(self, connection: Connection) -> int | None:
        """Register a connection and auto-join its projects."""
        self.register(connection)
        return await self.auto_join(connection)

    async def auto_join(self, connection: Connection) -> int | None:
        """
        Join every active project room of the connection's user, then send
        ``connection:ready``.

        Returns:
            Number of project rooms joined, or None if the query failed or the
            connection closed while it was in flight.
        """
        try:
            projects = await self.resolver.list_active_projects_for(connection.user_id)
        except Exception:
            logger.exception("Auto-join failed for user %s", connection.user_id)
            self.send_error(connection.id, "AUTO_JOIN_ERROR", "Failed to join projects")
            return None

        if not self.registry.is_registered(connection.id):
            logger.debug("Connection %s closed before auto-join completed", connection.id)
            return None

        for project in projects:
            self.registry.join_room(connection.id, project_room(project.project_id))
            logger.debug(
                "Auto-joined %s to project %s (%s)",
                connection.id,
                project.project_id,
                project.project_name,
            )

        logger.info("User %s auto-joined %d projects", connection.user_id, len(projects))

        self.registry.emit_to_connection(
            connection.id,
            ConnectionReady(user_id=connection.user_id, projects_joined=len(projects)).to_message(),
        )
        return len(projects)

    def disconnect(self, connection_id: str) -> Connection | None:
        """
        Discard a closed connection and tell the other occupants of each
        project room it was in that its user left.

        The notification is sent even if the same user still has other
        connections in the room; presence queries remain accurate because
        they are computed from the registry.
        """
        connection = self.registry.unregister(connection_id)
        if connection is None:
            return None

        for room_id in sorted(connection.rooms):
            project_id = parse_project_room(room_id)
            if project_id is None:
                continue
            try:
                self.registry.emit_to_room(
                    room_id,
                    UserLeft(project_id=project_id, user_id=connection.user_id).to_message(),
                )
            except Exception:
                logger.exception("Failed to notify %s of disconnect", room_id)

        return connection

    # ---------------------------------------------------------
    # Client requests
    # ---------------------------------------------------------

    async def join_project(self, connection_id: str, project_id: int) -> bool:
        """
        Handle an explicit join request.

        Raises:
            AccessDeniedError: not a member, or the project is inactive.
        """
        connection = self._require(connection_id)

        membership = await self.resolver.get_membership(project_id, connection.user_id)
        if membership is None or not membership.project_active:
            logger.info("User %s denied access to project %s", connection.user_id, project_id)
            raise AccessDeniedError()

        if not self.registry.is_registered(connection_id):
            logger.debug("Connection %s closed during join of project %s", connection_id, project_id)
            return False

        room_id = project_room(project_id)
        self.registry.join_room(connection_id, room_id)
        logger.info("User %s joined %s", connection.user_id, room_id)

        self.registry.emit_to_room(
            room_id,
            UserJoined(project_id=project_id, user=membership.user_profile).to_message(),
            exclude=connection_id,
        )
        self.registry.emit_to_connection(
            connection_id,
            ProjectJoinReply(
                project_id=project_id,
                project_name=membership.project_name,
                connected_users=self.registry.list_presence(room_id),
            ).to_message(),
        )
        return True

    async def join_all_projects(self, connection_id: str) -> list[JoinedProject] | None:
        """Legacy bulk join: every active project of the caller."""
        connection = self._require(connection_id)

        projects = await self.resolver.list_active_projects_for(connection.user_id)

        if not self.registry.is_registered(connection_id):
            logger.debug("Connection %s closed during bulk join", connection_id)
            return None

        joined: list[JoinedProject] = []
        user = {"id": connection.user_id, "email": connection.user_email}
        for project in projects:
            room_id = project_room(project.project_id)
            self.registry.join_room(connection_id, room_id)
            joined.append(JoinedProject(id=project.project_id, name=project.project_name))
            self.registry.emit_to_room(
                room_id,
                UserJoined(project_id=project.project_id, user=user).to_message(),
                exclude=connection_id,
            )

        self.registry.emit_to_connection(connection_id, ProjectsJoined(projects=joined).to_message())
        logger.info("User %s bulk-joined %d projects", connection.user_id, len(joined))
        return joined

    def leave_project(self, connection_id: str, project_id: int) -> None:
        """Leave a project room. Always succeeds; remaining occupants are notified."""
        connection = self.registry.get(connection_id)
        if connection is None:
            return

        room_id = project_room(project_id)
        self.registry.leave_room(connection_id, room_id)
        logger.info("User %s left %s", connection.user_id, room_id)

        self.registry.emit_to_room(
            room_id,
            UserLeft(project_id=project_id, user_id=connection.user_id).to_message(),
            exclude=connection_id,
        )

    async def send_connected_users(self, connection_id: str, project_id: int) -> None:
        """Reply with the presence snapshot of a project room (members only)."""
        connection = self._require(connection_id)

        if not await self.resolver.is_member(project_id, connection.user_id):
            raise AccessDeniedError()

        users = self.registry.list_presence(project_room(project_id))
        self.registry.emit_to_connection(
            connection_id,
            ConnectedUsers(project_id=project_id, users=users, count=len(users)).to_message(),
        )

    def send_error(self, connection_id: str, code: str, message: str) -> None:
        """Reply to the requesting connection only."""
        self.registry.emit_to_connection(connection_id, ErrorEvent(message=message, code=code).to_message())

    def _require(self, connection_id: str) -> Connection:
        connection = self.registry.get(connection_id)
        if connection is None:
            raise RealtimeError("Connection is closed", code="CONNECTION_CLOSED")
        return connection

    # ---------------------------------------------------------
    # Fan-out
    # ---------------------------------------------------------

    def emit_to_user(self, user_id: int, event: RealtimeEvent) -> int:
        """Deliver to every connection of a user."""
        return self.registry.emit_to_room(user_room(user_id), event.to_message())

    def emit_to_project_room(
        self, project_id: int, event: RealtimeEvent, exclude: str | None = None
    ) -> int:
        """Deliver to connections currently viewing a project."""
        return self.registry.emit_to_room(project_room(project_id), event.to_message(), exclude=exclude)

    async def broadcast_to_project_members(self, project_id: int, event: RealtimeEvent) -> list[int]:
        """
        Deliver an event to everyone concerned by a project.

        1. Resolve current members (fresh query).
        2. Deliver to ``project:<id>`` (users viewing the project).
        3. Deliver to ``user:<member>`` for every member (users elsewhere,
           e.g. on the dashboard).

        A connection in both rooms receives the event twice; clients treat
        events as idempotent refresh hints.

        Returns:
            The member ids the event was addressed to.
        """
        member_ids = await self.resolver.list_member_ids(project_id)
        message = event.to_message()

        self.registry.emit_to_room(project_room(project_id), message)
        for member_id in member_ids:
            self.registry.emit_to_room(user_room(member_id), message)

        logger.info(
            "Broadcast %s to %d members of project %s",
            event.event.value,
            len(member_ids),
            project_id,
        )
        return member_ids

    def evict_from_project_room(self, project_id: int, user_id: int | None = None) -> int:
        """
        Remove connections from a project room after membership ended.

        With ``user_id`` only that user's connections leave; without it the
        room is emptied (project deleted).
        """
        room_id = project_room(project_id)
        evicted = 0
        for connection in self.registry.connections_in_room(room_id):
            if user_id is not None and connection.user_id != user_id:
                continue
            if self.registry.leave_room(connection.id, room_id):
                evicted += 1

        if evicted:
            logger.info("Evicted %d connections from %s", evicted, room_id)
        return evicted
