"""
Connection Registry

Tracks live WebSocket connections, the user each belongs to and the rooms
each has joined. A user may hold any number of simultaneous connections
(browser tabs, devices); rooms are computed from connection membership.

Rooms are not stored as records: a room exists while at least one
connection references it. Two room kinds are used:
- ``user:<id>``     private, every connection of that user
- ``project:<id>``  shared, connections of members viewing the project

All operations are synchronous and never await, so they cannot interleave
with each other on the event loop. Delivery enqueues onto each
connection's outbox; a writer task per connection drains it onto the
socket, which keeps per-room ordering equal to issue order.
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from taskflow.realtime.events import PresenceEntry, user_room

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Connection:
    """A single live transport session."""

    user_id: int
    user_email: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    rooms: set[str] = field(default_factory=set)
    outbox: asyncio.Queue = field(default_factory=asyncio.Queue)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def send(self, message: dict[str, Any]) -> None:
        """Queue a frame for this connection."""
        self.outbox.put_nowait(message)


class ConnectionRegistry:
    """
    Owns the connection and room-membership maps.

    One instance per application (stored on ``app.state``); nothing else
    reaches into its maps.
    """

    def __init__(self) -> None:
        # connection_id -> Connection
        self._connections: dict[str, Connection] = {}
        # room_id -> connection ids
        self._rooms: dict[str, set[str]] = defaultdict(set)
        # user_id -> connection ids
        self._users: dict[int, set[str]] = defaultdict(set)

    # ---------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------

    def register(self, connection: Connection) -> Connection:
        """
        Record a connection and enroll it in its user's private room.

        Registering the same connection id twice returns the already
        registered connection.
        """
        existing = self._connections.get(connection.id)
        if existing is not None:
            logger.debug("Connection %s already registered", connection.id)
            return existing

        self._connections[connection.id] = connection
        self._users[connection.user_id].add(connection.id)
        self.join_room(connection.id, user_room(connection.user_id))

        logger.info(
            "Connection registered: %s user=%s (%d live for user, %d total)",
            connection.id,
            connection.user_id,
            len(self._users[connection.user_id]),
            len(self._connections),
        )
        return connection

    def unregister(self, connection_id: str) -> Connection | None:
        """
        Discard all state for a connection.

        Returns the removed connection with its ``rooms`` as they were at
        close time, or None if the id is unknown (already closed).
        """
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return None

        for room_id in connection.rooms:
            self._discard_from_room(room_id, connection_id)

        user_connections = self._users.get(connection.user_id)
        if user_connections is not None:
            user_connections.discard(connection_id)
            if not user_connections:
                del self._users[connection.user_id]

        logger.info(
            "Connection unregistered: %s user=%s (%d total)",
            connection_id,
            connection.user_id,
            len(self._connections),
        )
        return connection

    # ---------------------------------------------------------
    # Room membership
    # ---------------------------------------------------------

    def join_room(self, connection_id: str, room_id: str) -> bool:
        """
        Add a room to the connection's membership set.

        Returns True if the connection is now in the room (including when it
        already was), False if the connection is unknown.
        """
        connection = self._connections.get(connection_id)
        if connection is None:
            return False

        if room_id not in connection.rooms:
            connection.rooms.add(room_id)
            self._rooms[room_id].add(connection_id)
            logger.debug("Connection %s joined %s", connection_id, room_id)
        return True

    def leave_room(self, connection_id: str, room_id: str) -> bool:
        """Remove a room from the connection's membership set. Returns True if it was a member."""
        connection = self._connections.get(connection_id)
        if connection is None or room_id not in connection.rooms:
            return False

        connection.rooms.discard(room_id)
        self._discard_from_room(room_id, connection_id)
        logger.debug("Connection %s left %s", connection_id, room_id)
        return True

    def _discard_from_room(self, room_id: str, connection_id: str) -> None:
        members = self._rooms.get(room_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._rooms[room_id]

    # ---------------------------------------------------------
    # Queries
    # ---------------------------------------------------------

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def is_registered(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def connections_in_room(self, room_id: str) -> list[Connection]:
        return [self._connections[cid] for cid in self._rooms.get(room_id, ())]

    def connections_for_user(self, user_id: int) -> list[Connection]:
        return [self._connections[cid] for cid in self._users.get(user_id, ())]

    def connection_count(self) -> int:
        return len(self._connections)

    def online_user_count(self) -> int:
        return len(self._users)

    def list_presence(self, room_id: str) -> list[PresenceEntry]:
        """
        Users with at least one connection in the room, each listed once
        with the number of their connections in that room.
        """
        entries: dict[int, PresenceEntry] = {}
        for connection in self.connections_in_room(room_id):
            entry = entries.get(connection.user_id)
            if entry is None:
                entries[connection.user_id] = PresenceEntry(
                    user_id=connection.user_id,
                    user_email=connection.user_email,
                    connection_count=1,
                )
            else:
                entry.connection_count += 1

        return sorted(entries.values(), key=lambda e: e.user_id)

    # ---------------------------------------------------------
    # Delivery
    # ---------------------------------------------------------

    def emit_to_room(
        self,
        room_id: str,
        message: dict[str, Any],
        exclude: str | None = None,
    ) -> int:
        """
        Queue a frame on every connection in a room.

        Args:
            room_id: Target room
            message: Frame to send
            exclude: Optional connection id to skip (e.g., the originator)

        Returns:
            Number of connections the frame was queued on.
        """
        recipients = [c for c in self.connections_in_room(room_id) if c.id != exclude]
        for connection in recipients:
            connection.send(message)

        logger.debug(
            "Emitted %s to %s: %d connections (excluding: %s)",
            message.get("type"),
            room_id,
            len(recipients),
            exclude,
        )
        return len(recipients)

    def emit_to_connection(self, connection_id: str, message: dict[str, Any]) -> bool:
        """Queue a frame on a single connection. False if it is gone."""
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.debug("Dropping %s for closed connection %s", message.get("type"), connection_id)
            return False
        connection.send(message)
        return True
