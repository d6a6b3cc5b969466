"""
Realtime event catalog.

Every frame exchanged over the socket is JSON of the form
``{"type": "<event name>", "payload": {...}}``. Outbound events are a closed
set of pydantic models, one per event name, so a payload cannot drift from
its declared shape. Field names are snake_case in Python and camelCase on
the wire.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EventName(str, Enum):
    """Server -> client event names."""

    CONNECTION_READY = "connection:ready"
    PROJECT_JOINED = "project:joined"
    PROJECT_LEFT = "project:left"
    PROJECTS_JOINED = "projects:joined"
    USER_JOINED = "user:joined"
    USER_LEFT = "user:left"
    CONNECTED_USERS = "connected-users"
    ERROR = "error"
    PONG = "pong"
    PROJECT_CREATED = "project:created"
    PROJECT_UPDATED = "project:updated"
    PROJECT_DELETED = "project:deleted"
    MEMBER_ADDED = "project:member:added"
    MEMBER_REMOVED = "project:member:removed"


class ClientEvent(str, Enum):
    """Client -> server message types."""

    JOIN_PROJECT = "join:project"
    LEAVE_PROJECT = "leave:project"
    GET_CONNECTED_USERS = "get:connected-users"
    JOIN_PROJECTS = "join:projects"
    PING = "ping"


def utc_timestamp(dt: datetime | None = None) -> str:
    """
    ISO-8601 UTC timestamp with millisecond precision and Z suffix,
    e.g. "2025-12-08T09:01:16.715Z".
    """
    dt = (dt or datetime.now(timezone.utc)).astimezone(timezone.utc)
    formatted = dt.strftime("%Y-%m-%dT%H:%M:%S")
    ms = dt.microsecond // 1000
    return f"{formatted}.{ms:03d}Z"


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


def project_room(project_id: int) -> str:
    return f"project:{project_id}"


def parse_project_room(room_id: str) -> int | None:
    """Project id of a ``project:<id>`` room, None for any other room."""
    prefix, _, suffix = room_id.partition(":")
    if prefix != "project" or not suffix:
        return None
    try:
        return int(suffix)
    except ValueError:
        return None


# ---------------------------------------------------------
# Shared payload parts
# ---------------------------------------------------------


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PresenceEntry(WireModel):
    """One user present in a room, with their number of live connections."""

    user_id: int = Field(alias="userId")
    user_email: str | None = Field(None, alias="userEmail")
    connection_count: int = Field(alias="connectionCount")


class JoinedProject(WireModel):
    id: int
    name: str


# ---------------------------------------------------------
# Outbound events
# ---------------------------------------------------------


class RealtimeEvent(WireModel):
    """Base class for outbound events."""

    event: ClassVar[EventName]

    timestamp: str = Field(default_factory=utc_timestamp)

    def to_message(self) -> dict[str, Any]:
        """Frame ready to be JSON-encoded onto the socket."""
        return {
            "type": self.event.value,
            "payload": self.model_dump(mode="json", by_alias=True),
        }


class ConnectionReady(RealtimeEvent):
    event = EventName.CONNECTION_READY

    success: bool = True
    user_id: int = Field(alias="userId")
    projects_joined: int = Field(alias="projectsJoined")


class ProjectJoinReply(RealtimeEvent):
    """Reply to an explicit join:project request."""

    event = EventName.PROJECT_JOINED

    success: bool = True
    project_id: int = Field(alias="projectId")
    project_name: str = Field(alias="projectName")
    connected_users: list[PresenceEntry] = Field(default_factory=list, alias="connectedUsers")


class ProjectsJoined(RealtimeEvent):
    event = EventName.PROJECTS_JOINED

    success: bool = True
    projects: list[JoinedProject] = Field(default_factory=list)


class UserJoined(RealtimeEvent):
    event = EventName.USER_JOINED

    project_id: int = Field(alias="projectId")
    user: dict[str, Any]


class UserLeft(RealtimeEvent):
    event = EventName.USER_LEFT

    project_id: int = Field(alias="projectId")
    user_id: int = Field(alias="userId")


class ConnectedUsers(RealtimeEvent):
    event = EventName.CONNECTED_USERS

    project_id: int = Field(alias="projectId")
    users: list[PresenceEntry] = Field(default_factory=list)
    count: int = 0


class ErrorEvent(RealtimeEvent):
    event = EventName.ERROR

    message: str
    code: str


class Pong(RealtimeEvent):
    event = EventName.PONG


class ProjectCreated(RealtimeEvent):
    event = EventName.PROJECT_CREATED

    project: dict[str, Any]
    emitted_by: int = Field(alias="emittedBy")


class ProjectUpdated(RealtimeEvent):
    event = EventName.PROJECT_UPDATED

    project: dict[str, Any]


class ProjectDeleted(RealtimeEvent):
    event = EventName.PROJECT_DELETED

    project_id: int = Field(alias="projectId")
    emitted_by: int = Field(alias="emittedBy")


class MemberAdded(RealtimeEvent):
    event = EventName.MEMBER_ADDED

    project_id: int = Field(alias="projectId")
    member: dict[str, Any]


class MemberRemoved(RealtimeEvent):
    event = EventName.MEMBER_REMOVED

    project_id: int = Field(alias="projectId")
    user_id: int = Field(alias="userId")


class ProjectMembershipJoined(RealtimeEvent):
    """Sent to a user's own room when they are added to a project."""

    event = EventName.PROJECT_JOINED

    project_id: int = Field(alias="projectId")
    project: dict[str, Any]


class ProjectMembershipLeft(RealtimeEvent):
    """Sent to a user's own room when they are removed from a project."""

    event = EventName.PROJECT_LEFT

    project_id: int = Field(alias="projectId")


# ---------------------------------------------------------
# Inbound messages
# ---------------------------------------------------------


class ClientMessage(WireModel):
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)


class ProjectRequest(WireModel):
    """Payload of join:project, leave:project and get:connected-users."""

    project_id: int | None = Field(None, alias="projectId")

    @field_validator("project_id", mode="before")
    @classmethod
    def reject_bool(cls, value: Any) -> Any:
        # bool is an int subclass; true would otherwise become project 1
        if isinstance(value, bool):
            raise ValueError("projectId must be an integer")
        return value
