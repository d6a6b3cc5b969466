"""
Realtime package for multi-user collaboration over WebSockets.

Provides:
- Connection registry with per-user and per-project rooms
- Presence tracking across multiple connections per user
- Room broadcaster (join/leave, fan-out of domain events)
- Event gateway used by request handlers after a committed mutation
"""

from taskflow.realtime.broadcaster import RoomBroadcaster
from taskflow.realtime.gateway import EventGateway, get_event_gateway
from taskflow.realtime.handler import router
from taskflow.realtime.registry import Connection, ConnectionRegistry

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "EventGateway",
    "RoomBroadcaster",
    "get_event_gateway",
    "router",
]
