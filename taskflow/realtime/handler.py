"""
WebSocket Endpoint Handler

Handles WebSocket connections with JWT authentication at handshake time,
then dispatches client messages to the room broadcaster.

Each connection runs three things:
- the receive loop (this coroutine), dispatching one message at a time
- a writer task draining the connection's outbox onto the socket
- the auto-join task, which resolves project memberships concurrently
  with the receive loop and re-checks the registry before applying them
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from taskflow.config import Settings
from taskflow.exceptions import InvalidPayloadError, MissingFieldError, RealtimeError
from taskflow.realtime.broadcaster import RoomBroadcaster
from taskflow.realtime.events import ClientEvent, ClientMessage, Pong, ProjectRequest
from taskflow.realtime.registry import Connection

logger = logging.getLogger(__name__)

router = APIRouter()

# Close codes sent before the handshake is accepted
CLOSE_UNAUTHENTICATED = 4001


def extract_token(websocket: WebSocket, settings: Settings) -> str | None:
    """
    Extract the access token supplied at connection time.

    Accepted (in order):
    - ``?token=<jwt>`` query parameter (browsers cannot set WS headers)
    - ``Authorization: Bearer <jwt>`` header
    """
    token = websocket.query_params.get(settings.ws_token_query_param)
    if token:
        return token

    authorization = websocket.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    return None


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for realtime collaboration."""
    state = websocket.app.state
    broadcaster: RoomBroadcaster = state.broadcaster

    logger.info("WebSocket connection attempt from %s", websocket.client)

    token = extract_token(websocket, state.settings)
    identity = state.token_verifier.verify(token)
    if identity is None:
        logger.info("WebSocket handshake rejected: %s", "no token" if not token else "invalid token")
        await websocket.close(code=CLOSE_UNAUTHENTICATED, reason="Authentication error")
        return

    await websocket.accept()

    connection = Connection(user_id=identity.user_id, user_email=identity.email)
    broadcaster.register(connection)
    logger.info("Authenticated: user %s (%s) as %s", identity.user_id, identity.email, connection.id)

    writer = asyncio.create_task(_write_loop(websocket, connection))
    auto_join = asyncio.create_task(broadcaster.auto_join(connection))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            data = message.get("text")
            if data is None:
                # Binary frames are not part of the protocol
                logger.warning("Binary frame from user %s", identity.user_id)
                broadcaster.send_error(connection.id, InvalidPayloadError.code, "Invalid message")
                continue

            await dispatch(broadcaster, connection, data)

    except WebSocketDisconnect as e:
        logger.info("Disconnected: user %s, code=%s", identity.user_id, getattr(e, "code", "N/A"))
    except Exception as e:
        logger.error("Error for user %s: %s", identity.user_id, e)
    finally:
        broadcaster.disconnect(connection.id)
        writer.cancel()
        # auto_join is left to finish: it sees the connection is gone and discards its result
        await asyncio.gather(auto_join, writer, return_exceptions=True)


async def _write_loop(websocket: WebSocket, connection: Connection) -> None:
    """Send queued frames in order until cancelled or the socket fails."""
    while True:
        message = await connection.outbox.get()
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            # The receive loop notices the disconnect and cleans up
            logger.debug("Send to %s failed: %s", connection.id, e)
            return


# ---------------------------------------------------------
# Message dispatch
# ---------------------------------------------------------

Handler = Callable[[RoomBroadcaster, Connection, dict[str, Any]], Awaitable[None]]


def _require_project_id(payload: dict[str, Any]) -> int:
    try:
        request = ProjectRequest.model_validate(payload)
    except ValidationError as e:
        raise InvalidPayloadError(f"Invalid projectId: {e.errors()[0]['msg']}") from e

    if not request.project_id:
        raise MissingFieldError("projectId")
    return request.project_id


async def _handle_join_project(broadcaster, connection, payload):
    await broadcaster.join_project(connection.id, _require_project_id(payload))


async def _handle_leave_project(broadcaster, connection, payload):
    broadcaster.leave_project(connection.id, _require_project_id(payload))


async def _handle_get_connected_users(broadcaster, connection, payload):
    await broadcaster.send_connected_users(connection.id, _require_project_id(payload))


async def _handle_join_projects(broadcaster, connection, payload):
    await broadcaster.join_all_projects(connection.id)


async def _handle_ping(broadcaster, connection, payload):
    broadcaster.registry.emit_to_connection(connection.id, Pong().to_message())


# message type -> (handler, error code on unexpected failure, error message)
HANDLERS: dict[str, tuple[Handler, str, str]] = {
    ClientEvent.JOIN_PROJECT.value: (
        _handle_join_project,
        "JOIN_PROJECT_ERROR",
        "Failed to join project",
    ),
    ClientEvent.LEAVE_PROJECT.value: (
        _handle_leave_project,
        "LEAVE_PROJECT_ERROR",
        "Failed to leave project",
    ),
    ClientEvent.GET_CONNECTED_USERS.value: (
        _handle_get_connected_users,
        "GET_USERS_ERROR",
        "Failed to get connected users",
    ),
    ClientEvent.JOIN_PROJECTS.value: (
        _handle_join_projects,
        "JOIN_PROJECTS_ERROR",
        "Failed to join projects",
    ),
    ClientEvent.PING.value: (_handle_ping, "PING_ERROR", "Ping failed"),
}


async def dispatch(broadcaster: RoomBroadcaster, connection: Connection, raw: str) -> None:
    """
    Handle one client frame.

    Errors never escape: expected failures become an ``error`` frame with
    their own code, anything else is logged and reported with the
    operation's generic code. Other connections are unaffected either way.
    """
    try:
        message = ClientMessage.model_validate_json(raw)
    except ValidationError:
        logger.warning("Invalid message from user %s", connection.user_id)
        broadcaster.send_error(connection.id, InvalidPayloadError.code, "Invalid message")
        return

    entry = HANDLERS.get(message.type)
    if entry is None:
        logger.warning("Unknown message type %r from user %s", message.type, connection.user_id)
        return

    handler, failure_code, failure_message = entry
    try:
        await handler(broadcaster, connection, message.payload)
    except RealtimeError as e:
        broadcaster.send_error(connection.id, e.code, e.message)
    except Exception:
        logger.exception("Error handling %s for user %s", message.type, connection.user_id)
        broadcaster.send_error(connection.id, failure_code, failure_message)
