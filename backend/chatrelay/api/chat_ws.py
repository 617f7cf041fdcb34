"""
Realtime chat endpoint - WebSocket transport for the session relay.

Inbound frames are JSON objects with a ``type`` field (JoinSession,
LeaveSession, SendMessage, GetModelStatus, NewChat). Outbound frames are
``{"type": ..., "data": ...}``.
"""

import asyncio
import json
import logging
import uuid

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ..core.logging_config import ConnectionLoggerAdapter
from ..core.registry import ClientConnection
from ..core.relay import SessionRelay
from ..models.events import (
    GetModelStatus, JoinSession, LeaveSession, NewChat, SendMessage, ServerEvent, parse_client_event,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


class WebSocketConnection(ClientConnection):
    """ClientConnection over a Starlette WebSocket. Sends are serialised per connection."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.connection_id = uuid.uuid4().hex
        self.closed = False
        self._send_lock = asyncio.Lock()

    async def send(self, event: ServerEvent) -> None:
        if self.closed:
            raise ConnectionError(f"Connection {self.connection_id} is closed")
        async with self._send_lock:
            await self.websocket.send_json(event.to_wire())


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0] if error.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid payload")
    return f"Invalid request: {location + ': ' if location else ''}{message}"


def decode_frame(message: dict) -> object:
    """Decode one received websocket message into its JSON payload; raises ValueError."""
    text = message.get("text")
    if text is None:
        raise ValueError("binary frames are not supported")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        raise ValueError("malformed JSON") from None


async def dispatch_frame(
    relay: SessionRelay,
    connection: WebSocketConnection,
    user_id: str,
    payload: object,
) -> None:
    """Route one inbound frame to the relay."""
    try:
        event = parse_client_event(payload)
    except ValidationError as e:
        await relay.registry.send_to(connection.connection_id, ServerEvent.error(_describe_validation_error(e)))
        return

    if isinstance(event, JoinSession):
        await relay.join_session(connection.connection_id, event.session_id)
    elif isinstance(event, LeaveSession):
        await relay.leave_session(connection.connection_id, event.session_id)
    elif isinstance(event, SendMessage):
        relay.submit_message(connection.connection_id, event.session_id, event.message)
    elif isinstance(event, GetModelStatus):
        await relay.send_model_status(connection.connection_id)
    elif isinstance(event, NewChat):
        await relay.new_chat(connection.connection_id, user_id, event.title)


@router.websocket("/ws/chat")
async def chat_websocket(websocket: WebSocket, user_id: str = Query("anonymous", min_length=1)):
    """WebSocket endpoint for session-scoped chat."""
    await websocket.accept()

    relay: SessionRelay = websocket.app.state.relay
    connection = WebSocketConnection(websocket)
    log = ConnectionLoggerAdapter(logger, {"connection_id": connection.connection_id, "user_id": user_id})

    try:
        session = await relay.open_connection(connection, user_id)
        log.info(f"Chat connected, current session {session.id if session else '-'}")

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            try:
                payload = decode_frame(message)
            except ValueError as e:
                await relay.registry.send_to(connection.connection_id, ServerEvent.error(f"Invalid request: {e}"))
                continue
            await dispatch_frame(relay, connection, user_id, payload)

    except WebSocketDisconnect as e:
        log.info(f"Chat disconnected (code {e.code})")
    except Exception as e:
        log.error(f"Chat connection failed: {e}", exc_info=True)
    finally:
        connection.closed = True
        relay.close_connection(connection.connection_id)
