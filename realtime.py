"""Socket.IO server for watch party clients.

Clients connect with ``socket.io-client`` (WebSocket with long-polling
fallback) at ``SOCKETIO_PATH`` and talk in named events; the socket server's
own rooms are the broadcast groups, one per watch party room code.
"""
from typing import Any, Optional

import socketio

from backend import room_store
from constants import CORS_ORIGINS
from logging_config import get_logger
from relay import RelayHandler
from sessions import session_registry

logger = get_logger(__name__)


sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*" if CORS_ORIGINS == ["*"] else CORS_ORIGINS,
    logger=False,
    engineio_logger=False,
)


class SocketIOTransport:
    """Fire-and-forget delivery through a python-socketio server."""

    def __init__(self, server: socketio.AsyncServer):
        self.server = server

    async def send(self, connection_id: str, event: str, payload: Any) -> None:
        await self.server.emit(event, payload, to=connection_id)

    async def broadcast(self, room_code: str, event: str, payload: Any, exclude: Optional[str] = None) -> None:
        await self.server.emit(event, payload, room=room_code, skip_sid=exclude)

    async def subscribe(self, connection_id: str, room_code: str) -> None:
        await self.server.enter_room(connection_id, room_code)

    async def unsubscribe(self, connection_id: str, room_code: str) -> None:
        await self.server.leave_room(connection_id, room_code)


relay = RelayHandler(room_store, session_registry, SocketIOTransport(sio))


@sio.event
async def connect(sid: str, environ: dict, auth: Any = None):
    logger.info(f"Client connected: {sid}")


@sio.event
async def join_room(sid: str, data: Any = None):
    await relay.join_room(sid, data)


@sio.event
async def send_message(sid: str, data: Any = None):
    await relay.send_message(sid, data)


@sio.event
async def change_video(sid: str, data: Any = None):
    await relay.change_video(sid, data)


@sio.event
async def sync_action(sid: str, data: Any = None):
    await relay.sync_action(sid, data)


@sio.event
async def disconnect(sid: str, reason: Any = None):
    await relay.disconnect(sid, reason)
