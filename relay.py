"""Watch party event relay.

Turns inbound socket events into RoomStore / SessionRegistry mutations and
fans the results out through a :class:`Transport`:

- ``join_room``      -> ``joined_room`` (joiner), ``user_joined`` (others), system ``receive_message`` (all)
- ``send_message``   -> ``receive_message`` (all, sender included)
- ``change_video``   -> ``update_video`` + system ``receive_message`` (all)
- ``sync_action``    -> ``sync_action`` (everyone except the sender)
- ``disconnect``     -> ``user_left`` (others) + system ``receive_message``

Every handler is wrapped by :func:`guarded`, so one bad event never escapes
into the socket server or touches other connections.
"""
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, Optional, Protocol, Set, Type, TypeVar

from pydantic import BaseModel, ValidationError

from backend import KeyedLocks, RoomStore
from constants import DEFAULT_USERNAME, MAX_MESSAGE_LENGTH, MAX_USERNAME_LENGTH, SYSTEM_COLOR, SYSTEM_USERNAME
from exceptions import InvalidPayload, InvalidVideoReference, RelayError, RoomNotFound
from logging_config import get_logger
from schemas.rooms import (
    ChangeVideoPayload,
    ChatMessage,
    ErrorPayload,
    JoinRoomPayload,
    Member,
    SendMessagePayload,
    SyncActionPayload,
    SyncBroadcast,
)
from sessions import SessionRegistry
from youtube import is_canonical_video_id, resolve_video_id

logger = get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class Transport(Protocol):
    async def send(self, connection_id: str, event: str, payload: Any) -> None: ...

    async def broadcast(self, room_code: str, event: str, payload: Any, exclude: Optional[str] = None) -> None: ...

    async def subscribe(self, connection_id: str, room_code: str) -> None: ...

    async def unsubscribe(self, connection_id: str, room_code: str) -> None: ...


def truncate(value: Optional[str], limit: int) -> str:
    return (value or "")[:limit]


def guarded(event: str, notify: bool = True):
    """Catch, log and report any failure of a handler to the connection that sent the event."""
    def decorator(func):
        @wraps(func)
        async def wrapper(self, sid: str, *args, **kwargs):
            try:
                return await func(self, sid, *args, **kwargs)
            except RelayError as e:
                logger.info(f"{event} from connection {sid} rejected: {e.message}")
                if notify:
                    await self._send_error(sid, e.message)
            except Exception as e:
                logger.error(f"Error handling {event} from connection {sid}: {e}", exc_info=True)
                if notify:
                    await self._send_error(sid, INTERNAL_ERROR_MESSAGE)
        return wrapper
    return decorator


class RelayHandler:
    def __init__(self, store: RoomStore, registry: SessionRegistry, transport: Transport):
        self.store = store
        self.registry = registry
        self.transport = transport
        # join_room and disconnect of one connection never interleave
        self._connection_locks = KeyedLocks()
        self._closed: Set[str] = set()

    @asynccontextmanager
    async def _serialized(self, sid: str):
        try:
            async with self._connection_locks.locked(sid):
                yield
        finally:
            # a closed id only matters while some join for it is still queued
            if sid in self._closed and not self._connection_locks.busy(sid):
                self._closed.discard(sid)

    @staticmethod
    def _parse(model: Type[PayloadT], data: Any, event: str) -> PayloadT:
        try:
            return model.model_validate(data if data is not None else {})
        except ValidationError as e:
            errors = e.errors()
            detail = errors[0]["msg"] if errors else "malformed payload"
            raise InvalidPayload(f"Invalid {event} payload: {detail}") from e

    async def _send_error(self, sid: str, message: str):
        try:
            await self.transport.send(sid, "error", ErrorPayload(message=message).to_wire())
        except Exception as e:
            logger.error(f"Could not deliver error to connection {sid}: {e}", exc_info=True)

    def _system_message(self, text: str) -> dict:
        return ChatMessage(
            username=SYSTEM_USERNAME,
            text=text,
            color=SYSTEM_COLOR,
            timestamp=self.store.clock(),
            system=True,
        ).to_wire()

    def _display_name(self, sid: str) -> Optional[str]:
        entry = self.registry.lookup(sid)
        return entry.member.username if entry else None

    async def _leave(self, sid: str) -> bool:
        """Remove the connection from its room and tell whoever is left. False if it was not in one."""
        entry = self.registry.lookup(sid)
        if entry is None:
            return False

        code = entry.room_code
        async with self.store.locked(code):
            try:
                member = self.store.remove_member(code, sid)
                await self.transport.unsubscribe(sid, code)
                if member is None:
                    logger.warning(f"Session of connection {sid} points at room {code} but the room has no such member, dropping it")
                    return False
                await self.transport.broadcast(code, "user_left", sid, exclude=sid)
                await self.transport.broadcast(code, "receive_message", self._system_message(f"{member.username} left the party."))
            finally:
                self.store.delete_if_empty(code)
                current = self.registry.lookup(sid)
                if current is not None and current.room_code == code:
                    self.registry.unbind(sid)

        logger.info(f"{member.username} ({sid}) left room {code}")
        return True

    @guarded("join_room")
    async def join_room(self, sid: str, data: Any = None):
        payload = self._parse(JoinRoomPayload, data, "join_room")
        code = payload.room
        username = truncate((payload.username or "").strip(), MAX_USERNAME_LENGTH) or DEFAULT_USERNAME
        color = payload.color or ""

        async with self._serialized(sid):
            if sid in self._closed:
                logger.debug(f"Ignoring join_room from closed connection {sid}")
                return

            current = self.registry.lookup(sid)
            if current is not None:
                # one room per connection: switching rooms (or rejoining) leaves the old one first
                logger.info(f"Connection {sid} is in room {current.room_code}, leaving it before joining {code}")
                await self._leave(sid)

            async with self.store.locked(code):
                room = self.store.get_or_create(code)
                member = Member(connection_id=sid, username=username, color=color, joined_at=self.store.clock())
                self.store.add_member(code, member)
                self.registry.bind(sid, code, member)
                await self.transport.subscribe(sid, code)

                await self.transport.send(sid, "joined_room", {"roomState": room.to_wire()})
                await self.transport.broadcast(code, "user_joined", member.to_wire(), exclude=sid)
                await self.transport.broadcast(code, "receive_message", self._system_message(f"{username} joined the party!"))

        logger.info(f"{username} ({sid}) joined room {code}, video: {room.current_video}, members: {len(room.users)}")

    @guarded("send_message")
    async def send_message(self, sid: str, data: Any = None):
        try:
            payload = self._parse(SendMessagePayload, data, "send_message")
        except InvalidPayload as e:
            logger.debug(f"Dropping send_message from {sid}: {e.message}")
            return

        text = (payload.text or "").strip()
        if not text:
            logger.debug(f"Dropping empty message from {sid} to room {payload.room}")
            return

        username = truncate(payload.username or self._display_name(sid) or DEFAULT_USERNAME, MAX_USERNAME_LENGTH)
        message = ChatMessage(
            username=username,
            text=truncate(text, MAX_MESSAGE_LENGTH),
            color=payload.color or "",
            timestamp=self.store.clock(),
        )
        await self.transport.broadcast(payload.room, "receive_message", message.to_wire())
        logger.debug(f"Message from {username} ({sid}) relayed to room {payload.room}")

    @guarded("change_video")
    async def change_video(self, sid: str, data: Any = None):
        payload = self._parse(ChangeVideoPayload, data, "change_video")
        code = payload.room

        async with self.store.locked(code):
            if self.store.get(code) is None:
                raise RoomNotFound(code)

            video_id = resolve_video_id(payload.video_id)
            if not is_canonical_video_id(video_id):
                raise InvalidVideoReference("Invalid YouTube link or video id")

            self.store.set_video(code, video_id)
            await self.transport.broadcast(code, "update_video", video_id)
            name = self._display_name(sid) or "Someone"
            await self.transport.broadcast(code, "receive_message", self._system_message(f"{name} changed the video."))

        logger.info(f"Connection {sid} changed video in room {code} to {video_id}")

    @guarded("sync_action")
    async def sync_action(self, sid: str, data: Any = None):
        try:
            payload = self._parse(SyncActionPayload, data, "sync_action")
        except InvalidPayload as e:
            logger.debug(f"Dropping sync_action from {sid}: {e.message}")
            return
        code = payload.room

        async with self.store.locked(code):
            if self.store.get(code) is None:
                logger.debug(f"sync_action for unknown room {code} from {sid} ignored")
                return
            room = self.store.apply_sync(code, payload.type, payload.time)
            update = SyncBroadcast(
                type=payload.type,
                time=payload.time,
                server_timestamp=room.video_state.last_update,
            )
            # never echoed back, the sender's player is already there
            await self.transport.broadcast(code, "sync_action", update.to_wire(), exclude=sid)

    @guarded("disconnect", notify=False)
    async def disconnect(self, sid: str, reason: Any = None):
        logger.info(f"Connection {sid} disconnected (reason: {reason})")
        async with self._serialized(sid):
            self._closed.add(sid)
            if not await self._leave(sid):
                logger.debug(f"Connection {sid} was not in a room")
