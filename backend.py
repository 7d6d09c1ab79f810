import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Dict, List, Optional

from exceptions import RoomNotFound
from logging_config import get_logger
from schemas.rooms import Member, Room, VideoState

logger = get_logger(__name__)


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class KeyedLocks:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._entries: Dict[str, _LockEntry] = {}

    @asynccontextmanager
    async def locked(self, key: str):
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _LockEntry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    def busy(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class RoomStore:
    """In-memory table of rooms keyed by canonical room code.

    All methods are synchronous and never await, so each one is atomic on the
    event loop. Sequences that await in between (mutate, then broadcast) must
    run inside ``locked(code)``.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._rooms: Dict[str, Room] = {}
        self._locks = KeyedLocks()
        self.clock = clock
        logger.info("Initializing in-memory RoomStore")

    def locked(self, code: str):
        """Per-room critical section."""
        return self._locks.locked(code)

    def get(self, code: str) -> Optional[Room]:
        return self._rooms.get(code)

    def get_or_create(self, code: str) -> Room:
        room = self._rooms.get(code)
        if room is None:
            room = Room(code=code, created_at=self.clock())
            self._rooms[code] = room
            logger.info(f"Room {code} created")
        return room

    def _require(self, code: str) -> Room:
        room = self._rooms.get(code)
        if room is None:
            raise RoomNotFound(code)
        return room

    def set_video(self, code: str, video_id: str) -> Room:
        room = self._require(code)
        room.current_video = video_id
        room.video_state = VideoState(playing=True, time=0.0, last_update=self.clock())
        logger.info(f"Room {code} now playing video {video_id}")
        return room

    def apply_sync(self, code: str, action_type: str, time: float) -> Room:
        room = self._require(code)
        # playing follows the action type only; a seek always records paused
        room.video_state = VideoState(playing=action_type == "play", time=time, last_update=self.clock())
        logger.debug(f"Room {code} sync: {action_type} at {time}")
        return room

    def add_member(self, code: str, member: Member) -> Room:
        room = self._require(code)
        room.users.append(member)
        logger.debug(f"Member {member.connection_id} added to room {code} ({len(room.users)} members)")
        return room

    def remove_member(self, code: str, connection_id: str) -> Optional[Member]:
        room = self._rooms.get(code)
        if room is None:
            return None
        for index, member in enumerate(room.users):
            if member.connection_id == connection_id:
                del room.users[index]
                logger.debug(f"Member {connection_id} removed from room {code} ({len(room.users)} members)")
                return member
        return None

    def delete_if_empty(self, code: str) -> bool:
        room = self._rooms.get(code)
        if room is None or room.users:
            return False
        del self._rooms[code]
        logger.info(f"Room {code} deleted (empty)")
        return True

    def list_active(self) -> int:
        return len(self._rooms)

    def connection_count(self) -> int:
        return sum(len(room.users) for room in self._rooms.values())

    def codes(self) -> List[str]:
        return list(self._rooms.keys())


room_store = RoomStore()
