from typing import Dict, NamedTuple, Optional

from logging_config import get_logger
from schemas.rooms import Member

logger = get_logger(__name__)


class SessionEntry(NamedTuple):
    room_code: str
    member: Member


class SessionRegistry:
    """Reverse index connection id -> (room code, member).

    Derived from the RoomStore so disconnects don't have to scan every room.
    When the two disagree the RoomStore is right.
    """

    def __init__(self):
        self._entries: Dict[str, SessionEntry] = {}

    def bind(self, connection_id: str, room_code: str, member: Member) -> SessionEntry:
        previous = self._entries.get(connection_id)
        if previous is not None:
            logger.warning(f"Connection {connection_id} rebound from room {previous.room_code} to {room_code}")
        entry = SessionEntry(room_code, member)
        self._entries[connection_id] = entry
        return entry

    def unbind(self, connection_id: str) -> Optional[SessionEntry]:
        return self._entries.pop(connection_id, None)

    def lookup(self, connection_id: str) -> Optional[SessionEntry]:
        return self._entries.get(connection_id)

    def items(self):
        return list(self._entries.items())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._entries


session_registry = SessionRegistry()
